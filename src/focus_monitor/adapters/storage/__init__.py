"""Storage adapters."""

from focus_monitor.adapters.storage.yaml_store import YamlSiteStore, new_site_id

__all__ = ["YamlSiteStore", "new_site_id"]
