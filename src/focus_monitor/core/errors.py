"""Error taxonomy for the monitoring pipeline."""

from typing import Optional


class MonitorError(Exception):
    """Base class for all monitoring errors."""


class FetchError(MonitorError):
    """A page could not be retrieved.

    ``transient`` is informational: every fetch failure is recorded the same
    way and retried at the site's next due interval.
    """

    kind = "fetch_error"
    transient = True
    default_message = "Fetch failed"

    def __init__(self, message: Optional[str] = None, status_code: Optional[int] = None) -> None:
        super().__init__(message or self.default_message)
        self.status_code = status_code


class HostNotFoundError(FetchError):
    kind = "not_found"
    transient = False
    default_message = "Website not found"


class ConnectionRefusedFetchError(FetchError):
    kind = "connection_refused"
    default_message = "Connection refused"


class FetchTimeoutError(FetchError):
    kind = "timeout"
    default_message = "Request timeout"


class ForbiddenError(FetchError):
    kind = "forbidden"
    transient = False
    default_message = "Access forbidden"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, status_code=403)


class PageNotFoundError(FetchError):
    kind = "page_not_found"
    transient = False
    default_message = "Page not found"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message, status_code=404)


class HttpStatusError(FetchError):
    """Any other failing status, or a transport failure with no usable status."""

    kind = "http_error"

    def __init__(self, status_code: Optional[int] = None) -> None:
        super().__init__(f"HTTP {status_code or 'Unknown error'}", status_code=status_code)
        self.transient = status_code is None or status_code >= 500 or status_code == 429


class InvalidUrlError(FetchError):
    kind = "invalid_url"
    transient = False
    default_message = "Invalid URL"


class StoreError(MonitorError):
    """A persistence operation failed for one record."""


class StoreUnavailableError(StoreError):
    """The store cannot be reached at all."""


class UnknownSiteError(StoreError):
    """No tracked site with the given id."""

    def __init__(self, site_id: str) -> None:
        super().__init__(f"Unknown site: {site_id}")
        self.site_id = site_id
