"""Classifier adapters."""

from focus_monitor.adapters.llm.classifier_client import ClassifierClient

__all__ = ["ClassifierClient"]
