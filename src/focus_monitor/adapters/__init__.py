"""Adapters for fetching, extraction, classification and storage."""
