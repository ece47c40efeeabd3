"""Website change monitoring with AI summaries."""

__version__ = "0.1.0"
