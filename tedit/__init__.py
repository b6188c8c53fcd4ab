"""Terminal editor language-server integration."""

__version__ = "0.3.0"
