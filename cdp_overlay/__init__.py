"""Serve hand-edited local copies of browser responses through Chrome DevTools interception."""

__version__ = "0.3.0"
