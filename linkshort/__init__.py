"""linkshort: a small URL shortener with click counting."""

__version__ = "1.0.0"
