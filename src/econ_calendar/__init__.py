"""Economic calendar scraper, cache and query service."""

__version__ = "1.0.0"
