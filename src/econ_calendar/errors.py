"""Exception types raised by the scraper, the cache store and the refresh coordinator."""


class ScrapeError(Exception):
    """A scrape of one window failed"""

    def __init__(self, message, window=None):
        super().__init__(message)
        self.window = window


class ScrapeTimeoutError(ScrapeError):
    """A bounded wait (navigation, table, loading indicator) expired"""


class ScrapeStructureError(ScrapeError):
    """Expected DOM elements are missing; the page layout probably changed"""


class BootstrapFailedError(Exception):
    """The cache is empty and the cold-start scrape could not fill it"""

    def __init__(self, message, details=None):
        super().__init__(message)
        self.details = details


class CacheWriteError(Exception):
    """One or more upsert batches failed"""

    def __init__(self, message, failed_rows=0, total_rows=0):
        super().__init__(message)
        self.failed_rows = failed_rows
        self.total_rows = total_rows
