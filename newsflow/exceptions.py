class FeedError(Exception):
    """Raised when a single article source cannot be fetched or parsed."""


class NetworkError(FeedError):
    """Raised when an HTTP request fails before a usable response arrives."""


class FetchTimeout(NetworkError):
    """Raised when a request exceeds its time budget."""


class TooManyRedirects(NetworkError):
    """Raised when a request keeps redirecting past the hop limit."""


class ParseError(FeedError):
    """Raised when a fetched document cannot be parsed as a feed."""


class NoAccessibleSource(Exception):
    """Raised when every configured source failed in the same refresh."""


class StorageError(Exception):
    """Raised when the preference store cannot be read or written."""
