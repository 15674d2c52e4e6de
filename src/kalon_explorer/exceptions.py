# src/kalon_explorer/exceptions.py
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER = "server"
    PROTOCOL = "protocol"


class ExplorerError(Exception):
    """Base exception class for explorer client errors"""
    pass


class FetchError(ExplorerError):
    """Base exception class for failed backend fetches"""
    kind = ErrorKind.NETWORK


class NetworkError(FetchError):
    """Raised when the backend could not be reached"""
    kind = ErrorKind.NETWORK


class RequestTimeoutError(FetchError):
    """Raised when a request exceeds the configured timeout"""
    kind = ErrorKind.TIMEOUT


class ServerError(FetchError):
    """Raised when the backend answers with a non-2xx status"""
    kind = ErrorKind.SERVER

    def __init__(self, status: int, message: Optional[str] = None):
        self.status = status
        super().__init__(message or f"Backend responded with HTTP {status}")


class ProtocolError(FetchError):
    """Raised when the response envelope is malformed or unsuccessful"""
    kind = ErrorKind.PROTOCOL


class SearchError(ExplorerError):
    """Base exception class for search errors"""
    pass


class InvalidQuery(SearchError):
    """Raised when search input cannot be parsed"""
    pass


class NotFoundError(SearchError):
    """Raised when a search resolves to nothing"""
    pass


class ConfigError(ExplorerError):
    """Raised when configuration is invalid"""
    pass
