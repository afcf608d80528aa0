"""
Exception hierarchy shared by the offline cache and the API client.

Server routes raise ``fastapi.HTTPException`` directly; these types are for
code talking to the server over the network.
"""
from typing import Any, Dict, Optional


class DispatchError(Exception):
    """Base exception for all Dispatch client-side errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NetworkError(DispatchError):
    """The request failed before a usable HTTP response arrived."""


class ApiError(DispatchError):
    """The server answered with a non-2xx status."""

    def __init__(self, status: int, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404

    def __str__(self) -> str:
        return f"{self.status}: {self.message}"
