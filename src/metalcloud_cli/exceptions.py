"""
Exception hierarchy for the Metal Cloud CLI.

MetalCloudError
├── ConfigurationError
└── APIError
"""

from typing import Optional


class MetalCloudError(Exception):
    """Base exception for all Metal Cloud CLI errors."""


class ConfigurationError(MetalCloudError):
    """Raised when required settings are missing or malformed."""


class APIError(MetalCloudError):
    """Raised when the API call fails at the HTTP or JSON-RPC level."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        code: Optional[int] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
