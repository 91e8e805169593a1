"""API credential providers."""

from metricfeed.credentials.provider import (
    CachingCredentialProvider,
    CredentialError,
    CredentialProvider,
    CredentialUnavailableError,
    FileCredentialProvider,
    StaticCredentialProvider,
)


__all__ = [
    "CachingCredentialProvider",
    "CredentialError",
    "CredentialProvider",
    "CredentialUnavailableError",
    "FileCredentialProvider",
    "StaticCredentialProvider",
]
