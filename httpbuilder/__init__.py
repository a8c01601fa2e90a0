"""
httpbuilder - fluent builder for one-off HTTP requests

Wraps requests with configurable Basic/Bearer auth, TLS trust policies,
cookies and redirect handling.
"""

from .client import ContentType, EntityEnclosingHttp, Http, RequestConfig
from .exceptions import (
    ConfigurationError,
    HttpBuilderError,
    InvalidURL,
    ResponseParseError,
    TLSConfigurationError,
    TransportError,
    UnsupportedOperationError,
    WaiterTimeoutError,
)
from .response import HttpResponseParser
from .tls import (
    DefaultHostnameVerifier,
    NoopHostnameVerifier,
    TrustAllPolicy,
    TrustStorePolicy,
)
from .waiters import HttpWaiters, Waiter

__all__ = [
    "ConfigurationError",
    "ContentType",
    "DefaultHostnameVerifier",
    "EntityEnclosingHttp",
    "Http",
    "HttpBuilderError",
    "HttpResponseParser",
    "HttpWaiters",
    "InvalidURL",
    "NoopHostnameVerifier",
    "RequestConfig",
    "ResponseParseError",
    "TLSConfigurationError",
    "TransportError",
    "TrustAllPolicy",
    "TrustStorePolicy",
    "UnsupportedOperationError",
    "Waiter",
    "WaiterTimeoutError",
]
