"""Adapters HTTP: cliente de la API del marketplace."""

from .api_client import ApiClient
from .auth_api import AuthApi, unwrap_envelope
from .notifications_api import NotificationsApi
from .retry import create_retry_decorator, is_transient_error

__all__ = [
    "ApiClient",
    "AuthApi",
    "NotificationsApi",
    "create_retry_decorator",
    "is_transient_error",
    "unwrap_envelope",
]
