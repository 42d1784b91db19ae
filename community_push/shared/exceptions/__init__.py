"""
Shared exceptions: the HTTP error taxonomy and the handlers that render it.
"""

from .custom_exceptions import (
    BaseAPIException,
    BadRequestException,
    ConfigurationException,
    PushNotConfiguredException,
    RegistryUnavailableException,
    ServiceUnavailableException,
    UnauthorizedException,
)
from .handlers import (
    base_api_exception_handler,
    general_exception_handler,
    http_exception_handler,
    validation_exception_handler,
)

__all__ = [
    'BaseAPIException',
    'BadRequestException',
    'ConfigurationException',
    'PushNotConfiguredException',
    'RegistryUnavailableException',
    'ServiceUnavailableException',
    'UnauthorizedException',

    'base_api_exception_handler',
    'http_exception_handler',
    'validation_exception_handler',
    'general_exception_handler',
]
