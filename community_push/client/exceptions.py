from typing import Optional


class PushClientError(Exception):
    """Base error for the client-side subscription flow"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class PushConfigurationError(PushClientError):
    """Server has no push key pair, or returned an unusable one"""


class RegistryClientError(PushClientError):
    """The push service rejected or could not be reached for a registry call"""
