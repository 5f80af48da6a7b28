# asmr_studio/core/errors.py
from typing import Optional


class AppError(Exception):
    """Base error; ``message`` is safe to show to API callers."""

    code = "internal_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InsufficientCredits(AppError):
    code = "insufficient_credits"
    status_code = 402


class ProfileNotFound(AppError):
    code = "profile_not_found"
    status_code = 404


class GatewayError(AppError):
    """Non-2xx (or unreachable) payment gateway."""

    code = "gateway_error"
    status_code = 502

    def __init__(self, status: Optional[int], message: str):
        self.status = status
        label = status if status is not None else "request failed"
        super().__init__(f"Creem API error: {label} - {message}")
        self.detail = message


class DownloadError(AppError):
    code = "download_error"
    status_code = 502


class StorageError(AppError):
    code = "storage_error"
    status_code = 502


class MediaError(AppError):
    code = "media_error"


class PersistenceError(AppError):
    code = "persistence_error"


def wrap_unexpected(exc: BaseException) -> AppError:
    if isinstance(exc, AppError):
        return exc
    return AppError(str(exc) or exc.__class__.__name__)


def status_for_code(code: Optional[str]) -> int:
    """HTTP status for an ``error_code`` carried by a ledger result."""
    for cls in (AppError, *AppError.__subclasses__()):
        if cls.code == code:
            return cls.status_code
    return AppError.status_code
