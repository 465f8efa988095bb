from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """
    Назначение:
        Единая таксономия кодов ошибок для ItemResult и отчёта.
    """

    NETWORK_ERROR = "NETWORK_ERROR"
    HTTP_ERROR = "HTTP_ERROR"
    INVALID_JSON = "INVALID_JSON"
    API_ERROR = "API_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    MAX_PAGES_EXCEEDED = "MAX_PAGES_EXCEEDED"
    INVALID_IDENTITY_FORM = "INVALID_IDENTITY_FORM"
    TEAM_NOT_FOUND = "TEAM_NOT_FOUND"
    CONFIG_ERROR = "CONFIG_ERROR"
    OUTPUT_ERROR = "OUTPUT_ERROR"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"

    @classmethod
    def from_status(cls, status_code: int | None) -> "ErrorCode":
        """
        Назначение:
            Подбор общего кода по HTTP-статусу.
        """
        if status_code == 401:
            return cls.UNAUTHORIZED
        if status_code == 403:
            return cls.FORBIDDEN
        if status_code == 404:
            return cls.NOT_FOUND
        if status_code == 429:
            return cls.RATE_LIMITED
        return cls.HTTP_ERROR
