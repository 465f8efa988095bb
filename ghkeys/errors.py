from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

# Категории ошибок ghkeys
CATEGORY_API = "api"
CATEGORY_RESOLUTION = "resolution"
CATEGORY_CONFIG = "config"
CATEGORY_OUTPUT = "output"


@dataclass
class AppError(Exception):
    """
    Назначение:
        Базовая ошибка ghkeys.

    Контракт:
        - category: api | resolution | config | output.
        - code: значение ErrorCode либо HTTP_<status> для ответов API.
        - str(err) - только сообщение, без кода: так оно попадает
          в сводку оператора и в ItemResult.error_message.
    """

    category: str
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    def describe(self) -> str:
        """Строка для логов: "<code>: <message>"."""
        return f"{self.code}: {self.message}"


__all__ = ["AppError", "CATEGORY_API", "CATEGORY_CONFIG", "CATEGORY_OUTPUT", "CATEGORY_RESOLUTION"]
