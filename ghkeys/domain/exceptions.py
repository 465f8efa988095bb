from __future__ import annotations

from ghkeys.domain.error_codes import ErrorCode
from ghkeys.errors import CATEGORY_CONFIG, CATEGORY_OUTPUT, CATEGORY_RESOLUTION, AppError


class InvalidIdentityFormError(AppError):
    def __init__(self, identity: str):
        """
        Назначение:
            Идентификатор команды не раскладывается на "<org>/<team>".
        Контракт:
            - Ошибка уровня одной команды, не всего запуска.
        """
        super().__init__(
            category=CATEGORY_RESOLUTION,
            code=ErrorCode.INVALID_IDENTITY_FORM.value,
            message=f"Invalid team identity '{identity}', expected '<org>/<team name>'",
            retryable=False,
            details={"identity": identity},
        )
        self.identity = identity


class TeamNotFoundError(AppError):
    def __init__(self, org: str, team_name: str):
        super().__init__(
            category=CATEGORY_RESOLUTION,
            code=ErrorCode.TEAM_NOT_FOUND.value,
            message=f"Team '{team_name}' not found in org '{org}'",
            retryable=False,
            details={"org": org, "team": team_name},
        )
        self.org = org
        self.team_name = team_name


class ConfigError(AppError):
    def __init__(self, message: str, path: str | None = None):
        """
        Назначение:
            Ошибка чтения/валидации конфигурации. Фатальна для запуска.
        """
        super().__init__(
            category=CATEGORY_CONFIG,
            code=ErrorCode.CONFIG_ERROR.value,
            message=message,
            retryable=False,
            details={"path": path} if path else {},
        )
        self.path = path


class OutputError(AppError):
    def __init__(self, message: str, path: str | None = None):
        super().__init__(
            category=CATEGORY_OUTPUT,
            code=ErrorCode.OUTPUT_ERROR.value,
            message=message,
            retryable=False,
            details={"path": path} if path else {},
        )
        self.path = path


__all__ = ["ConfigError", "InvalidIdentityFormError", "OutputError", "TeamNotFoundError"]
