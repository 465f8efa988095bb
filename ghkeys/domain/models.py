from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

from ghkeys.domain.exceptions import InvalidIdentityFormError

T = TypeVar("T")

ITEM_KIND_TEAM = "team"
ITEM_KIND_USER = "user"


@dataclass(frozen=True)
class AccountSpec:
    """
    Назначение:
        Локальная учётная запись и связанные с ней GitHub-пользователи и команды.
    Инварианты/гарантии:
        - Неизменяема после загрузки конфигурации.
        - declared_users/declared_teams без повторов, в порядке объявления.
    """

    name: str
    declared_users: tuple[str, ...] = ()
    declared_teams: tuple[str, ...] = ()


@dataclass(frozen=True)
class TeamIdentity:
    """
    Назначение:
        Разобранный идентификатор команды "<org>/<team name>".
    Контракт:
        - Разбор по первому "/" на два непустых сегмента.
        - Имя команды может содержать пробелы и дальнейшие "/".
    """

    org: str
    name: str

    @classmethod
    def parse(cls, identity: str) -> "TeamIdentity":
        org, sep, name = identity.partition("/")
        if not sep or not org or not name:
            raise InvalidIdentityFormError(identity)
        return cls(org=org, name=name)

    @property
    def cache_key(self) -> str:
        # имя команды сравнивается без учёта регистра, org - точно
        return f"{self.org}/{self.name.casefold()}"

    def __str__(self) -> str:
        return f"{self.org}/{self.name}"


@dataclass(frozen=True)
class ItemResult(Generic[T]):
    """
    Назначение:
        Результат разрешения одного элемента (команды или пользователя).
        Либо ok с данными, либо failed с кодом и сообщением.
    """

    kind: str
    identity: str
    ok: bool
    value: tuple[T, ...] = ()
    error_code: str | None = None
    error_message: str | None = None

    @classmethod
    def success(cls, kind: str, identity: str, value) -> "ItemResult[T]":
        return cls(kind=kind, identity=identity, ok=True, value=tuple(value))

    @classmethod
    def failure(cls, kind: str, identity: str, error_code: str, error_message: str) -> "ItemResult[T]":
        return cls(kind=kind, identity=identity, ok=False, error_code=error_code, error_message=error_message)


@dataclass(frozen=True)
class AccountResolution:
    """Ключи одной учётной записи и ошибки по её элементам."""

    keys: tuple[str, ...]
    users: tuple[str, ...]
    failures: tuple[ItemResult, ...] = ()


@dataclass
class AccountResult:
    """
    Назначение:
        Единица результата на учётную запись, передаётся в Output Sink.
    """

    name: str
    keys: list[str] = field(default_factory=list)
    failures: list[ItemResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


__all__ = [
    "AccountResolution",
    "AccountResult",
    "AccountSpec",
    "ITEM_KIND_TEAM",
    "ITEM_KIND_USER",
    "ItemResult",
    "TeamIdentity",
]
