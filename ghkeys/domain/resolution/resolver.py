from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Awaitable, Callable, Iterable, TypeVar

from ghkeys.domain.error_codes import ErrorCode
from ghkeys.domain.models import (
    ITEM_KIND_TEAM,
    ITEM_KIND_USER,
    AccountResolution,
    ItemResult,
    TeamIdentity,
)
from ghkeys.domain.ports.directory import DirectoryClientProtocol
from ghkeys.domain.resolution.cache import ResolutionCache
from ghkeys.loggingSetup import logEvent

T = TypeVar("T")


def error_code_of(exc: BaseException) -> str:
    """
    Назначение:
        Приводит исключение разрешения к коду ErrorCode.
    """
    code = getattr(exc, "code", None)
    if not isinstance(code, str):
        return ErrorCode.UNEXPECTED_ERROR.value
    if code.startswith("HTTP_"):
        return ErrorCode.from_status(getattr(exc, "status_code", None)).value
    if code in ErrorCode.__members__:
        return code
    return ErrorCode.API_ERROR.value


def dedupe_users(declared: Iterable[str], teams: Iterable[ItemResult[str]]) -> list[str]:
    """
    Назначение:
        Итоговый набор пользователей: объявленные + участники команд, без повторов.
    Алгоритм:
        - Первое вхождение побеждает, порядок - порядок появления.
        - Неуспешные команды ничего не добавляют.
    """
    users: list[str] = []
    seen: set[str] = set()
    for login in declared:
        if login not in seen:
            seen.add(login)
            users.append(login)
    for team in teams:
        if not team.ok:
            continue
        for login in team.value:
            if login not in seen:
                seen.add(login)
                users.append(login)
    return users


class KeyResolver:
    """
    Назначение/ответственность:
        Разрешает ключи одной учётной записи по объявленным пользователям и командам.

    Алгоритм:
        - Фаза 1: параллельно разворачивает команды в участников (через кэш).
        - Барьер: фаза 2 стартует только после завершения всех команд.
        - Фаза 2: параллельно получает ключи всех пользователей (через кэш).
        - Ключи разных пользователей не дедуплицируются.

    Ограничения:
        - Ошибка одной команды/пользователя не прерывает остальные,
          элемент просто не даёт ключей и попадает в failures.
        - limiter (если задан) ограничивает число одновременных удалённых вызовов.
    """

    def __init__(
        self,
        directory: DirectoryClientProtocol,
        cache: ResolutionCache,
        limiter: asyncio.Semaphore | None = None,
        logger: logging.Logger | None = None,
        run_id: str = "",
    ):
        self.directory = directory
        self.cache = cache
        self.limiter = limiter
        self.logger = logger or logging.getLogger("ghkeys.resolver")
        self.run_id = run_id

    async def resolve(self, declared_users: Iterable[str], declared_teams: Iterable[str]) -> AccountResolution:
        teams = list(dict.fromkeys(declared_teams))
        team_results = await asyncio.gather(*(self.resolve_team(team) for team in teams))

        users = dedupe_users(declared_users, team_results)
        user_results = await asyncio.gather(*(self.resolve_user(login) for login in users))

        keys: list[str] = []
        for result in user_results:
            keys.extend(result.value)

        failures = tuple(r for r in (*team_results, *user_results) if not r.ok)
        return AccountResolution(keys=tuple(keys), users=tuple(users), failures=failures)

    async def resolve_team(self, team_identity: str) -> ItemResult[str]:
        """Участники одной команды; ошибки превращаются в ItemResult(ok=False)."""

        async def fetch(_key: str) -> list[str]:
            team_id = await self._call(self.directory.resolve_team_id, team_identity)
            return await self._call(self.directory.list_team_members, team_id)

        try:
            cache_key = TeamIdentity.parse(team_identity).cache_key
            members = await self.cache.get_or_resolve_team_members(cache_key, fetch)
        except Exception as exc:
            return self._failed(ITEM_KIND_TEAM, team_identity, exc)
        logEvent(
            self.logger,
            logging.DEBUG,
            self.run_id,
            "resolver",
            f"team '{team_identity}' members={len(members)}",
        )
        return ItemResult.success(ITEM_KIND_TEAM, team_identity, members)

    async def resolve_user(self, login: str) -> ItemResult[str]:
        """Ключи одного пользователя; ошибки превращаются в ItemResult(ok=False)."""

        async def fetch(key: str) -> list[str]:
            return await self._call(self.directory.list_user_keys, key)

        try:
            keys = await self.cache.get_or_resolve_user_keys(login, fetch)
        except Exception as exc:
            return self._failed(ITEM_KIND_USER, login, exc)
        return ItemResult.success(ITEM_KIND_USER, login, keys)

    async def _call(self, fn: Callable[..., Awaitable[T]], *args) -> T:
        limiter = self.limiter if self.limiter is not None else contextlib.nullcontext()
        async with limiter:
            return await fn(*args)

    def _failed(self, kind: str, identity: str, exc: Exception) -> ItemResult[str]:
        code = error_code_of(exc)
        message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
        logEvent(self.logger, logging.WARNING, self.run_id, "resolver", f"{kind} '{identity}' failed: {code} {message}")
        return ItemResult.failure(kind, identity, code, message)


__all__ = ["KeyResolver", "dedupe_users", "error_code_of"]
