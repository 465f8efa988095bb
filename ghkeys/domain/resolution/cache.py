from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, TypeVar

T = TypeVar("T")

Resolver = Callable[[str], Awaitable[Iterable[T]]]

NAMESPACE_TEAM = "team"
NAMESPACE_USER = "user"


@dataclass
class CacheStats:
    """Счётчики кэша за запуск: hits - из кэша или из уже идущего вызова, misses - новые вызовы."""

    hits: int = 0
    misses: int = 0


class ResolutionCache:
    """
    Назначение/ответственность:
        Мемоизация разрешения команд и пользователей на время одного запуска.
        Создаётся на каждый запуск и передаётся в KeyResolver явно.

    Инварианты/гарантии:
        - Заполненная запись не меняется и не истекает до конца запуска.
        - Не более одного одновременного вызова resolver на ключ:
          параллельные запросы того же ключа ждут уже запущенный вызов.
        - Ошибки не кэшируются: ожидающие получают исключение,
          следующий запрос того же ключа запускает новый вызов.
    """

    def __init__(self) -> None:
        self._team_members: dict[str, tuple[str, ...]] = {}
        self._user_keys: dict[str, tuple[str, ...]] = {}
        self._inflight: dict[tuple[str, str], asyncio.Future] = {}
        self._lock = asyncio.Lock()
        self.stats = {NAMESPACE_TEAM: CacheStats(), NAMESPACE_USER: CacheStats()}

    async def get_or_resolve_team_members(self, team_key: str, resolver: Resolver[str]) -> tuple[str, ...]:
        return await self._get_or_resolve(NAMESPACE_TEAM, self._team_members, team_key, resolver)

    async def get_or_resolve_user_keys(self, login: str, resolver: Resolver[str]) -> tuple[str, ...]:
        return await self._get_or_resolve(NAMESPACE_USER, self._user_keys, login, resolver)

    def cached_team_members(self, team_key: str) -> tuple[str, ...] | None:
        return self._team_members.get(team_key)

    def cached_user_keys(self, login: str) -> tuple[str, ...] | None:
        return self._user_keys.get(login)

    async def _get_or_resolve(
        self,
        namespace: str,
        store: dict[str, tuple[str, ...]],
        key: str,
        resolver: Resolver[str],
    ) -> tuple[str, ...]:
        stats = self.stats[namespace]
        async with self._lock:
            if key in store:
                stats.hits += 1
                return store[key]
            task = self._inflight.get((namespace, key))
            if task is None:
                stats.misses += 1
                task = asyncio.ensure_future(self._populate(namespace, store, key, resolver))
                self._inflight[(namespace, key)] = task
            else:
                stats.hits += 1
        # shield: отмена одного ожидающего не отменяет общий вызов
        return await asyncio.shield(task)

    async def _populate(
        self,
        namespace: str,
        store: dict[str, tuple[str, ...]],
        key: str,
        resolver: Resolver[str],
    ) -> tuple[str, ...]:
        try:
            value = tuple(await resolver(key))
            store[key] = value
            return value
        finally:
            self._inflight.pop((namespace, key), None)

    def summary(self) -> dict[str, dict[str, int]]:
        return {
            name: {"hits": stats.hits, "misses": stats.misses, "entries": len(self._store(name))}
            for name, stats in self.stats.items()
        }

    def _store(self, namespace: str) -> dict[str, tuple[str, ...]]:
        return self._team_members if namespace == NAMESPACE_TEAM else self._user_keys


__all__ = ["CacheStats", "ResolutionCache"]
