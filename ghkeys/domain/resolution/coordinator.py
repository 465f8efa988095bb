from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from ghkeys.domain.models import AccountResult, AccountSpec
from ghkeys.domain.resolution.resolver import KeyResolver
from ghkeys.loggingSetup import logEvent


def select_accounts(accounts: Iterable[AccountSpec], filter_name: str | None = None) -> list[AccountSpec]:
    """
    Назначение:
        Отбор учётных записей для запуска.
    Контракт:
        - Пустой/None filter_name -> все записи в порядке конфигурации.
        - Иначе только записи с точным совпадением имени (ноль или одна).
    """
    if not filter_name:
        return list(accounts)
    return [account for account in accounts if account.name == filter_name]


class AccountFanOut:
    """
    Назначение/ответственность:
        Запускает KeyResolver параллельно для всех выбранных учётных записей.
    Взаимодействия:
        - Все записи делят один ResolutionCache внутри resolver,
          поэтому общие команды/пользователи запрашиваются один раз.
    """

    def __init__(self, resolver: KeyResolver, logger: logging.Logger | None = None, run_id: str = ""):
        self.resolver = resolver
        self.logger = logger or logging.getLogger("ghkeys.coordinator")
        self.run_id = run_id

    async def resolve_all(
        self,
        accounts: Iterable[AccountSpec],
        filter_name: str | None = None,
    ) -> dict[str, AccountResult]:
        """
        Контракт (вход/выход):
            Вход: учётные записи и необязательный фильтр по имени.
            Выход: {имя: AccountResult} в порядке конфигурации.
        """
        selected = select_accounts(accounts, filter_name)
        if filter_name and not selected:
            logEvent(self.logger, logging.WARNING, self.run_id, "coordinator", f"No account named '{filter_name}' in config")

        results = await asyncio.gather(*(self._resolve_account(account) for account in selected))
        return {result.name: result for result in results}

    async def _resolve_account(self, account: AccountSpec) -> AccountResult:
        resolution = await self.resolver.resolve(account.declared_users, account.declared_teams)
        logEvent(
            self.logger,
            logging.INFO,
            self.run_id,
            "coordinator",
            f"account '{account.name}' users={len(resolution.users)} keys={len(resolution.keys)} "
            f"failed_items={len(resolution.failures)}",
        )
        return AccountResult(name=account.name, keys=list(resolution.keys), failures=list(resolution.failures))


__all__ = ["AccountFanOut", "select_accounts"]
