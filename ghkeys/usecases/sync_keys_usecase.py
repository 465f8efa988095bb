from __future__ import annotations

import asyncio
import logging
from typing import Callable, Iterable

from ghkeys.domain.exceptions import OutputError
from ghkeys.domain.models import AccountResult, AccountSpec
from ghkeys.domain.ports.directory import DirectoryClientProtocol
from ghkeys.domain.reporting.collector import ReportCollector
from ghkeys.domain.resolution.cache import ResolutionCache
from ghkeys.domain.resolution.coordinator import AccountFanOut
from ghkeys.domain.resolution.resolver import KeyResolver
from ghkeys.infra.output.authorized_keys import (
    getKeysOutput,
    lookupHomeDir,
    writeKeysToUserAuthorizedKeysFile,
)
from ghkeys.loggingSetup import logEvent


class SyncKeysUseCase:
    """
    Назначение/ответственность:
        Один запуск синхронизации: разрешение ключей всех (или одной)
        учётных записей и вывод результата в stdout либо в authorized_keys.

    Взаимодействия:
        - DirectoryClientProtocol - удалённый каталог (GitHub).
        - ResolutionCache создаётся заново на каждый вызов resolve().
        - ReportCollector получает итоги и ошибки по элементам.
    """

    def __init__(
        self,
        logger: logging.Logger,
        run_id: str,
        max_concurrency: int | None = None,
        echo: Callable[[str], None] = print,
        home_lookup: Callable[[str], str | None] = lookupHomeDir,
    ):
        self.logger = logger
        self.run_id = run_id
        self.max_concurrency = max_concurrency
        self.echo = echo
        self.home_lookup = home_lookup
        self.cache: ResolutionCache | None = None

    async def resolve(
        self,
        directory: DirectoryClientProtocol,
        accounts: Iterable[AccountSpec],
        filter_name: str | None = None,
    ) -> dict[str, AccountResult]:
        """
        Контракт (вход/выход):
            Вход: каталог, учётные записи, необязательный фильтр по имени.
            Выход: {имя: AccountResult}.
        """
        self.cache = ResolutionCache()
        limiter = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else None
        resolver = KeyResolver(directory, self.cache, limiter=limiter, logger=self.logger, run_id=self.run_id)
        fanout = AccountFanOut(resolver, logger=self.logger, run_id=self.run_id)
        results = await fanout.resolve_all(accounts, filter_name)
        logEvent(self.logger, logging.DEBUG, self.run_id, "cache", f"cache stats {self.cache.summary()}")
        return results

    def emit(self, results: dict[str, AccountResult], write: bool, report: ReportCollector) -> int:
        """
        Назначение:
            Отдаёт результаты в Output Sink и заполняет отчёт.

        Выходные данные:
            int
                0 - без ошибок, 1 - были ошибки по элементам или записи файлов.
        """
        for name, result in results.items():
            report.add_account(result)
            if write:
                self._write_account(name, result, report)
            else:
                self.echo(getKeysOutput(result.keys))

        if self.cache is not None:
            report.set_cache_stats(self.cache.summary())
        return 1 if report.has_failures else 0

    def _write_account(self, name: str, result: AccountResult, report: ReportCollector) -> None:
        homeDir = self.home_lookup(name)
        if homeDir is None:
            logEvent(self.logger, logging.WARNING, self.run_id, "output", f"User '{name}' not found, no keys written.")
            report.add_write(name, "skipped", message="local user not found")
            return
        try:
            path = writeKeysToUserAuthorizedKeysFile(result.keys, homeDir)
        except OutputError as exc:
            logEvent(self.logger, logging.ERROR, self.run_id, "output", str(exc))
            report.add_write(name, "failed", path=exc.path, message=exc.message)
            return
        logEvent(self.logger, logging.INFO, self.run_id, "output", f"wrote {len(result.keys)} keys to {path}")
        report.add_write(name, "ok", path=path)


def format_failure_summary(results: dict[str, AccountResult]) -> list[str]:
    """Строки сводки по неуспешным элементам для оператора."""
    lines: list[str] = []
    for name, result in results.items():
        for failure in result.failures:
            lines.append(
                f"account={name} {failure.kind}={failure.identity} code={failure.error_code} msg={failure.error_message}"
            )
    return lines


__all__ = ["SyncKeysUseCase", "format_failure_summary"]
