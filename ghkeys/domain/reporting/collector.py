from __future__ import annotations

from dataclasses import asdict
from typing import Any

from ghkeys.common.time import getNowIso
from ghkeys.domain.models import ITEM_KIND_TEAM, ITEM_KIND_USER, AccountResult
from ghkeys.domain.reporting.models import ReportEnvelope, ReportItem, ReportMeta, ReportSummary

STATUS_SUCCESS = "SUCCESS"
STATUS_PARTIAL = "PARTIAL"
STATUS_FAILED = "FAILED"


class ReportCollector:
    """
    Назначение/ответственность:
        Единый сборщик отчёта запуска: итоги по учётным записям,
        ошибки по командам/пользователям и записи файлов.
    """

    def __init__(self, run_id: str, command: str, started_at: str | None = None) -> None:
        self.meta = ReportMeta(run_id=run_id, command=command, started_at=started_at or getNowIso())
        self.summary = ReportSummary()
        self.items: list[ReportItem] = []
        self.context: dict[str, Any] = {}
        self.status: str | None = None

    def set_context(self, name: str, value: dict[str, Any]) -> None:
        self.context[name] = value

    def add_account(self, result: AccountResult) -> None:
        """Учитывает итог учётной записи и все её неуспешные элементы."""
        self.summary.accounts_total += 1
        self.summary.keys_total += len(result.keys)
        if result.failures:
            self.summary.accounts_failed += 1
        for failure in result.failures:
            if failure.kind == ITEM_KIND_TEAM:
                self.summary.teams_failed += 1
            elif failure.kind == ITEM_KIND_USER:
                self.summary.users_failed += 1
            self.items.append(
                ReportItem(
                    status="failed",
                    kind=failure.kind,
                    account=result.name,
                    identity=failure.identity,
                    code=failure.error_code,
                    message=failure.error_message,
                )
            )
        self.items.append(
            ReportItem(
                status="partial" if result.failures else "ok",
                kind="account",
                account=result.name,
                meta={"keys": len(result.keys)},
            )
        )

    def add_write(self, account: str, status: str, path: str | None = None, message: str | None = None) -> None:
        """status: ok|failed|skipped."""
        if status == "ok":
            self.summary.writes_ok += 1
            return
        if status == "skipped":
            self.summary.writes_skipped += 1
        else:
            self.summary.writes_failed += 1
        self.items.append(
            ReportItem(
                status=status,
                kind="write",
                account=account,
                code="OUTPUT_ERROR" if status == "failed" else None,
                message=message,
                meta={"path": path} if path else {},
            )
        )

    def set_cache_stats(self, stats: dict[str, dict[str, int]]) -> None:
        self.summary.cache = stats

    def set_api_stats(self, requests: int, retries: int) -> None:
        """Число HTTP-запросов к GitHub за запуск (включая повторы) и число повторов."""
        self.summary.api_requests = requests
        self.summary.api_retries = retries

    @property
    def has_failures(self) -> bool:
        return self.summary.accounts_failed > 0 or self.summary.writes_failed > 0

    def finish(self, duration_ms: int | None = None, status: str | None = None) -> None:
        self.meta.finished_at = getNowIso()
        self.meta.duration_ms = duration_ms
        if status is not None:
            self.status = status
        elif self.status is None:
            self.status = STATUS_PARTIAL if self.has_failures else STATUS_SUCCESS

    def build(self) -> ReportEnvelope:
        return ReportEnvelope(
            status=self.status or STATUS_SUCCESS,
            meta=self.meta,
            summary=self.summary,
            items=list(self.items),
            context=dict(self.context),
        )


def asdict_report(envelope: ReportEnvelope) -> dict[str, Any]:
    """
    Назначение:
        Сериализация отчёта в dict для JSON.
    """
    return {
        "status": envelope.status,
        "meta": asdict(envelope.meta),
        "summary": asdict(envelope.summary),
        "items": [asdict(item) for item in envelope.items],
        "context": envelope.context,
    }


__all__ = ["ReportCollector", "STATUS_FAILED", "STATUS_PARTIAL", "STATUS_SUCCESS", "asdict_report"]
