from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ReportMeta:
    """
    Назначение:
        Метаданные запуска команды.
    """

    run_id: str
    command: str
    started_at: str
    finished_at: str | None = None
    duration_ms: int | None = None
    account_filter: str | None = None
    write_mode: bool = False
    app_version: str | None = None


@dataclass
class ReportSummary:
    """
    Назначение:
        Счётчики выполнения синхронизации.
    """

    accounts_total: int = 0
    accounts_failed: int = 0
    keys_total: int = 0
    teams_failed: int = 0
    users_failed: int = 0
    writes_ok: int = 0
    writes_failed: int = 0
    writes_skipped: int = 0
    api_requests: int = 0
    api_retries: int = 0
    cache: dict[str, dict[str, int]] = field(default_factory=dict)


@dataclass
class ReportItem:
    """
    Назначение:
        Единица отчёта: элемент (команда/пользователь/запись файла) с ошибкой
        либо итог по учётной записи.
    """

    status: str
    kind: str
    account: str | None
    identity: str | None = None
    code: str | None = None
    message: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReportEnvelope:
    """
    Назначение:
        Корневой объект отчёта.
    """

    status: str
    meta: ReportMeta
    summary: ReportSummary
    items: list[ReportItem]
    context: dict[str, Any] = field(default_factory=dict)
