from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ghkeys.domain.reporting.collector import ReportCollector, asdict_report


def createEmptyReport(runId: str, command: str, configSources: list[str], appVersion: str | None = None) -> ReportCollector:
    """
    Назначение:
        Отчёт-скелет запуска ghkeys: run_id, команда, версия и откуда взяты настройки.
    """
    collector = ReportCollector(run_id=runId, command=command)
    collector.meta.app_version = appVersion
    if configSources:
        collector.set_context("config", {"sources": configSources})
    return collector


def getReportPath(reportDir: str, report: ReportCollector) -> Path:
    """report_<command>_<run_id>.json внутри reportDir."""
    return Path(reportDir) / f"report_{report.meta.command}_{report.meta.run_id}.json"


def finalizeReport(report: ReportCollector, durationMs: int, logFile: str | None, reportDir: str | None) -> None:
    report.set_context(
        "runtime",
        {
            "log_file": logFile,
            "report_file": str(getReportPath(reportDir, report)) if reportDir else None,
        },
    )
    report.finish(duration_ms=durationMs)


def writeReportJson(report: ReportCollector, reportDir: str) -> str:
    """
    Назначение:
        Записывает отчёт в JSON (каталог создаётся при необходимости).

    Выходные данные:
        str
            Путь к файлу отчёта.
    """
    reportPath = getReportPath(reportDir, report)
    reportPath.parent.mkdir(parents=True, exist_ok=True)

    data: dict[str, Any] = asdict_report(report.build())
    with reportPath.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)

    return str(reportPath)
