from __future__ import annotations

import asyncio
import logging
import time
from pathlib import Path

import typer

from ghkeys import __version__
from ghkeys.common.run_id import generate_run_id
from ghkeys.common.sanitize import maskSecret
from ghkeys.common.time import getDurationMs
from ghkeys.config import LoadedSettings, Settings, load_settings
from ghkeys.domain.exceptions import ConfigError
from ghkeys.domain.models import AccountResult
from ghkeys.domain.reporting.collector import STATUS_FAILED
from ghkeys.infra.artifacts.report_writer import createEmptyReport, finalizeReport, writeReportJson
from ghkeys.infra.http.github_client import ApiError, GithubApiClient
from ghkeys.infra.http.github_directory import GithubDirectory
from ghkeys.infra.output.authorized_keys import lookupHomeDir
from ghkeys.loggingSetup import closeCommandLogger, createCommandLogger, logEvent
from ghkeys.usecases.sync_keys_usecase import SyncKeysUseCase, format_failure_summary

USAGE_MESSAGE = """
'ghkeys' uses the GitHub API to get the SSH keys of individual users and/or
members of teams and either print them or write them to authorized_keys files.

Pass a single USERNAME argument to `sync` to only print/write keys for that user.
"""

app = typer.Typer(no_args_is_help=True, add_completion=False, help=USAGE_MESSAGE)


def printVersion() -> None:
    typer.echo(f"ghkeys version {__version__}")


def versionCallback(value: bool) -> None:
    if value:
        printVersion()
        raise typer.Exit()


def loadContextSettings(ctx: typer.Context) -> LoadedSettings:
    """
    Назначение:
        Ленивая загрузка настроек для подкоманды (CLI > ENV > config > defaults).

    Поведение:
        - ConfigError фатальна: сообщение в stderr и exit code 2.
    """
    loaded = ctx.obj.get("loaded")
    if loaded is not None:
        return loaded
    try:
        loaded = load_settings(config_path=ctx.obj["configPath"], cli_overrides=ctx.obj["cliOverrides"])
    except ConfigError as exc:
        typer.echo(f"ERROR: {exc.describe()}", err=True)
        raise typer.Exit(code=2)
    ctx.obj["loaded"] = loaded
    return loaded


def requireApi(settings: Settings) -> None:
    """
    Назначение:
        Проверяет наличие параметров API для команд, которым нужен доступ к GitHub.

    Поведение:
        - Если токена нет - exit code 2.
    """
    if not settings.github_token:
        typer.echo("ERROR: missing API settings: github_token", err=True)
        raise typer.Exit(code=2)


def createApiClient(settings: Settings) -> GithubApiClient:
    return GithubApiClient(
        token=settings.github_token or "",
        baseUrl=settings.api_url,
        timeoutSeconds=settings.timeout_seconds,
        retries=settings.retries,
        retryBackoffSeconds=settings.retry_backoff_seconds,
    )


def runWithReport(ctx: typer.Context, commandName: str, runner) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - загружает настройки и проверяет доступ к API
        - создаёт логгер (файл в log_dir или stderr)
        - создаёт report skeleton и записывает его в report_dir (если задан)

    Поведение:
        - Ошибки конфигурации: exit code 2.
        - runner(logger, report, loaded) возвращает exit code.
    """
    runId = ctx.obj["runId"]
    loaded = loadContextSettings(ctx)
    settings = loaded.settings
    requireApi(settings)

    startMonotonic = time.monotonic()
    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )
    report = createEmptyReport(runId=runId, command=commandName, configSources=loaded.sources_used, appVersion=__version__)

    exitCode: int | None = None
    try:
        logEvent(
            logger,
            logging.INFO,
            runId,
            "core",
            f"Command started command={commandName} api_url={settings.api_url} "
            f"github_token={maskSecret(settings.github_token)} sources={loaded.sources_used}",
        )
        exitCode = runner(logger, report, loaded)
    except Exception as exc:
        logEvent(logger, logging.ERROR, runId, "core", f"Command failed: {exc}")
        report.finish(status=STATUS_FAILED)
        raise
    finally:
        durationMs = getDurationMs(startMonotonic, time.monotonic())
        finalizeReport(report=report, durationMs=durationMs, logFile=logFilePath, reportDir=settings.report_dir)
        if settings.report_dir:
            reportPath = writeReportJson(report, settings.report_dir)
            logEvent(logger, logging.INFO, runId, "report", f"Report written: {reportPath}")
        closeCommandLogger(logger)

    if exitCode:
        raise typer.Exit(code=exitCode)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to yaml config file (default: config.yml)"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs (default: stderr)."),
    reportDir: str | None = typer.Option(None, "--report-dir", help="Directory for JSON run reports."),
    apiUrl: str | None = typer.Option(None, "--api-url", help="GitHub API base URL"),
    token: str | None = typer.Option(None, "--token", help="GitHub token (avoid; use env/file)"),
    tokenFile: str | None = typer.Option(None, "--token-file", help="Read GitHub token from file"),
    timeoutSeconds: float | None = typer.Option(None, "--timeout-seconds", help="Timeout per API request"),
    retries: int | None = typer.Option(None, "--retries", help="Retry attempts for API calls"),
    pageSize: int | None = typer.Option(None, "--page-size", help="Page size for API pagination (max 100)"),
    maxPages: int | None = typer.Option(None, "--max-pages", help="Max pages per API listing"),
    maxConcurrency: int | None = typer.Option(None, "--max-concurrency", help="Max concurrent API calls"),
    version: bool | None = typer.Option(
        None, "--version", help="Display the version number", callback=versionCallback, is_eager=True
    ),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - собирает CLI-переопределения настроек
        - сохраняет всё в ctx.obj для подкоманд (настройки грузятся лениво)
    """
    if tokenFile and not token:
        p = Path(tokenFile)
        if not p.exists() or not p.is_file():
            typer.echo(f"ERROR: token-file not found: {tokenFile}", err=True)
            raise typer.Exit(code=2)
        token = p.read_text(encoding="utf-8").strip()

    ctx.obj = {
        "runId": runId or generate_run_id(),
        "configPath": config,
        "cliOverrides": {
            "github_token": token,
            "api_url": apiUrl,
            "log_level": logLevel,
            "log_dir": logDir,
            "report_dir": reportDir,
            "timeout_seconds": timeoutSeconds,
            "retries": retries,
            "page_size": pageSize,
            "max_pages": maxPages,
            "max_concurrency": maxConcurrency,
        },
    }


@app.command()
def sync(
    ctx: typer.Context,
    username: str | None = typer.Argument(None, help="Only resolve keys for this local username"),
    write: bool = typer.Option(False, "--write", help="Write keys to users' authorized_keys files"),
):
    """Resolve keys for configured users and print them or write authorized_keys."""
    runId = ctx.obj["runId"]

    def execute(logger, report, loaded: LoadedSettings) -> int:
        settings = loaded.settings
        report.meta.account_filter = username
        report.meta.write_mode = write

        useCase = SyncKeysUseCase(
            logger=logger,
            run_id=runId,
            max_concurrency=settings.max_concurrency,
            echo=typer.echo,
            home_lookup=lookupHomeDir,
        )

        async def resolveAll() -> dict[str, AccountResult]:
            async with createApiClient(settings) as client:
                directory = GithubDirectory(client, page_size=settings.page_size, max_pages=settings.max_pages)
                try:
                    return await useCase.resolve(directory, loaded.accounts, username)
                finally:
                    report.set_api_stats(client.getRequestsSent(), client.getRetryAttempts())

        results = asyncio.run(resolveAll())
        if username and not results:
            typer.echo(f"WARNING: no user '{username}' in config", err=True)

        code = useCase.emit(results, write=write, report=report)

        failures = format_failure_summary(results)
        if failures:
            typer.echo(f"WARNING: {len(failures)} item(s) failed to resolve:", err=True)
            for line in failures:
                typer.echo(f"  {line}", err=True)
        if report.summary.writes_failed:
            typer.echo(f"ERROR: {report.summary.writes_failed} authorized_keys write(s) failed (see logs)", err=True)
        return code

    runWithReport(ctx, "sync", execute)


@app.command("rate-limit")
def rateLimit(ctx: typer.Context):
    """Print the GitHub API rate limit of the configured token."""
    runId = ctx.obj["runId"]

    def execute(logger, report, loaded: LoadedSettings) -> int:
        async def fetch() -> dict:
            async with createApiClient(loaded.settings) as client:
                try:
                    return await client.getRateLimit()
                finally:
                    report.set_api_stats(client.getRequestsSent(), client.getRetryAttempts())

        try:
            data = asyncio.run(fetch())
        except ApiError as exc:
            logEvent(logger, logging.ERROR, runId, "api", f"Error fetching GitHub API Rate Limit: {exc.describe()}")
            typer.echo(f"ERROR: failed to fetch rate limit: {exc}", err=True)
            report.finish(status=STATUS_FAILED)
            return 2

        core = (data.get("resources") or {}).get("core") or data.get("rate") or {}
        typer.echo(
            f"limit={core.get('limit')} remaining={core.get('remaining')} reset={core.get('reset')}"
        )
        return 0

    runWithReport(ctx, "rate-limit", execute)
