from __future__ import annotations

import json
import logging
from typing import Any, Callable, List, Optional

import typer

from .common.run_id import generate_run_id
from .common.sanitize import maskRecord, maskSecret
from .config import Settings, load_settings
from .domain.events import IterationErrorEvent
from .errors import AppError
from .infra.http.api_client import ApiClient, ApiError
from .infra.http.rest_repository import RestApiRepository
from .infra.logging.setup import closeCommandLogger, createCommandLogger, logEvent
from .repository.base import matches_search_params

app = typer.Typer(no_args_is_help=True, add_completion=False)

EXIT_NOT_FOUND = 1
EXIT_CONFIG_OR_API = 2
EXIT_ITERATION_ERROR = 3


def missingApiSettings(settings: Settings) -> list[str]:
    """
    Назначение:
        Возвращает имена незаданных параметров, без которых нельзя обратиться к API.
    """
    missing = []
    if not settings.base_url:
        missing.append("base_url")
    if not settings.resource_path:
        missing.append("resource_path")
    return missing


def printRunHeader(runId: str, command: str, settings: Settings, sources: list[str]) -> None:
    """
    Назначение:
        Печатает безопасную сводку параметров запуска (без секретов).
    """
    typer.echo(
        f"run_id={runId} command={command} "
        f"base_url={settings.base_url} resource_path={settings.resource_path} "
        f"api_token={maskSecret(settings.api_token)} sources={sources} "
        f"max_page_size={settings.max_page_size} page_size={settings.page_size}"
    )


def parsePairs(pairs: list[str] | None, optionName: str) -> dict[str, Any]:
    """
    Назначение:
        Разбирает повторяемую опцию key=value в словарь search_params.

    Алгоритм:
        - Значение парсится как JSON (числа, true/false, null, строки в кавычках);
          если не JSON — остаётся строкой.
        - Пара без '=' — ошибка использования (exit code 2).
    """
    result: dict[str, Any] = {}
    for pair in pairs or []:
        if "=" not in pair:
            typer.echo(f"ERROR: {optionName} expects key=value, got: {pair}", err=True)
            raise typer.Exit(code=EXIT_CONFIG_OR_API)
        key, raw = pair.split("=", 1)
        try:
            value = json.loads(raw)
        except ValueError:
            value = raw
        result[key.strip()] = value
    return result


def echoRecord(record: Any) -> None:
    typer.echo(json.dumps(maskRecord(record), ensure_ascii=False, default=str))


def buildClient(settings: Settings, transport=None) -> ApiClient:
    return ApiClient(
        baseUrl=settings.base_url or "",
        apiToken=settings.api_token,
        timeoutSeconds=settings.timeout_seconds,
        tlsSkipVerify=settings.tls_skip_verify,
        caFile=settings.ca_file,
        retries=settings.retries,
        retryBackoffSeconds=settings.retry_backoff_seconds,
        transport=transport,
    )


def buildRepository(
    client: ApiClient,
    settings: Settings,
    logger: logging.Logger,
    runId: str,
) -> RestApiRepository:
    repo = RestApiRepository(
        client,
        settings.resource_path or "",
        id_field=settings.id_field,
        max_page_size=settings.max_page_size,
        max_pages=settings.max_pages,
        logger=logger,
        run_id=runId,
    )
    repo.page_size = settings.page_size
    return repo


def runCommand(
    ctx: typer.Context,
    commandName: str,
    requiresApiAccess: bool,
    runner: Callable[[logging.Logger, RestApiRepository], int],
) -> None:
    """
    Назначение:
        Унифицированная обвязка выполнения команд:
        - создаёт логгер + файл лога
        - проверяет обязательные параметры API
        - создаёт ApiClient + репозиторий и закрывает клиент после runner
        - гарантирует закрытие лога и код выхода в finally
    """
    runId = ctx.obj["runId"]
    settings: Settings = ctx.obj["settings"]

    logger, logFilePath = createCommandLogger(
        commandName=commandName,
        logDir=settings.log_dir,
        runId=runId,
        logLevel=settings.log_level,
    )

    exitCode: int | None = None

    try:
        logEvent(logger, logging.INFO, runId, "core", f"Command started sources={ctx.obj['sources']}")

        if requiresApiAccess:
            missing = missingApiSettings(settings)
            if missing:
                logEvent(logger, logging.ERROR, runId, "config", f"Missing API settings: {', '.join(missing)}")
                typer.echo(f"ERROR: missing API settings: {', '.join(missing)}", err=True)
                exitCode = EXIT_CONFIG_OR_API
                return

        with buildClient(settings, ctx.obj["transport"]) as client:
            exitCode = runner(logger, buildRepository(client, settings, logger, runId))

    finally:
        logEvent(logger, logging.INFO, runId, "core", f"Command finished exit_code={exitCode} log={logFilePath}")
        closeCommandLogger(logger)

        if exitCode:
            raise typer.Exit(code=exitCode)


def _subscribeIterationErrors(repo: RestApiRepository, errors: list[IterationErrorEvent]) -> None:
    def onIterationError(event: IterationErrorEvent) -> None:
        errors.append(event)
        cause = event.cause
        typer.echo(f"ERROR: iteration failed: {cause if cause is not None else event.error}", err=True)

    repo.iteration_error.subscribe(onIterationError)


@app.callback()
def main(
    ctx: typer.Context,
    config: str | None = typer.Option(None, "--config", help="Path to config.yml"),
    runId: str | None = typer.Option(None, "--run-id", help="Run identifier (UUID). If omitted, generated."),
    logLevel: str | None = typer.Option(None, "--log-level", help="Log level: ERROR|WARN|INFO|DEBUG"),
    logDir: str | None = typer.Option(None, "--log-dir", help="Directory for logs."),
    baseUrl: str | None = typer.Option(None, "--base-url", help="API base URL"),
    apiToken: str | None = typer.Option(None, "--api-token", help="API bearer token (avoid; use env/file)"),
    resourcePath: str | None = typer.Option(None, "--resource-path", help="Collection path, e.g. /users"),
    idField: str | None = typer.Option(None, "--id-field", help="Record id field name"),
    maxPageSize: int | None = typer.Option(None, "--max-page-size", help="Largest page size the API allows"),
    pageSize: int | None = typer.Option(None, "--page-size", help="Default page size for scans"),
    maxPages: int | None = typer.Option(None, "--max-pages", help="Max pages to fetch from API"),
    timeoutSeconds: float | None = typer.Option(None, "--timeout-seconds", help="API timeout in seconds"),
    retries: int | None = typer.Option(None, "--retries", help="Retry attempts for API calls"),
    retryBackoffSeconds: float | None = typer.Option(None, "--retry-backoff-seconds", help="Base backoff for retries"),
    tlsSkipVerify: bool | None = typer.Option(None, "--tls-skip-verify", help="Disable TLS verification"),
    caFile: str | None = typer.Option(None, "--ca-file", help="CA file path"),
):
    """
    Назначение:
        Глобальная инициализация CLI:
        - генерирует/принимает run_id
        - загружает настройки (CLI > ENV > config > defaults)
        - сохраняет всё в ctx.obj для подкоманд
    """
    transport = (ctx.obj or {}).get("transport")

    if not runId:
        runId = generate_run_id()

    cliOverrides = {
        "base_url": baseUrl,
        "api_token": apiToken,
        "resource_path": resourcePath,
        "id_field": idField,
        "max_page_size": maxPageSize,
        "page_size": pageSize,
        "max_pages": maxPages,
        "timeout_seconds": timeoutSeconds,
        "retries": retries,
        "retry_backoff_seconds": retryBackoffSeconds,
        "tls_skip_verify": tlsSkipVerify,
        "ca_file": caFile,
        "log_level": logLevel,
        "log_dir": logDir,
    }
    loaded = load_settings(config_path=config, cli_overrides=cliOverrides)

    ctx.obj = {
        "runId": runId,
        "settings": loaded.settings,
        "sources": loaded.sources_used,
        "configPath": config,
        "transport": transport,
    }


@app.command("check-api")
def checkApi(ctx: typer.Context):
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]
    printRunHeader(runId, "check-api", settings, ctx.obj["sources"])

    def execute(logger: logging.Logger, repo: RestApiRepository) -> int:
        try:
            repo.iterator.page_size = 1
            first = repo.iterator.current()
            logEvent(logger, logging.INFO, runId, "api", f"api ok base_url={settings.base_url} empty={first is None}")
            typer.echo("api ok")
            return 0
        except ApiError as exc:
            logEvent(logger, logging.ERROR, runId, "api", f"API check failed: {exc}")
            typer.echo(f"ERROR: API check failed: {exc}", err=True)
            return EXIT_CONFIG_OR_API

    runCommand(ctx, "check-api", requiresApiAccess=True, runner=execute)


@app.command("find")
def findCommand(
    ctx: typer.Context,
    where: Optional[List[str]] = typer.Option(None, "--where", help="Match condition key=value (repeatable)"),
):
    """Scan the collection one record at a time and print the first match."""
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]
    conditions = parsePairs(where, "--where")

    def execute(logger: logging.Logger, repo: RestApiRepository) -> int:
        errors: list[IterationErrorEvent] = []
        _subscribeIterationErrors(repo, errors)
        record = repo.find(lambda element: matches_search_params(element, conditions))
        if errors:
            return EXIT_ITERATION_ERROR
        if record is None:
            typer.echo("not found", err=True)
            return EXIT_NOT_FOUND
        echoRecord(record)
        return 0

    runCommand(ctx, "find", requiresApiAccess=True, runner=execute)


@app.command("get")
def getCommand(
    ctx: typer.Context,
    param: Optional[List[str]] = typer.Option(None, "--param", help="Search parameter key=value (repeatable)"),
):
    """Look up one record, server-side by id when possible."""
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]
    searchParams = parsePairs(param, "--param")

    def execute(logger: logging.Logger, repo: RestApiRepository) -> int:
        errors: list[IterationErrorEvent] = []
        _subscribeIterationErrors(repo, errors)
        try:
            record = repo.get(searchParams)
        except AppError as exc:
            logEvent(logger, logging.ERROR, runId, "api", f"get failed: {exc}")
            typer.echo(f"ERROR: get failed: {exc}", err=True)
            return EXIT_CONFIG_OR_API
        if errors:
            return EXIT_ITERATION_ERROR
        if record is None:
            typer.echo("not found", err=True)
            return EXIT_NOT_FOUND
        echoRecord(record)
        return 0

    runCommand(ctx, "get", requiresApiAccess=True, runner=execute)


@app.command("get-all")
def getAllCommand(
    ctx: typer.Context,
    limit: int | None = typer.Option(None, "--limit", help="Print at most N records"),
):
    """Fetch the whole collection in max-size pages and print it as JSON lines."""
    settings: Settings = ctx.obj["settings"]
    runId = ctx.obj["runId"]

    def execute(logger: logging.Logger, repo: RestApiRepository) -> int:
        errors: list[IterationErrorEvent] = []
        _subscribeIterationErrors(repo, errors)
        records = repo.get_all()
        if errors:
            return EXIT_ITERATION_ERROR
        logEvent(logger, logging.INFO, runId, "api", f"get-all records={len(records)}")
        for record in records if limit is None else records[:limit]:
            echoRecord(record)
        return 0

    runCommand(ctx, "get-all", requiresApiAccess=True, runner=execute)
