from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator

import httpx

from ghkeys.common.sanitize import truncateText
from ghkeys.errors import CATEGORY_API, AppError

DEFAULT_API_URL = "https://api.github.com"


class ApiError(AppError):
    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body_snippet: str | None = None,
        retryable: bool = False,
        details: dict | None = None,
        code: str | None = None,
    ):
        """
        Назначение:
            Исключение для ошибок HTTP/API уровня GithubApiClient.
        Контракт:
            - code: строковый код (HTTP_*, NETWORK_ERROR, INVALID_JSON и т.п.).
            - status_code/body_snippet используются для диагностики.
        """
        super().__init__(
            category=CATEGORY_API,
            code=code or (f"HTTP_{status_code}" if status_code else "API_ERROR"),
            message=message,
            retryable=retryable,
            details=details or {},
        )
        self.status_code = status_code
        self.body_snippet = body_snippet


class GithubApiClient:
    def __init__(
        self,
        token: str,
        baseUrl: str = DEFAULT_API_URL,
        timeoutSeconds: float = 20.0,
        retries: int = 0,
        retryBackoffSeconds: float = 0.5,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Назначение:
            Асинхронный клиент GitHub REST API с опциональной политикой ретраев.
        Контракт:
            - token обязателен, передаётся в заголовке Authorization.
            - retries=0 означает одну попытку без повторов.
            - timeoutSeconds применяется к каждому запросу отдельно.
        """
        self.baseUrl = baseUrl.rstrip("/")
        self.token = token
        self.retries = retries
        self.retryBackoffSeconds = retryBackoffSeconds
        self.retry_attempts = 0
        self.requests_sent = 0

        self.client = httpx.AsyncClient(
            base_url=self.baseUrl,
            timeout=timeoutSeconds,
            transport=transport,
        )

    async def __aenter__(self) -> "GithubApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.aclose()

    def getRetryAttempts(self) -> int:
        """Возвращает количество выполненных повторных попыток."""
        return self.retry_attempts

    def getRequestsSent(self) -> int:
        return self.requests_sent

    def _headers(self) -> dict[str, str]:
        """Базовые заголовки аутентификации GitHub."""
        return {
            "Accept": "application/vnd.github+json",
            "Authorization": f"token {self.token}",
            "User-Agent": "ghkeys",
        }

    def _should_retry(self, resp: httpx.Response) -> bool:
        """Решает, стоит ли повторить запрос (429 или 5xx)."""
        if resp.status_code == 429:
            return True
        if 500 <= resp.status_code <= 599:
            return True
        return False

    async def _sleep_backoff(self, attempt: int) -> None:
        """Задержка с экспоненциальным ростом для ретраев."""
        delay = self.retryBackoffSeconds * (2 ** attempt)
        await asyncio.sleep(delay)

    async def _request_with_retry(self, url: str, params: dict[str, Any] | None) -> httpx.Response:
        """GET с ретраями по 429/5xx и сетевым ошибкам, иначе ApiError."""
        attempt = 0
        while True:
            try:
                self.requests_sent += 1
                resp = await self.client.get(url, params=params, headers=self._headers())
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if attempt >= self.retries:
                    raise ApiError(
                        f"Network error: {exc}", status_code=None, retryable=True, code="NETWORK_ERROR"
                    ) from exc
                self.retry_attempts += 1
                await self._sleep_backoff(attempt)
                attempt += 1
                continue

            if resp.status_code == 200:
                return resp

            if self._should_retry(resp) and attempt < self.retries:
                self.retry_attempts += 1
                await self._sleep_backoff(attempt)
                attempt += 1
                continue

            body_snippet = truncateText(resp.text, 200) if resp.text else None
            raise ApiError(
                f"HTTP {resp.status_code} for {resp.request.url.path}",
                status_code=resp.status_code,
                body_snippet=body_snippet,
                retryable=self._should_retry(resp),
                details={"body_snippet": body_snippet, "path": resp.request.url.path},
            )

    def _parse_json(self, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(
                "Invalid JSON response",
                status_code=resp.status_code,
                retryable=False,
                code="INVALID_JSON",
            ) from exc

    async def getJson(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET JSON, парсит ответ или бросает ApiError."""
        resp = await self._request_with_retry(path, params or {})
        return self._parse_json(resp)

    async def getPagedItems(
        self,
        path: str,
        pageSize: int,
        maxPages: int | None = None,
    ) -> AsyncIterator[tuple[int, list[Any]]]:
        """
        Назначение:
            Единый обход страниц для всех списочных эндпоинтов GitHub.

        Контракт:
            - Возвращает пары (page_number, items) постранично.
            - Конец пагинации: нет ссылки rel="next" в заголовке Link.
            - Превышение maxPages -> ApiError MAX_PAGES_EXCEEDED (не усечение).
        """
        page = 1
        url: str = path
        params: dict[str, Any] | None = {"per_page": pageSize, "page": 1}
        while True:
            if maxPages is not None and page > maxPages:
                raise ApiError("max pages exceeded", code="MAX_PAGES_EXCEEDED", status_code=None, retryable=False)
            resp = await self._request_with_retry(url, params)
            data = self._parse_json(resp)
            if not isinstance(data, list):
                raise ApiError(
                    "Unexpected response format: no items array",
                    status_code=resp.status_code,
                    code="INVALID_ITEMS_FORMAT",
                    retryable=False,
                )
            yield page, data
            nextUrl = resp.links.get("next", {}).get("url")
            if not nextUrl:
                break
            # next-ссылка уже содержит per_page/page
            url = nextUrl
            params = None
            page += 1

    async def collectPagedItems(self, path: str, pageSize: int, maxPages: int | None = None) -> list[Any]:
        """Собирает все страницы в один список."""
        items: list[Any] = []
        async for _page, pageItems in self.getPagedItems(path, pageSize, maxPages):
            items.extend(pageItems)
        return items

    async def getRateLimit(self) -> dict[str, Any]:
        """Текущий лимит запросов токена (GET /rate_limit)."""
        data = await self.getJson("/rate_limit")
        if not isinstance(data, dict):
            raise ApiError("Unexpected rate limit response", code="INVALID_JSON", retryable=False)
        return data
