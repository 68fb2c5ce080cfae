from __future__ import annotations

import time
from typing import Any

import httpx

from apirepo.domain.error_codes import ErrorCode
from apirepo.errors import AppError

ITEMS_KEYS = ("items", "data", "results", "records", "result")


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
            Исключение для ошибок HTTP/API уровня ApiClient.
        Контракт:
            - code: строковый код (HTTP_*, NETWORK_ERROR, INVALID_JSON и т.п.).
            - status_code/body_snippet используются для диагностики.
        """
        super().__init__(
            category="api",
            code=code or (f"HTTP_{status_code}" if status_code else ErrorCode.HTTP_ERROR.value),
            message=message,
            retryable=retryable,
            details=details or {},
        )
        self.status_code = status_code
        self.body_snippet = body_snippet

    @property
    def error_code(self) -> ErrorCode:
        """Общий код таксономии, выведенный из code/status_code."""
        for member in ErrorCode:
            if member.value == self.code:
                return member
        return ErrorCode.from_status(self.status_code)


class ApiClient:
    def __init__(
        self,
        baseUrl: str,
        apiToken: str | None = None,
        timeoutSeconds: float = 20.0,
        tlsSkipVerify: bool = False,
        caFile: str | None = None,
        retries: int = 3,
        retryBackoffSeconds: float = 0.5,
        transport: httpx.BaseTransport | None = None,
    ):
        """
        Назначение:
            JSON-клиент REST API с простой политикой ретраев.
        Контракт:
            - baseUrl обязателен; apiToken (если задан) уходит в Authorization: Bearer.
            - retries/retryBackoffSeconds управляют повторными попытками (429/5xx/сеть).
        """
        verify: bool | str = True
        if tlsSkipVerify:
            verify = False
        elif caFile:
            verify = caFile

        self.baseUrl = baseUrl.rstrip("/")
        self.apiToken = apiToken
        self.retries = retries
        self.retryBackoffSeconds = retryBackoffSeconds
        self.retry_attempts = 0

        self.client = httpx.Client(
            base_url=self.baseUrl,
            timeout=timeoutSeconds,
            verify=verify,
            transport=transport,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "ApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def getRetryAttempts(self) -> int:
        """Возвращает количество выполненных повторных попыток."""
        return self.retry_attempts

    def _headers(self) -> dict[str, str]:
        headers = {"accept": "application/json"}
        if self.apiToken:
            headers["Authorization"] = f"Bearer {self.apiToken}"
        return headers

    def _should_retry(self, resp: httpx.Response) -> bool:
        """Решает, стоит ли повторить запрос (429 или 5xx)."""
        if resp.status_code == 429:
            return True
        if 500 <= resp.status_code <= 599:
            return True
        return False

    def _sleep_backoff(self, attempt: int) -> None:
        """Задержка с экспоненциальным ростом для ретраев."""
        delay = self.retryBackoffSeconds * (2 ** attempt)
        if delay > 0:
            time.sleep(delay)

    def _send(self, method: str, path: str, params: dict[str, Any], jsonBody: Any | None) -> httpx.Response:
        """Запрос с ретраями по 429/5xx и сетевым ошибкам; статус не проверяет."""
        attempt = 0
        while True:
            try:
                resp = self.client.request(method, path, params=params, headers=self._headers(), json=jsonBody)
            except (httpx.TimeoutException, httpx.TransportError) as exc:
                if attempt >= self.retries:
                    raise ApiError(
                        "Network error",
                        status_code=None,
                        retryable=False,
                        code=ErrorCode.NETWORK_ERROR.value,
                    ) from exc
                self.retry_attempts += 1
                self._sleep_backoff(attempt)
                attempt += 1
                continue

            if self._should_retry(resp) and attempt < self.retries:
                self.retry_attempts += 1
                self._sleep_backoff(attempt)
                attempt += 1
                continue

            return resp

    def _raise_for_status(self, resp: httpx.Response) -> None:
        body_snippet = resp.text[:200] if resp.text else None
        raise ApiError(
            f"HTTP {resp.status_code}",
            status_code=resp.status_code,
            body_snippet=body_snippet,
            retryable=self._should_retry(resp),
            details={"body_snippet": body_snippet},
        )

    def getJson(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET JSON с ретраями, парсит ответ или бросает ApiError."""
        resp = self._send("GET", path, params or {}, None)
        if resp.status_code != 200:
            self._raise_for_status(resp)
        try:
            return resp.json()
        except ValueError as exc:
            raise ApiError(
                "Invalid JSON response",
                status_code=resp.status_code,
                retryable=False,
                code=ErrorCode.INVALID_JSON.value,
            ) from exc

    def requestJson(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        jsonBody: Any | None = None,
    ) -> tuple[int, Any]:
        """
        Универсальный JSON-запрос с ретраями и проверкой (200/201/204).
        Возвращает (status_code, json|text|None) или бросает ApiError.
        """
        resp = self._send(method.upper(), path, params or {}, jsonBody)
        if resp.status_code not in (200, 201, 204):
            self._raise_for_status(resp)
        if resp.text:
            try:
                return resp.status_code, resp.json()
            except ValueError:
                return resp.status_code, resp.text
        return resp.status_code, None

    def extractItems(self, data: Any) -> list[Any]:
        """Пытается вытащить массив элементов из разных возможных ключей."""
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            for key in ITEMS_KEYS:
                if key in data and isinstance(data[key], list):
                    return data[key]
        raise ApiError(
            "Unexpected response format: no items array",
            code=ErrorCode.INVALID_ITEMS_FORMAT.value,
            retryable=False,
        )


__all__ = ["ApiClient", "ApiError", "ITEMS_KEYS"]
