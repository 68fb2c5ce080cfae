from __future__ import annotations

from typing import Any

from apirepo.domain.error_codes import ErrorCode
from apirepo.errors import InvalidArgumentError
from apirepo.infra.http.api_client import ApiClient, ApiError


class HttpPagedIterator:
    """
    Назначение/ответственность:
        Жадный курсор (ApiIteratorProtocol) по одному list-эндпоинту REST API
        с параметрами page/rows.

    Инварианты/гарантии:
        - Первая страница запрашивается лениво, при первом current()/advance().
        - Страница короче запрошенной (или пустая) считается последней.
        - Смена page_size во время обхода действует со следующего запроса:
          следующая страница запрашивается новым размером от уже пройденного
          смещения (page = offset // page_size + 1, первые offset % page_size
          элементов страницы отбрасываются).

    Ограничения:
        - Не потокобезопасен.
        - max_pages ограничивает число запросов за один обход (до reset()); превышение -> ApiError(MAX_PAGES_EXCEEDED).
    """

    def __init__(
        self,
        client: ApiClient,
        path: str,
        page_size: int = 1,
        params: dict[str, Any] | None = None,
        max_pages: int | None = None,
        page_param: str = "page",
        size_param: str = "rows",
    ):
        if client is None:
            raise InvalidArgumentError("client")
        if not path:
            raise InvalidArgumentError("path")
        self._client = client
        self._path = path
        self._params = dict(params or {})
        self._max_pages = max_pages
        self._page_param = page_param
        self._size_param = size_param
        self._page_size = 1
        self.page_size = page_size
        self.reset()

    @property
    def page_size(self) -> int:
        return self._page_size

    @page_size.setter
    def page_size(self, value: int) -> None:
        if value is None or value < 1:
            raise InvalidArgumentError("page_size", f"page_size must be >= 1, got {value}")
        self._page_size = value

    def reset(self) -> None:
        """Возвращает курсор в начало набора данных; следующий доступ перечитает первую страницу."""
        self.pages_fetched = 0
        self._items: list[Any] = []
        self._index = 0
        self._offset = 0
        self._started = False
        self._last_page = False

    def _fetch(self, offset: int) -> None:
        if self._max_pages is not None and self.pages_fetched >= self._max_pages:
            raise ApiError("max pages exceeded", code=ErrorCode.MAX_PAGES_EXCEEDED.value, retryable=False)
        page_size = self._page_size
        page = offset // page_size + 1
        skip = offset % page_size
        params = dict(self._params)
        params[self._page_param] = page
        params[self._size_param] = page_size
        data = self._client.getJson(self._path, params=params)
        items = self._client.extractItems(data)
        self.pages_fetched += 1

        self._last_page = len(items) < page_size
        self._items = list(items[skip:])
        self._offset = offset
        self._index = 0
        self._started = True

    def _ensure_started(self) -> None:
        if not self._started:
            self._fetch(0)

    def current(self) -> Any | None:
        self._ensure_started()
        if self._index < len(self._items):
            return self._items[self._index]
        return None

    def advance(self) -> bool:
        self._ensure_started()
        if self._index >= len(self._items):
            return False
        next_index = self._index + 1
        if next_index < len(self._items):
            self._index = next_index
            return True
        if self._last_page:
            self._index = len(self._items)
            return False
        self._fetch(self._offset + len(self._items))
        return len(self._items) > 0

    def __repr__(self) -> str:
        return f"HttpPagedIterator(path={self._path!r}, page_size={self._page_size})"


__all__ = ["HttpPagedIterator"]
