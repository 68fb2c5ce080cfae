from __future__ import annotations

from typing import Generic, Sequence, TypeVar

from apirepo.errors import InvalidArgumentError

T = TypeVar("T")


class ListIterator(Generic[T]):
    """
    Назначение/ответственность:
        Жадный курсор (ApiIteratorProtocol) поверх последовательности в памяти.
        Имитирует постраничную загрузку: fetches считает "запросы страниц"
        размера page_size, как это делал бы HTTP-курсор.

    Инварианты/гарантии:
        - Свежий курсор стоит на первом элементе (или current() -> None для пустого набора).
        - advance_calls считает все вызовы advance(); page_size_history — все присваивания page_size.
        - Последовательность читается по ссылке: изменения source видны курсору.
    """

    def __init__(self, source: Sequence[T], page_size: int = 1):
        if source is None:
            raise InvalidArgumentError("source")
        self._source = source
        self._page_size = 1
        self.page_size_history: list[int] = []
        self.page_size = page_size
        self.advance_calls = 0
        self.fetches = 0
        self.reset()

    @property
    def page_size(self) -> int:
        return self._page_size

    @page_size.setter
    def page_size(self, value: int) -> None:
        if value is None or value < 1:
            raise InvalidArgumentError("page_size", f"page_size must be >= 1, got {value}")
        self._page_size = value
        self.page_size_history.append(value)

    def reset(self) -> None:
        self._position = 0
        # Граница уже "загруженной" части набора.
        self._loaded_until = 0

    def _load_through(self, position: int) -> None:
        while self._loaded_until <= position and self._loaded_until < len(self._source):
            self._loaded_until += self._page_size
            self.fetches += 1

    def current(self) -> T | None:
        if self._position >= len(self._source):
            return None
        self._load_through(self._position)
        return self._source[self._position]

    def advance(self) -> bool:
        self.advance_calls += 1
        if self._position >= len(self._source):
            return False
        self._position += 1
        if self._position >= len(self._source):
            return False
        self._load_through(self._position)
        return True

    def __repr__(self) -> str:
        return f"ListIterator(size={len(self._source)}, position={self._position}, page_size={self._page_size})"


__all__ = ["ListIterator"]
