from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, TypeVar

from apirepo.errors import InvalidArgumentError, UnsupportedOperationError
from apirepo.infra.memory.list_iterator import ListIterator
from apirepo.repository.base import ApiRepositoryBase, Predicate, matches_search_params

T = TypeVar("T")


class InMemoryRepository(ApiRepositoryBase[T]):
    """
    Назначение/ответственность:
        Репозиторий над списком в памяти: офлайн-источник и эталон для тестов.

    Контракт:
        - key: функция идентичности записи (update/delete ищут запись по ключу).
        - get: прямой поиск по key, если search_params содержит "key"; иначе find().
        - update/delete записи, которой нет в списке -> InvalidArgumentError.
        - read_only=True: update/delete/delete_all -> UnsupportedOperationError.
    """

    def __init__(
        self,
        items: list[T] | None = None,
        key: Callable[[T], Any] | None = None,
        max_page_size: int = 100,
        read_only: bool = False,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ):
        super().__init__(logger=logger, run_id=run_id)
        self._items: list[T] = items if items is not None else []
        self._key = key
        self._max_page_size = max_page_size
        self.read_only = read_only
        self.attach(ListIterator(self._items))

    @property
    def max_page_size(self) -> int:
        return self._max_page_size

    @property
    def items(self) -> list[T]:
        return self._items

    def _current_iterator(self):
        iterator = super()._current_iterator()
        reset = getattr(iterator, "reset", None)
        if callable(reset):
            reset()
        return iterator

    def _index_of(self, record: T) -> int | None:
        if self._key is None:
            for index, item in enumerate(self._items):
                if item == record:
                    return index
            return None
        record_key = self._key(record)
        for index, item in enumerate(self._items):
            if self._key(item) == record_key:
                return index
        return None

    def get(self, search_params: Mapping[str, Any]) -> T | None:
        self._require(search_params, "search_params")
        if self._key is not None and "key" in search_params:
            wanted = search_params["key"]
            for item in self._items:
                if self._key(item) == wanted:
                    return item
            return None
        return self.find(lambda element: matches_search_params(element, search_params))

    def _ensure_writable(self, operation: str) -> None:
        if self.read_only:
            raise UnsupportedOperationError(operation)

    def update(self, record: T) -> None:
        self._require(record, "record")
        self._ensure_writable("update")
        index = self._index_of(record)
        if index is None:
            raise InvalidArgumentError("record", "Record not found in data source")
        self._items[index] = record

    def delete(self, record: T) -> None:
        self._require(record, "record")
        self._ensure_writable("delete")
        index = self._index_of(record)
        if index is None:
            raise InvalidArgumentError("record", "Record not found in data source")
        del self._items[index]

    def delete_all(self, predicate: Predicate[T]) -> None:
        self._require(predicate, "predicate")
        self._ensure_writable("delete_all")
        self._items[:] = [item for item in self._items if not predicate(item)]


__all__ = ["InMemoryRepository"]
