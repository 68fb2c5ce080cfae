from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Callable, Generic, Iterator, Mapping, TypeVar

from apirepo.domain.events import IterationErrorChannel, IterationErrorEvent
from apirepo.domain.ports.iterator import ApiIteratorProtocol
from apirepo.errors import InvalidArgumentError, IteratorError
from apirepo.infra.logging.setup import logEvent

T = TypeVar("T")

Predicate = Callable[[T], bool]


def matches_search_params(element: Any, search_params: Mapping[str, Any]) -> bool:
    """
    Назначение:
        Предикат по набору search_params: все пары ключ/значение должны совпасть
        с полями элемента (ключ словаря или атрибут объекта).

    Контракт:
        - Пустой search_params совпадает с любым элементом.
        - Отсутствующее поле = несовпадение.
    """
    for key, expected in search_params.items():
        if isinstance(element, Mapping):
            if key not in element:
                return False
            actual = element[key]
        else:
            if not hasattr(element, key):
                return False
            actual = getattr(element, key)
        if actual != expected:
            return False
    return True


def iterate_cursor(iterator: ApiIteratorProtocol[T]) -> Iterator[T]:
    """
    Назначение:
        Обход жадного курсора: сначала current(), потом advance().

    Алгоритм:
        - Прочитать current(); если None — конец.
        - Отдать элемент вызывающему.
        - advance(); False — конец, иначе повторить.

    Ограничения:
        - Исключения advance()/current() пробрасываются как есть.
    """
    current = iterator.current()
    while current is not None:
        yield current
        if not iterator.advance():
            return
        current = iterator.current()


class ApiRepositoryBase(ABC, Generic[T]):
    """
    Назначение/ответственность:
        Общая логика репозитория поверх постраничного REST API: поиск (find),
        полная выгрузка (get_all), управление page_size курсора и перехват ошибок
        обхода в канал iteration_error.

    Взаимодействия:
        - Источник данных подключается через attach() (ApiIteratorProtocol).
        - get/update/delete/delete_all реализуют конкретные источники; если API
          не поддерживает операцию, они бросают UnsupportedOperationError.

    Ограничения:
        - Синхронно, без блокировок: один активный обход на один курсор.
        - Сохранения (save) нет: мутации применяются к API сразу.
    """

    def __init__(self, logger: logging.Logger | None = None, run_id: str | None = None):
        self._iterator: ApiIteratorProtocol[T] | None = None
        self._page_size = 1
        self._logger = logger or logging.getLogger("apirepo.repository")
        self._run_id = run_id or "-"
        self.iteration_error = IterationErrorChannel(logger=self._logger, run_id=self._run_id)

    # ---------- configuration ----------
    @property
    @abstractmethod
    def max_page_size(self) -> int:
        """Максимальный размер страницы, который допускает целевой API."""

    @property
    def page_size(self) -> int:
        """
        Размер страницы по умолчанию для операций вне find/get_all
        (например, delete_all в конкретных репозиториях).
        """
        return self._page_size

    @page_size.setter
    def page_size(self, value: int) -> None:
        if value is None:
            raise InvalidArgumentError("page_size")
        if value < 1:
            raise InvalidArgumentError("page_size", f"page_size must be >= 1, got {value}")
        self._page_size = value

    @property
    def iterator(self) -> ApiIteratorProtocol[T] | None:
        return self._iterator

    def attach(self, iterator: ApiIteratorProtocol[T]) -> "ApiRepositoryBase[T]":
        """
        Назначение:
            Подключает источник данных. Повторный вызов заменяет источник целиком.

        Контракт:
            - iterator=None -> InvalidArgumentError, текущий источник не меняется.
            - Возвращает self для цепочек конфигурации.
        """
        if iterator is None:
            raise InvalidArgumentError("iterator")
        self._iterator = iterator
        return self

    # ---------- traversal ----------
    def _current_iterator(self) -> ApiIteratorProtocol[T] | None:
        """Курсор для очередного обхода; конкретные репозитории могут перематывать его в начало."""
        return self._iterator

    @contextmanager
    def _page_size_scope(self, iterator: ApiIteratorProtocol[T], page_size: int) -> Iterator[None]:
        # page_size курсора восстанавливается при любом исходе.
        prior_page_size = iterator.page_size
        if self.max_page_size >= 1:
            iterator.page_size = page_size
        try:
            yield
        finally:
            iterator.page_size = prior_page_size

    def _on_iteration_error(self, exc: Exception) -> None:
        error = IteratorError(cause=exc)
        logEvent(
            self._logger,
            logging.WARNING,
            self._run_id,
            "iteration",
            f"iteration failed: {type(exc).__name__}: {exc}",
        )
        self.iteration_error.publish(IterationErrorEvent(sender=self, error=error))

    def find(self, predicate: Predicate[T]) -> T | None:
        """
        Назначение:
            Идёт по набору данных API по одному элементу и возвращает первый,
            для которого predicate вернул True.

        Контракт:
            - predicate=None -> InvalidArgumentError.
            - Источник не подключён -> None, без события.
            - Ошибка курсора или предиката -> одно событие iteration_error и None
              (частичных результатов нет).
            - page_size курсора на время вызова = 1, затем восстанавливается.

        Примечание:
            Если API умеет искать на сервере, дешевле вызвать get().
        """
        if predicate is None:
            raise InvalidArgumentError("predicate")

        iterator = self._current_iterator()
        if iterator is None:
            return None

        result: T | None = None
        with self._page_size_scope(iterator, 1):
            try:
                for current in iterate_cursor(iterator):
                    if predicate(current):
                        result = current
                        break
            except Exception as exc:
                self._on_iteration_error(exc)
                result = None
        return result

    def get_all(self) -> list[T]:
        """
        Назначение:
            Выгружает весь набор данных API страницами размера max_page_size.

        Контракт:
            - Порядок обхода сохраняется, дубликаты не удаляются.
            - Источник не подключён -> [].
            - Ошибка курсора -> одно событие iteration_error и [] (не частичный список).
            - page_size курсора восстанавливается при любом исходе.

        ОСТОРОЖНО:
            Операция "всё или ничего". На больших или бесконечных наборах данных
            стоимость и память не ограничены.
        """
        iterator = self._current_iterator()
        if iterator is None:
            return []

        result: list[T] = []
        with self._page_size_scope(iterator, self.max_page_size):
            try:
                for current in iterate_cursor(iterator):
                    result.append(current)
            except Exception as exc:
                self._on_iteration_error(exc)
                result = []
        return result

    # ---------- delegated operations ----------
    @abstractmethod
    def get(self, search_params: Mapping[str, Any]) -> T | None:
        """
        Назначение:
            Прямой поиск одного элемента на стороне сервера, без итерации.

        Контракт:
            - search_params=None -> InvalidArgumentError.
            - Нет прямого поиска в API -> делегировать в find(), например
              find(lambda e: matches_search_params(e, search_params)).
            - API не умеет ни то, ни другое -> UnsupportedOperationError.
        """

    @abstractmethod
    def update(self, record: T) -> None:
        """
        Изменяет элемент в API (PUT). Изменения применяются сразу.
        Ошибки API пробрасываются вызывающему.
        """

    @abstractmethod
    def delete(self, record: T) -> None:
        """
        Удаляет элемент из API (DELETE). Ошибки API пробрасываются вызывающему.
        """

    @abstractmethod
    def delete_all(self, predicate: Predicate[T]) -> None:
        """
        Удаляет все элементы, для которых predicate вернул True.
        Ошибки API пробрасываются вызывающему, в канал iteration_error не попадают.
        """

    def _require(self, value: Any, name: str) -> None:
        if value is None:
            raise InvalidArgumentError(name)


__all__ = ["ApiRepositoryBase", "Predicate", "iterate_cursor", "matches_search_params"]
