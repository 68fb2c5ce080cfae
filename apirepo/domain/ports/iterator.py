from __future__ import annotations

from typing import Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class ApiIteratorProtocol(Protocol[T]):
    """
    Назначение:
        Курсор по постраничному набору данных REST API ("жадный курсор").

    Контракт:
        - current() -> элемент в текущей позиции или None; без побочных эффектов и запросов.
        - advance() -> bool; сдвигает курсор, при исчерпании страницы запрашивает следующую.
          Может бросать исключения (сеть, декодирование, rate limit).
        - page_size: сколько элементов запрашивать за один fetch; изменение вступает
          в силу со следующего запроса.

    Инварианты:
        - Проверить "есть ли следующий" без попытки advance() нельзя.
        - Свежий курсор уже стоит на первом элементе (если он есть).
    """

    @property
    def page_size(self) -> int: ...

    @page_size.setter
    def page_size(self, value: int) -> None: ...

    def current(self) -> T | None: ...

    def advance(self) -> bool: ...


__all__ = ["ApiIteratorProtocol"]
