"""
apirepo: репозиторий поверх постраничных REST API.

Позволяет работать с набором данных API неизвестной длины как с коллекцией:
find/get_all по жадному курсору, get/update/delete/delete_all через конкретный
источник данных.
"""
from apirepo.domain.events import IterationErrorChannel, IterationErrorEvent, IterationErrorListener
from apirepo.domain.ports.iterator import ApiIteratorProtocol
from apirepo.errors import AppError, InvalidArgumentError, IteratorError, UnsupportedOperationError
from apirepo.repository.base import ApiRepositoryBase, Predicate, iterate_cursor, matches_search_params

__all__ = [
    "ApiIteratorProtocol",
    "ApiRepositoryBase",
    "AppError",
    "InvalidArgumentError",
    "IterationErrorChannel",
    "IterationErrorEvent",
    "IterationErrorListener",
    "IteratorError",
    "Predicate",
    "UnsupportedOperationError",
    "iterate_cursor",
    "matches_search_params",
]
