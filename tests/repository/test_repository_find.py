from __future__ import annotations

import pytest

from apirepo.domain.events import IterationErrorEvent
from apirepo.errors import InvalidArgumentError, IteratorError
from apirepo.infra.memory.list_iterator import ListIterator
from apirepo.repository.base import ApiRepositoryBase


class StubRepository(ApiRepositoryBase[str]):
    def __init__(self, max_page_size: int = 50):
        super().__init__()
        self._max = max_page_size

    @property
    def max_page_size(self) -> int:
        return self._max

    def get(self, search_params):
        raise NotImplementedError

    def update(self, record):
        raise NotImplementedError

    def delete(self, record):
        raise NotImplementedError

    def delete_all(self, predicate):
        raise NotImplementedError


class FaultyIterator:
    """Отдаёт items, затем падает на advance() с номером fail_on_advance."""

    def __init__(self, items: list[str], fail_on_advance: int | None = None, fail_on_current: int | None = None):
        self.items = items
        self.fail_on_advance = fail_on_advance
        self.fail_on_current = fail_on_current
        self.page_size = 7
        self.position = 0
        self.advance_calls = 0
        self.current_calls = 0
        self.page_sizes_seen: list[int] = []

    def current(self):
        self.current_calls += 1
        self.page_sizes_seen.append(self.page_size)
        if self.fail_on_current is not None and self.current_calls == self.fail_on_current:
            raise ConnectionError("decode failed")
        if self.position < len(self.items):
            return self.items[self.position]
        return None

    def advance(self) -> bool:
        self.advance_calls += 1
        if self.fail_on_advance is not None and self.advance_calls == self.fail_on_advance:
            raise TimeoutError("rate limited")
        self.position += 1
        return self.position < len(self.items)


def collect_events(repo: ApiRepositoryBase) -> list[IterationErrorEvent]:
    events: list[IterationErrorEvent] = []
    repo.iteration_error.subscribe(events.append)
    return events


def test_find_returns_first_match_and_stops_early():
    iterator = ListIterator(["A", "B", "C"], page_size=5)
    repo = StubRepository().attach(iterator)

    assert repo.find(lambda x: x == "B") == "B"
    assert iterator.advance_calls == 1


def test_find_returns_least_indexed_match():
    iterator = ListIterator(["A", "B1", "C", "B2"])
    repo = StubRepository().attach(iterator)

    assert repo.find(lambda x: x.startswith("B")) == "B1"


def test_find_without_match_exhausts_cursor():
    iterator = ListIterator(["A", "B", "C"])
    repo = StubRepository().attach(iterator)

    assert repo.find(lambda x: x == "Z") is None
    assert iterator.advance_calls == 3


def test_find_forces_page_size_one_and_restores_it():
    iterator = ListIterator(["A", "B", "C"], page_size=5)
    repo = StubRepository(max_page_size=50).attach(iterator)

    repo.find(lambda x: x == "C")

    assert iterator.page_size_history == [5, 1, 5]
    assert iterator.page_size == 5
    # по одному элементу на запрос страницы
    assert iterator.fetches == 3


def test_find_keeps_page_size_when_max_page_size_is_zero():
    iterator = ListIterator(["A", "B"], page_size=4)
    repo = StubRepository(max_page_size=0).attach(iterator)

    assert repo.find(lambda x: x == "B") == "B"
    assert iterator.page_size_history == [4, 4]


def test_find_requires_predicate():
    repo = StubRepository().attach(ListIterator(["A"]))

    with pytest.raises(InvalidArgumentError) as exc:
        repo.find(None)

    assert exc.value.argument == "predicate"


def test_find_without_attached_iterator_returns_none_silently():
    repo = StubRepository()
    events = collect_events(repo)

    assert repo.find(lambda x: True) is None
    assert events == []


def test_find_on_empty_data_set_returns_none():
    iterator = ListIterator([])
    repo = StubRepository().attach(iterator)

    assert repo.find(lambda x: True) is None
    assert iterator.advance_calls == 0


def test_find_fault_on_advance_notifies_once_and_returns_none():
    iterator = FaultyIterator(["A", "B"], fail_on_advance=2)
    repo = StubRepository().attach(iterator)
    events = collect_events(repo)

    assert repo.find(lambda x: x == "Z") is None
    assert len(events) == 1
    assert isinstance(events[0].error, IteratorError)
    assert isinstance(events[0].cause, TimeoutError)
    assert events[0].sender is repo
    assert iterator.page_size == 7
    assert iterator.page_sizes_seen == [1, 1]


def test_find_fault_on_current_restores_page_size():
    iterator = FaultyIterator(["A", "B"], fail_on_current=1)
    repo = StubRepository().attach(iterator)
    events = collect_events(repo)

    assert repo.find(lambda x: True) is None
    assert len(events) == 1
    assert isinstance(events[0].cause, ConnectionError)
    assert iterator.page_size == 7


def test_find_treats_raising_predicate_as_iteration_fault():
    iterator = ListIterator(["A", "B"], page_size=3)
    repo = StubRepository().attach(iterator)
    events = collect_events(repo)

    def predicate(value: str) -> bool:
        if value == "B":
            raise KeyError("missing field")
        return False

    assert repo.find(predicate) is None
    assert len(events) == 1
    assert isinstance(events[0].cause, KeyError)
    assert iterator.page_size == 3


def test_find_fault_without_listeners_does_not_raise():
    repo = StubRepository().attach(FaultyIterator(["A"], fail_on_advance=1))

    assert repo.find(lambda x: False) is None
