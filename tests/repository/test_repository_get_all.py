from __future__ import annotations

from apirepo.infra.memory.list_iterator import ListIterator
from apirepo.repository.base import ApiRepositoryBase


class StubRepository(ApiRepositoryBase[str]):
    def __init__(self, max_page_size: int = 25):
        super().__init__()
        self._max = max_page_size

    @property
    def max_page_size(self) -> int:
        return self._max

    def get(self, search_params):
        return self.find(lambda x: x == search_params.get("value"))

    def update(self, record):
        raise NotImplementedError

    def delete(self, record):
        raise NotImplementedError

    def delete_all(self, predicate):
        raise NotImplementedError


class BrokenAfterIterator:
    """[A, B], затем падение сети на втором advance()."""

    def __init__(self):
        self.items = ["A", "B"]
        self.position = 0
        self.page_size = 2
        self.advance_calls = 0

    def current(self):
        return self.items[self.position] if self.position < len(self.items) else None

    def advance(self) -> bool:
        self.advance_calls += 1
        if self.advance_calls == 2:
            raise OSError("connection reset")
        self.position += 1
        return self.position < len(self.items)


class DecodeFailureIterator:
    """[A, B, C]; current() падает на вызове с номером fail_on_current."""

    def __init__(self, fail_on_current: int):
        self.items = ["A", "B", "C"]
        self.position = 0
        self.page_size = 4
        self.fail_on_current = fail_on_current
        self.current_calls = 0
        self.page_sizes_seen: list[int] = []

    def current(self):
        self.current_calls += 1
        self.page_sizes_seen.append(self.page_size)
        if self.current_calls == self.fail_on_current:
            raise ValueError("malformed payload")
        return self.items[self.position] if self.position < len(self.items) else None

    def advance(self) -> bool:
        self.position += 1
        return self.position < len(self.items)


def test_get_all_returns_elements_in_traversal_order_with_duplicates():
    iterator = ListIterator(["A", "B", "A", "C"])
    repo = StubRepository().attach(iterator)

    assert repo.get_all() == ["A", "B", "A", "C"]


def test_get_all_count_matches_successful_advances_plus_one():
    items = [f"e{i}" for i in range(7)]
    iterator = ListIterator(items)
    repo = StubRepository().attach(iterator)

    result = repo.get_all()

    successful_advances = iterator.advance_calls - 1
    assert len(result) == successful_advances + 1 == 7


def test_get_all_uses_max_page_size_and_restores_it():
    iterator = ListIterator([str(i) for i in range(60)], page_size=3)
    repo = StubRepository(max_page_size=25).attach(iterator)

    assert len(repo.get_all()) == 60
    assert iterator.page_size_history == [3, 25, 3]
    assert iterator.fetches == 3


def test_get_all_on_fault_returns_empty_list_and_notifies_once():
    iterator = BrokenAfterIterator()
    repo = StubRepository().attach(iterator)
    events = []
    repo.iteration_error.subscribe(events.append)

    assert repo.get_all() == []
    assert len(events) == 1
    assert isinstance(events[0].cause, OSError)
    assert iterator.page_size == 2


def test_find_on_same_faulty_cursor_returns_none_and_notifies_once():
    iterator = BrokenAfterIterator()
    repo = StubRepository().attach(iterator)
    events = []
    repo.iteration_error.subscribe(events.append)

    assert repo.find(lambda x: x == "Z") is None
    assert len(events) == 1


def test_get_all_without_iterator_returns_empty_list():
    assert StubRepository().get_all() == []


def test_get_all_empty_data_set():
    repo = StubRepository().attach(ListIterator([]))

    assert repo.get_all() == []


def test_get_delegating_to_find():
    repo = StubRepository().attach(ListIterator(["A", "B"]))

    assert repo.get({"value": "B"}) == "B"


def test_get_all_on_current_fault_returns_empty_list_and_restores_page_size():
    iterator = DecodeFailureIterator(fail_on_current=2)
    repo = StubRepository(max_page_size=25).attach(iterator)
    events = []
    repo.iteration_error.subscribe(events.append)

    assert repo.get_all() == []
    assert len(events) == 1
    assert isinstance(events[0].cause, ValueError)
    assert iterator.page_sizes_seen == [25, 25]
    assert iterator.page_size == 4
