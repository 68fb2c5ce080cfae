from apirepo.infra.memory.list_iterator import ListIterator
from apirepo.infra.memory.repository import InMemoryRepository

__all__ = ["ListIterator", "InMemoryRepository"]
