from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable

from apirepo.errors import InvalidArgumentError, IteratorError
from apirepo.infra.logging.setup import logEvent


@dataclass(frozen=True)
class IterationErrorEvent:
    """
    Назначение:
        Уведомление об ошибке, перехваченной во время обхода курсора (find/get_all).

    Инварианты:
        - error обязателен (IteratorError, исходная причина в error.cause).
        - sender — репозиторий, поднявший событие.
    """

    sender: Any
    error: IteratorError

    def __post_init__(self) -> None:
        if self.error is None:
            raise InvalidArgumentError("error")

    @property
    def cause(self) -> BaseException | None:
        return self.error.cause


IterationErrorListener = Callable[[IterationErrorEvent], None]


class IterationErrorChannel:
    """
    Назначение/ответственность:
        Синхронная публикация IterationErrorEvent всем подписчикам.

    Контракт:
        - subscribe/unsubscribe управляют списком слушателей; повторная подписка
          того же callable игнорируется.
        - publish вызывает слушателей в порядке подписки, в потоке вызывающего,
          по снимку списка на момент публикации.
        - Исключение слушателя логируется, остальные слушатели всё равно вызываются.
        - Очередей и батчей нет: одно событие — один вызов publish.
    """

    def __init__(self, logger: logging.Logger | None = None, run_id: str | None = None):
        self._listeners: list[IterationErrorListener] = []
        self._logger = logger or logging.getLogger("apirepo.events")
        self._run_id = run_id or "-"

    def subscribe(self, listener: IterationErrorListener) -> None:
        if listener is None:
            raise InvalidArgumentError("listener")
        if listener in self._listeners:
            return
        self._listeners.append(listener)

    def unsubscribe(self, listener: IterationErrorListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    @property
    def listeners(self) -> tuple[IterationErrorListener, ...]:
        return tuple(self._listeners)

    def __len__(self) -> int:
        return len(self._listeners)

    def publish(self, event: IterationErrorEvent) -> int:
        """
        Назначение:
            Доставить событие всем текущим подписчикам.

        Выходные данные:
            int — сколько слушателей отработали без исключения.
        """
        delivered = 0
        for listener in self.listeners:
            try:
                listener(event)
                delivered += 1
            except Exception as exc:
                logEvent(
                    self._logger,
                    logging.ERROR,
                    self._run_id,
                    "events",
                    f"iteration error listener failed: {type(exc).__name__}: {exc}",
                    exc_info=True,
                )
        return delivered


__all__ = ["IterationErrorEvent", "IterationErrorListener", "IterationErrorChannel"]
