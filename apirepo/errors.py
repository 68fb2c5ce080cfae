from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from apirepo.common.sanitize import truncateText
from apirepo.domain.error_codes import ErrorCode


@dataclass
class AppError(Exception):
    """
    Унифицированная ошибка библиотеки.
    """

    category: str
    code: str
    message: str
    retryable: bool = False
    details: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "code": str(self.code.value if isinstance(self.code, ErrorCode) else self.code),
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details or {},
        }


class InvalidArgumentError(AppError, ValueError):
    def __init__(self, argument: str, message: str | None = None):
        """
        Назначение:
            Обязательный аргумент не передан (None).
        Контракт:
            - Всегда поднимается сразу, никогда не перехватывается движком.
        """
        super().__init__(
            category="argument",
            code=ErrorCode.INVALID_ARGUMENT,
            message=message or f"Required argument is missing: {argument}",
            details={"argument": argument},
        )
        self.argument = argument


class UnsupportedOperationError(AppError, NotImplementedError):
    def __init__(self, operation: str, message: str | None = None):
        """
        Назначение:
            Конкретный источник данных не поддерживает запрошенную операцию.
        Контракт:
            - Поднимается только конкретными реализациями, не базовым движком.
        """
        super().__init__(
            category="capability",
            code=ErrorCode.UNSUPPORTED,
            message=message or f"Operation is not supported by this data source: {operation}",
            details={"operation": operation},
        )
        self.operation = operation


class IteratorError(AppError):
    def __init__(self, message: str = "A problem occurred during the iteration operation.", cause: BaseException | None = None):
        """
        Назначение:
            Сбой обхода курсора (advance/current или предикат) во время find/get_all.
        Контракт:
            - Исходное исключение доступно через cause и __cause__.
        """
        details: Dict[str, Any] = {}
        if cause is not None:
            details = {
                "cause_type": type(cause).__name__,
                "cause_message": truncateText(str(cause), 200),
            }
        super().__init__(
            category="iteration",
            code=ErrorCode.ITERATION_ERROR,
            message=message,
            details=details,
        )
        self.__cause__ = cause

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


__all__ = ["AppError", "InvalidArgumentError", "UnsupportedOperationError", "IteratorError"]
