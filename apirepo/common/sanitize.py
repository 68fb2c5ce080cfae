from __future__ import annotations

from typing import Any, Mapping

# Фрагменты имён полей, значения которых не печатаются (сравнение без учёта регистра).
SECRET_KEY_FRAGMENTS = ("token", "password", "secret", "authorization", "api_key")


def maskSecret(value: str | None) -> str | None:
    """Значение секрета для вывода: '***' или None, если секрет не задан."""
    if value is None:
        return None
    return "***"


def truncateText(value: str | None, limit: int = 500) -> str | None:
    """
    Назначение:
        Укорачивает текст для деталей ошибок (тела ответов, сообщения причин).

    Контракт:
        - None -> None.
        - Результат не длиннее limit; обрезанный текст заканчивается на '...'.
    """
    if value is None:
        return None
    if len(value) <= limit:
        return value
    suffix = "..." if limit > 3 else ""
    return value[: limit - len(suffix)] + suffix


def isSecretKey(key: Any) -> bool:
    name = str(key).lower()
    return any(fragment in name for fragment in SECRET_KEY_FRAGMENTS)


def maskRecord(record: Any) -> Any:
    """
    Назначение:
        Копия записи API для печати в CLI: значения полей с секретными именами
        (accessToken, user_password, ...) заменены на '***'.

    Алгоритм:
        - Mapping -> dict, вложенные Mapping/list обрабатываются рекурсивно.
        - Остальные значения возвращаются как есть; исходная запись не меняется.
    """
    if isinstance(record, Mapping):
        return {
            key: maskSecret(None if value is None else str(value)) if isSecretKey(key) else maskRecord(value)
            for key, value in record.items()
        }
    if isinstance(record, list):
        return [maskRecord(item) for item in record]
    return record
