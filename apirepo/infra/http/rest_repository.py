from __future__ import annotations

import logging
from typing import Any, Mapping
from urllib.parse import quote

from apirepo.errors import InvalidArgumentError, UnsupportedOperationError
from apirepo.infra.http.api_client import ApiClient, ApiError
from apirepo.infra.http.paged_iterator import HttpPagedIterator
from apirepo.infra.logging.setup import logEvent
from apirepo.repository.base import ApiRepositoryBase, Predicate, iterate_cursor, matches_search_params


class RestApiRepository(ApiRepositoryBase[dict]):
    """
    Назначение/ответственность:
        Репозиторий поверх одной коллекции REST API ({path}, {path}/{id}).
        Элементы — JSON-объекты (dict).

    Взаимодействия:
        - Обход: HttpPagedIterator по GET {path}?page=&rows= (подключается в конструкторе,
          может быть заменён через attach()).
        - get: GET {path}/{id}, если в search_params есть id_field
          (прочие параметры сверяются с полученной записью); иначе find().
        - update: PUT {path}/{id}; delete: DELETE {path}/{id}.

    Ограничения:
        - allow_lookup/allow_scan/allow_update/allow_delete выключают операции,
          которые API (или владелец репозитория) не поддерживает -> UnsupportedOperationError.
        - Ошибки API в get(по id)/update/delete/delete_all пробрасываются как ApiError.
    """

    def __init__(
        self,
        client: ApiClient,
        path: str,
        id_field: str = "id",
        max_page_size: int = 100,
        list_params: dict[str, Any] | None = None,
        max_pages: int | None = None,
        allow_lookup: bool = True,
        allow_scan: bool = True,
        allow_update: bool = True,
        allow_delete: bool = True,
        logger: logging.Logger | None = None,
        run_id: str | None = None,
    ):
        super().__init__(logger=logger, run_id=run_id)
        if client is None:
            raise InvalidArgumentError("client")
        if not path:
            raise InvalidArgumentError("path")
        self._client = client
        self._path = "/" + path.strip("/")
        self._id_field = id_field
        self._max_page_size = max_page_size
        self.allow_lookup = allow_lookup
        self.allow_scan = allow_scan
        self.allow_update = allow_update
        self.allow_delete = allow_delete
        self.attach(
            HttpPagedIterator(
                client,
                self._path,
                page_size=1,
                params=list_params,
                max_pages=max_pages,
            )
        )

    @property
    def max_page_size(self) -> int:
        return self._max_page_size

    @property
    def path(self) -> str:
        return self._path

    def _current_iterator(self):
        # Каждый обход начинается с первой страницы.
        iterator = super()._current_iterator()
        reset = getattr(iterator, "reset", None)
        if callable(reset):
            reset()
        return iterator

    def _item_path(self, record_id: Any) -> str:
        return f"{self._path}/{quote(str(record_id), safe='')}"

    def _record_id(self, record: Mapping[str, Any]) -> Any:
        record_id = record.get(self._id_field) if isinstance(record, Mapping) else None
        if record_id is None:
            raise InvalidArgumentError(self._id_field, f"Record has no '{self._id_field}' field")
        return record_id

    def get(self, search_params: Mapping[str, Any]) -> dict | None:
        self._require(search_params, "search_params")

        if self.allow_lookup and search_params.get(self._id_field) is not None:
            try:
                record = self._client.getJson(self._item_path(search_params[self._id_field]))
            except ApiError as exc:
                if exc.status_code == 404:
                    return None
                raise
            # Остальные параметры проверяются на найденной записи.
            rest = {key: value for key, value in search_params.items() if key != self._id_field}
            return record if matches_search_params(record, rest) else None

        if not self.allow_scan:
            raise UnsupportedOperationError("get")
        return self.find(lambda element: matches_search_params(element, search_params))

    def find(self, predicate: Predicate[dict]) -> dict | None:
        if not self.allow_scan:
            raise UnsupportedOperationError("find")
        return super().find(predicate)

    def get_all(self) -> list[dict]:
        if not self.allow_scan:
            raise UnsupportedOperationError("get_all")
        return super().get_all()

    def update(self, record: dict) -> None:
        self._require(record, "record")
        if not self.allow_update:
            raise UnsupportedOperationError("update")
        record_id = self._record_id(record)
        self._client.requestJson("PUT", self._item_path(record_id), jsonBody=record)
        logEvent(self._logger, logging.INFO, self._run_id, "api", f"PUT {self._path} id={record_id}")

    def delete(self, record: dict) -> None:
        self._require(record, "record")
        if not self.allow_delete:
            raise UnsupportedOperationError("delete")
        record_id = self._record_id(record)
        self._client.requestJson("DELETE", self._item_path(record_id))
        logEvent(self._logger, logging.INFO, self._run_id, "api", f"DELETE {self._path} id={record_id}")

    def delete_all(self, predicate: Predicate[dict]) -> None:
        """
        Алгоритм:
            - Пройти курсор страницами page_size (не больше max_page_size) и собрать
              подходящие записи; удалять во время обхода нельзя — сдвинутся страницы.
            - Удалить каждую запись через delete().
            - Любая ошибка (курсор, предикат, DELETE) пробрасывается вызывающему.
        """
        self._require(predicate, "predicate")
        if not self.allow_delete:
            raise UnsupportedOperationError("delete_all")
        if not self.allow_scan:
            raise UnsupportedOperationError("delete_all")

        iterator = self._current_iterator()
        if iterator is None:
            return

        with self._page_size_scope(iterator, min(self.page_size, self.max_page_size)):
            matches = [record for record in iterate_cursor(iterator) if predicate(record)]

        for record in matches:
            self.delete(record)
        logEvent(
            self._logger,
            logging.INFO,
            self._run_id,
            "api",
            f"delete_all {self._path} deleted={len(matches)}",
        )


__all__ = ["RestApiRepository"]
