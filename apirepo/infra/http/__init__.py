from apirepo.infra.http.api_client import ApiClient, ApiError
from apirepo.infra.http.paged_iterator import HttpPagedIterator
from apirepo.infra.http.rest_repository import RestApiRepository

__all__ = ["ApiClient", "ApiError", "HttpPagedIterator", "RestApiRepository"]
