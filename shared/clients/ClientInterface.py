from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData

from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientRequestError(Exception):
    """Raised by do_request() when the backend answers with a non-2xx status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class ClientInterface(ABC):
    """
    Base class of every HTTP backend the search layer talks to (the host platform, the search engine).

    Settings are read from environment variables named "<TYPE>_<ENGINE>_<KEY>", e.g.
    ENGINE_SOLR_BASE_URL for the Solr engine client or HOST_WEBSERVICE_API_KEY for the
    webservice host client. The HTTP client is created by boot() and released by close().
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """
        Reads every required setting once so a missing one fails at construction time.

        Raises:
            ValueError: If a required setting is not set or can not be parsed.
        """
        for config in self._get_required_config():
            self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        """
        Returns the lowercased client type, "host" or "engine".
        """
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        pass

    def get_engine_name(self) -> str:
        """
        Returns the lowercased backend name, e.g. "solr" or "webservice".
        """
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Returns the settings the client can not work without.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type()}_{self.get_engine_name()}_{raw_key}".upper()

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """Reads one setting of this client.

        Args:
            raw_key (str): The key without its "<TYPE>_<ENGINE>_" prefix, e.g. "BASE_URL".
            default (Any): Returned when the variable is not set, None makes the setting required.
            val_type (str): "string", "number", "bool" or "list".

        Returns:
            Any: The parsed value.

        Raises:
            ValueError: If the setting is required and missing, or val_type is unknown.
        """
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        reader = readers.get(val_type)
        if reader is None:
            raise ValueError(f"Unsupported value type '{val_type}' for setting '{raw_key}' of {self.get_client_type()} client '{self.get_engine_name()}'.")
        return reader(self._get_config_key_name(raw_key), default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """
        Returns the Authorization header, empty if no credentials are configured.
        """
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """
        Returns the scheme and host of the backend, e.g. "http://localhost:8983".
        """
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Creates the HTTP client.

        Args:
            transport (httpx.AsyncBaseTransport | None): Replaces the network transport, tests pass an httpx.MockTransport.
        """
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        json: Any = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Sends a request to the backend.

        Exactly one body is sent, content wins over data (form fields) which wins over json.

        Args:
            method (str): The HTTP method.
            content (RequestContent | None): Raw body.
            data (RequestData | None): Form fields, list values are repeated.
            json (Any): JSON body.
            params (QueryParamTypes | None): Query parameters, merged into a query already in endpoint.
            endpoint (str): Path below the base url, may carry a query string.
            additional_headers (dict | None): Headers overriding the auth header.
            raise_on_error (bool): Raise ClientRequestError on a non-2xx status instead of returning it.

        Returns:
            httpx.Response: The response.

        Raises:
            RuntimeError: If boot() was not called.
            ClientRequestError: On a non-2xx status, if raise_on_error is set.
            httpx.HTTPError: If the backend can not be reached.
        """
        if self._client is None:
            raise RuntimeError(f"{self.get_client_type()} client '{self.get_engine_name()}' is not booted, call boot() first.")

        path = endpoint.strip()
        url = self._get_base_url().rstrip("/") + ("/" + path.lstrip("/") if path else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        body: dict[str, Any] = {}
        if content is not None:
            body["content"] = content
        elif data is not None:
            body["data"] = data
        elif json is not None:
            body["json"] = json

        response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)

        if raise_on_error and not response.is_success:
            self.logging.error("%s %s returned status %d: %s", method, url, response.status_code, response.text)
            raise ClientRequestError(f"{method} {url} returned status {response.status_code}", status_code=response.status_code)

        return response
