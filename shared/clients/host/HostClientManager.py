from shared.clients.host.HostClientInterface import HostClientInterface
from shared.clients.host.webservice.HostClientWebservice import HostClientWebservice
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import ConfigurationError

# engine name -> host client class
HOST_CLIENTS: dict[str, type[HostClientInterface]] = {
    "webservice": HostClientWebservice,
}


class HostClientManager:
    """
    Manager class resolving the host client from configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the host engine name from ENV configuration (HOST_ENGINE, default "webservice").

        Returns:
            str: The lowercased host engine name.
        """
        return self.helper_config.get_string_val("HOST_ENGINE", default="webservice").strip().lower()

    def _initialize_client(self) -> HostClientInterface:
        """
        Instantiates the host client of the configured engine.

        Returns:
            HostClientInterface: The host client.

        Raises:
            ConfigurationError: If the engine is unknown or its configuration is incomplete.
        """
        engine = self._get_engine_from_env()
        client_class = HOST_CLIENTS.get(engine)
        if client_class is None:
            raise ConfigurationError(f"Unsupported host engine specified: '{engine}'. Supported: {', '.join(sorted(HOST_CLIENTS))}")
        try:
            client = client_class(helper_config=self.helper_config)
        except ValueError as e:
            raise ConfigurationError(f"Host client '{engine}' is not configured: {e}") from e
        self.logging.debug(f"Instantiated host client for engine: {engine}")
        return client

    def get_client(self) -> HostClientInterface:
        return self.client
