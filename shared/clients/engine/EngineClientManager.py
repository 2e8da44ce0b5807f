from shared.clients.engine.EngineClientInterface import EngineClientInterface
from shared.clients.engine.solr.EngineClientSolr import EngineClientSolr
from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import ConfigurationError, EngineNotFoundError

# engine name -> engine client class
ENGINE_CLIENTS: dict[str, type[EngineClientInterface]] = {
    "solr": EngineClientSolr,
}


class EngineClientManager:
    """
    Manager class resolving the search engine client from configuration.
    """

    def __init__(self, helper_config: HelperConfig, engines: dict[str, type[EngineClientInterface]] | None = None):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self._engines = dict(engines if engines is not None else ENGINE_CLIENTS)
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str:
        """
        Reads the search engine name from ENV configuration (SEARCH_ENGINE).

        Returns:
            str: The lowercased engine name.

        Raises:
            ConfigurationError: If no engine is specified in the configuration.
        """
        engine = self.helper_config.get_string_val("SEARCH_ENGINE", default="").strip().lower()
        if not engine:
            raise ConfigurationError("No search engine specified in configuration (SEARCH_ENGINE).")
        return engine

    def _initialize_client(self) -> EngineClientInterface:
        """
        Instantiates the engine client of the configured engine.

        Returns:
            EngineClientInterface: The engine client.

        Raises:
            EngineNotFoundError: If the engine name is not registered.
            ConfigurationError: If the engine configuration is invalid.
        """
        engine = self._get_engine_from_env()
        client_class = self._engines.get(engine)
        if client_class is None:
            raise EngineNotFoundError(f"Unsupported search engine specified: '{engine}'. Supported: {', '.join(sorted(self._engines))}")
        try:
            client = client_class(helper_config=self.helper_config)
        except ValueError as e:
            raise ConfigurationError(f"Search engine '{engine}' is not configured: {e}") from e
        self.logging.debug(f"Instantiated search engine client for engine: {engine}")
        return client

    def get_client(self) -> EngineClientInterface:
        return self.client
