from shared.helper.HelperConfig import HelperConfig
from shared.models.errors import ConfigurationError
from shared.stores.ConfigStoreInterface import ConfigStoreInterface
from shared.stores.json.ConfigStoreJson import ConfigStoreJson
from shared.stores.memory.ConfigStoreMemory import ConfigStoreMemory

# store name -> store class
CONFIG_STORES: dict[str, type[ConfigStoreInterface]] = {
    "json": ConfigStoreJson,
    "memory": ConfigStoreMemory,
}


class ConfigStoreManager:
    """
    Manager class resolving the persisted config store from configuration.
    """

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.store = self._initialize_store()

    def _initialize_store(self) -> ConfigStoreInterface:
        """
        Instantiates the store named by SEARCH_CONFIG_STORE (default "json").

        Raises:
            ConfigurationError: If the store name is unknown or the store can not be loaded.
        """
        name = self.helper_config.get_string_val("SEARCH_CONFIG_STORE", default="json").strip().lower()
        store_class = CONFIG_STORES.get(name)
        if store_class is None:
            raise ConfigurationError(f"Unsupported config store specified: '{name}'. Supported: {', '.join(sorted(CONFIG_STORES))}")
        try:
            store = store_class(helper_config=self.helper_config)
        except ValueError as e:
            raise ConfigurationError(f"Config store '{name}' could not be loaded: {e}") from e
        self.logging.debug(f"Instantiated config store: {name}")
        return store

    def get_store(self) -> ConfigStoreInterface:
        return self.store
