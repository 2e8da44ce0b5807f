from abc import ABC, abstractmethod
from typing import Any

from shared.helper.HelperConfig import HelperConfig


class ConfigStoreInterface(ABC):
    """Persisted (plugin, name) -> value settings of the search layer.

    Holds the per source enable switches and the indexing counters. Values are
    plain JSON scalars.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_store_name(self) -> str:
        """
        Returns the name of the store in lowercase. E.g. "json"
        """
        return self._get_store_name().lower()

    @abstractmethod
    def _get_store_name(self) -> str:
        pass

    @abstractmethod
    def get_config(self, plugin: str, name: str, default: Any = None) -> Any:
        """
        Returns a single setting, default if it was never set.
        """
        pass

    @abstractmethod
    def get_plugin_config(self, plugin: str) -> dict[str, Any]:
        """
        Returns all settings of a plugin.
        """
        pass

    ##########################################
    ################ SETTER ##################
    ##########################################

    @abstractmethod
    def set_config(self, plugin: str, name: str, value: Any) -> None:
        pass

    @abstractmethod
    def unset_config(self, plugin: str, name: str) -> None:
        pass

    def set_many(self, plugin: str, values: dict[str, Any]) -> None:
        """
        Sets several settings of a plugin. Stores able to write in one go override this.
        """
        for name, value in values.items():
            self.set_config(plugin, name, value)
