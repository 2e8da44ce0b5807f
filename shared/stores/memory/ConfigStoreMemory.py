from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.stores.ConfigStoreInterface import ConfigStoreInterface


class ConfigStoreMemory(ConfigStoreInterface):
    """Process local store. Settings are lost on restart, used by tests and one-off runs."""

    def __init__(self, helper_config: HelperConfig, initial: dict[str, dict[str, Any]] | None = None):
        super().__init__(helper_config=helper_config)
        self._data: dict[str, dict[str, Any]] = {plugin: dict(values) for plugin, values in (initial or {}).items()}

    def _get_store_name(self) -> str:
        return "Memory"

    def get_config(self, plugin: str, name: str, default: Any = None) -> Any:
        return self._data.get(plugin, {}).get(name, default)

    def get_plugin_config(self, plugin: str) -> dict[str, Any]:
        return dict(self._data.get(plugin, {}))

    def set_config(self, plugin: str, name: str, value: Any) -> None:
        self._data.setdefault(plugin, {})[name] = value

    def unset_config(self, plugin: str, name: str) -> None:
        self._data.get(plugin, {}).pop(name, None)
