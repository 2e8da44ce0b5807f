import json
import os
import tempfile
from pathlib import Path
from typing import Any

from shared.helper.HelperConfig import HelperConfig
from shared.stores.ConfigStoreInterface import ConfigStoreInterface


class ConfigStoreJson(ConfigStoreInterface):
    """
    JSON file backed store.

    The whole file is loaded once and kept in memory. Every write rewrites the file
    atomically (temp file + rename) so a crashed run never leaves a truncated file.
    The file path is read from SEARCH_CONFIG_STORE_PATH.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._path = Path(helper_config.get_string_val("SEARCH_CONFIG_STORE_PATH", default="./data/search_config.json"))
        self._data: dict[str, dict[str, Any]] = self._load()

    def _get_store_name(self) -> str:
        return "Json"

    ##########################################
    ################# FILE ###################
    ##########################################

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            self.logging.debug("Config store file %s does not exist yet, starting empty.", self._path)
            return {}
        with open(self._path, "r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"Config store file {self._path} must contain a JSON object.")
        return {plugin: dict(values) for plugin, values in raw.items() if isinstance(values, dict)}

    def _save(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self._path.parent, prefix=f".{self._path.name}.", suffix=".tmp", text=True)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self._path)
        except Exception:
            try:
                os.unlink(tmp_path)
            except FileNotFoundError:
                pass
            raise

    ##########################################
    ############### ACCESSORS ################
    ##########################################

    def get_config(self, plugin: str, name: str, default: Any = None) -> Any:
        return self._data.get(plugin, {}).get(name, default)

    def get_plugin_config(self, plugin: str) -> dict[str, Any]:
        return dict(self._data.get(plugin, {}))

    def set_config(self, plugin: str, name: str, value: Any) -> None:
        self._data.setdefault(plugin, {})[name] = value
        self._save()

    def set_many(self, plugin: str, values: dict[str, Any]) -> None:
        self._data.setdefault(plugin, {}).update(values)
        self._save()

    def unset_config(self, plugin: str, name: str) -> None:
        if self._data.get(plugin, {}).pop(name, None) is not None:
            self._save()
