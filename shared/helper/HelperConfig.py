"""Settings access of the global search layer.

Every setting is an environment variable. Client specific settings are prefixed
with the client type and engine (see ClientInterface), the search layer itself
reads SEARCH_ENABLED, SEARCH_ENGINE, SEARCH_CACHE_TTL and SEARCH_CONFIG_STORE*.
"""

import logging
import os


class HelperConfig:
    """Reads typed settings from the environment and hands out the application logger."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _get_raw(self, key: str, default):
        """Returns the stripped variable, None if it is unset or empty.

        Raises:
            ValueError: If the variable is unset and there is no default.
        """
        raw = (os.getenv(key.upper()) or "").strip()
        if not raw and default is None:
            raise ValueError(f"Environment variable '{key.upper()}' is not set.")
        return raw or None

    def get_string_val(self, key: str, default: str | None = None) -> str:
        """Reads a string setting.

        Args:
            key (str): Variable name, case-insensitive.
            default (str | None): Returned if the variable is unset or empty.

        Raises:
            ValueError: If the variable is unset and there is no default.
        """
        raw = self._get_raw(key, default)
        return raw if raw is not None else default

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Reads a number, an int unless the value has a decimal point.

        Raises:
            ValueError: If the variable is unset without default, or not a number.
        """
        raw = self._get_raw(key, default)
        if raw is None:
            return default
        try:
            return float(raw) if "." in raw else int(raw)
        except ValueError:
            raise ValueError(f"Environment variable '{key.upper()}' is not a valid number: '{raw}'.")

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """
        Reads a flag. "true", "1" and "yes" are true, anything else is false.
        """
        raw = self._get_raw(key, default)
        if raw is None:
            return default
        return raw.lower() in ("true", "1", "yes")

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Reads a list written as "[elem1,elem2,...]".

        Args:
            key (str): Variable name, case-insensitive.
            default (list | None): Returned if the variable is unset or empty.
            separator (str): Element separator.
            element_type (type): Applied to every element.

        Raises:
            ValueError: If the variable is unset without default, not bracketed, or an element can not be converted.
        """
        raw = self._get_raw(key, default)
        if raw is None:
            return default
        if not (raw.startswith("[") and raw.endswith("]")):
            raise ValueError(f"Environment variable '{key.upper()}' must look like '[elem1{separator}elem2]', got '{raw}'.")
        try:
            return [element_type(elem.strip()) for elem in raw[1:-1].split(separator) if elem.strip()]
        except ValueError as e:
            raise ValueError(f"Environment variable '{key.upper()}' holds an element that is not a {element_type.__name__}: {e}")

    def is_global_search_enabled(self) -> bool:
        return self.get_bool_val("SEARCH_ENABLED", default=False)

    def get_logger(self) -> logging.Logger:
        return self._logger
