"""Environment-backed configuration for the upload-and-ask service.

Every setting is an environment variable. Keys are case-insensitive and an
empty value counts as unset. A getter called without a default treats the
key as required.
"""

import logging
import os
from typing import Any, Callable

TRUTHY = ("true", "1", "yes")


class HelperConfig:
    """Typed access to environment variables, plus the application logger."""

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _read(self, key: str, default: Any, parse: Callable[[str, str], Any]) -> Any:
        """Look up key, returning default when unset and parse(key, raw) otherwise.

        Raises:
            ValueError: If the key is unset and default is None.
        """
        key = key.upper()
        raw = (os.getenv(key) or "").strip()
        if not raw:
            if default is None:
                raise ValueError(f"Environment variable '{key}' is not set.")
            return default
        return parse(key, raw)

    def get_string_val(self, key: str, default: str | None = None) -> str:
        return self._read(key, default, lambda _, raw: raw)

    def get_number_val(self, key: str, default: float | int | None = None) -> float | int:
        """Read an int ("12") or a float ("2.5").

        Raises:
            ValueError: If the key is required but unset, or the value is not a number.
        """

        def parse(key: str, raw: str) -> float | int:
            try:
                return float(raw) if "." in raw else int(raw)
            except ValueError:
                raise ValueError(f"Environment variable '{key}' is not a valid number: '{raw}'.")

        return self._read(key, default, parse)

    def get_bool_val(self, key: str, default: bool | None = None) -> bool:
        """"true", "1" and "yes" (any case) are True, anything else is False."""
        return self._read(key, default, lambda _, raw: raw.lower() in TRUTHY)

    def get_list_val(self, key: str, default: list | None = None, separator: str = ",", element_type: type = str) -> list:
        """Read a list such as "a,b,c" or "[1, 2, 3]".

        Args:
            key (str): Environment variable name.
            default (list | None): Value used when the key is unset.
            separator (str): Delimiter between elements.
            element_type (type): Type each element is cast to.

        Returns:
            list: The elements, blank ones dropped.

        Raises:
            ValueError: If the key is required but unset, or an element cannot be cast.
        """

        def parse(key: str, raw: str) -> list:
            if raw.startswith("[") and raw.endswith("]"):
                raw = raw[1:-1]
            try:
                return [element_type(elem.strip()) for elem in raw.split(separator) if elem.strip()]
            except ValueError as e:
                raise ValueError(f"Environment variable '{key}' has an element that is not {element_type.__name__}: {e}")

        return self._read(key, default, parse)

    def get_logger(self) -> logging.Logger:
        return self._logger
