"""
Layered application configuration.

Settings are gathered from an ordered list of sources (in-memory mappings,
environment variables, .env files). When the same key appears in more than
one source the most recently added source wins. Keys are case-insensitive.
"""
import os
from collections.abc import Mapping
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from dotenv import dotenv_values

Pairs = Union[Mapping, Iterable[Tuple[str, str]]]


class Configuration(Mapping):
    """Read-only, case-insensitive view over the merged configuration sources."""

    def __init__(self, layers: List[Dict[str, str]], properties: Optional[Dict[str, Any]] = None):
        self._values: Dict[str, Tuple[str, str]] = {}
        for layer in layers:
            for key, value in layer.items():
                self._values[key.lower()] = (key, value)
        self.properties = properties if properties is not None else {}

    def __getitem__(self, key: str) -> str:
        return self._values[key.lower()][1]

    def __iter__(self) -> Iterator[str]:
        return (original for original, _ in self._values.values())

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self):
        return f"Configuration(keys={list(self)})"


class ConfigurationBuilder:
    """Collects configuration sources and builds a Configuration from them."""

    def __init__(self):
        self._sources: List[Dict[str, str]] = []
        self.properties: Dict[str, Any] = {}

    @property
    def sources(self) -> List[Dict[str, str]]:
        return list(self._sources)

    def add_in_memory_collection(self, values: Pairs) -> "ConfigurationBuilder":
        """Add a source from a mapping or an iterable of (key, value) pairs."""
        items = values.items() if isinstance(values, Mapping) else values
        self._sources.append({key: value for key, value in items if value is not None})
        return self

    def add_environment_variables(self, prefix: str = "") -> "ConfigurationBuilder":
        """
        Add environment variables as a source.

        Only variables starting with prefix are included and the prefix is
        removed. A double underscore in a variable name becomes the ':'
        section separator, so KeyVault__Name is read as KeyVault:Name.
        """
        values = {}
        for name, value in os.environ.items():
            if prefix and not name.lower().startswith(prefix.lower()):
                continue
            values[name[len(prefix):].replace("__", ":")] = value
        self._sources.append(values)
        return self

    def add_dotenv_file(self, path: str = ".env", optional: bool = True) -> "ConfigurationBuilder":
        """Add the variables defined in a .env file as a source."""
        if not os.path.exists(path):
            if optional:
                return self
            raise FileNotFoundError(f"Configuration file not found: {path}")

        values = dotenv_values(path)
        self._sources.append({key.replace("__", ":"): value for key, value in values.items() if value is not None})
        return self

    def build(self) -> Configuration:
        return Configuration(self._sources, self.properties)
