# Copyright 2024 Shane Loretz.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import collections.abc
import dataclasses
from io import StringIO
from pathlib import Path
from typing import Optional

import yaml

from .errors import ConfigError


DEFAULT_CONFIG = "brewlot.yaml"


@dataclasses.dataclass(frozen=True)
class Settings:
    """Where manifests, mirrors and logs live, and how images get tagged."""

    library: Path = Path("library")
    src: Path = Path(".brewlot/src")
    logs: Optional[Path] = Path(".brewlot/logs")
    namespaces: tuple[str, ...] = ("library", "stackbrew")
    docker: str = "docker"
    # Variant assumed for a FROM line that has no tag
    default_variant: str = "latest"
    fetch_attempts: int = 3

    @classmethod
    def parse_string(cls, string, base_dir=None):
        """Parse settings from a string."""
        with StringIO(string) as stream:
            return cls.parse_stream(stream, base_dir=base_dir)

    @classmethod
    def parse_stream(cls, stream, base_dir=None):
        """Parse settings from a YAML stream.

        Relative paths are taken relative to base_dir when it is given.
        """
        try:
            yaml_dict = yaml.safe_load(stream)
        except yaml.YAMLError as e:
            raise ConfigError(f"Config is not valid YAML: {e}") from e
        if yaml_dict is None:
            return cls()
        if not isinstance(yaml_dict, collections.abc.Mapping):
            raise ConfigError("Config must be a dictionary")

        known = {f.name for f in dataclasses.fields(cls)}
        values = {}
        for key, value in yaml_dict.items():
            if key not in known:
                raise ConfigError(f"Unknown config key '{key}'")
            values[key] = _convert(key, value, base_dir)
        return cls(**values)

    def override(self, **changes):
        """Return settings with every change that isn't None applied."""
        changes = {k: v for k, v in changes.items() if v is not None}
        if "namespaces" in changes:
            changes["namespaces"] = _convert("namespaces", changes["namespaces"], None)
        for key in ("library", "src", "logs"):
            if key in changes:
                changes[key] = Path(changes[key])
        return dataclasses.replace(self, **changes)


def _convert(key, value, base_dir):
    if key in ("library", "src", "logs"):
        if key == "logs" and value is None:
            return None
        if not isinstance(value, str):
            raise ConfigError(f"'{key}' must be a path")
        path = Path(value).expanduser()
        if base_dir is not None and not path.is_absolute():
            path = Path(base_dir) / path
        return path
    if key == "namespaces":
        if isinstance(value, str):
            return tuple(value.split())
        if isinstance(value, collections.abc.Sequence) and all(
            isinstance(v, str) for v in value
        ):
            return tuple(value)
        raise ConfigError("'namespaces' must be a list of strings")
    if key == "fetch_attempts":
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ConfigError("'fetch_attempts' must be a positive integer")
        return value
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{key}' must be a non-empty string")
    return value


def load_settings(path: Optional[str] = None) -> Settings:
    """Load settings from path, or from brewlot.yaml if it exists."""
    if path is None:
        if not Path(DEFAULT_CONFIG).is_file():
            return Settings()
        path = DEFAULT_CONFIG
    try:
        with open(path, "r") as fin:
            return Settings.parse_stream(fin, base_dir=Path(path).parent)
    except OSError as e:
        raise ConfigError(f"Could not read config {path}: {e}") from e
