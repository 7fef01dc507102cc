from pathlib import Path

import pytest

from brewlot.config import Settings
from brewlot.config import load_settings
from brewlot.errors import ConfigError


def test_defaults():
    settings = Settings.parse_string("")
    assert settings == Settings()
    assert settings.namespaces == ("library", "stackbrew")
    assert settings.default_variant == "latest"


_full = """
library: manifests
src: /var/cache/brewlot
logs: build-logs
namespaces:
  - library
  - mirror.example.com
docker: podman
default_variant: stable
fetch_attempts: 1
"""


def test_full_config():
    settings = Settings.parse_string(_full, base_dir="/etc/brewlot")
    assert settings.library == Path("/etc/brewlot/manifests")
    assert settings.src == Path("/var/cache/brewlot")
    assert settings.logs == Path("/etc/brewlot/build-logs")
    assert settings.namespaces == ("library", "mirror.example.com")
    assert settings.docker == "podman"
    assert settings.default_variant == "stable"
    assert settings.fetch_attempts == 1


def test_namespaces_as_string():
    settings = Settings.parse_string("namespaces: 'library stackbrew extra'")
    assert settings.namespaces == ("library", "stackbrew", "extra")


def test_logs_can_be_disabled():
    assert Settings.parse_string("logs: null").logs is None


@pytest.mark.parametrize(
    "text",
    [
        "- not\n- a\n- dict\n",
        "unknown_key: 1\n",
        "fetch_attempts: 0\n",
        "namespaces: 5\n",
        "docker: ''\n",
        "library: [1, 2]\n",
        "library: [unclosed\n",
    ],
)
def test_bad_config(text):
    with pytest.raises(ConfigError):
        Settings.parse_string(text)


def test_override():
    settings = Settings().override(
        library="lib", namespaces="a b", docker=None, default_variant="edge"
    )
    assert settings.library == Path("lib")
    assert settings.namespaces == ("a", "b")
    assert settings.docker == "docker"
    assert settings.default_variant == "edge"


def test_load_settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    assert load_settings() == Settings()

    (tmp_path / "brewlot.yaml").write_text("docker: podman\n")
    assert load_settings().docker == "podman"

    with pytest.raises(ConfigError):
        load_settings(str(tmp_path / "missing.yaml"))
