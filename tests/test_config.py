from __future__ import annotations

from pathlib import Path

import pytest

from unifi_block.config import ConfigError, load_config


def write_config(tmp_path: Path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def test_defaults_without_sources():
    config = load_config(environ={})

    assert config.session.endpoint == "http://unifi"
    assert config.session.username == "ubnt"
    assert config.session.password == "ubnt"
    assert config.session.timeout == 60
    assert config.consul.address is None


def test_environment_overrides_defaults():
    config = load_config(
        environ={
            "UNIFI_ENDPOINT": "https://192.168.1.1",
            "UNIFI_USERNAME": "admin",
            "UNIFI_PASSWORD": "secret",
            "UNIFI_SITE": "branch",
            "UNIFI_TIMEOUT": "15",
            "UNIFI_VERIFY_SSL": "yes",
        }
    )

    session = config.session
    assert session.endpoint == "https://192.168.1.1"
    assert (session.username, session.password) == ("admin", "secret")
    assert session.site == "branch"
    assert session.timeout == 15.0
    assert session.verify_ssl is True


def test_empty_environment_values_ignored():
    config = load_config(environ={"UNIFI_ENDPOINT": "", "UNIFI_USERNAME": "  "})

    assert config.session.endpoint == "http://unifi"
    assert config.session.username == "ubnt"


def test_precedence_file_env_overrides(tmp_path: Path):
    path = write_config(
        tmp_path,
        "endpoint: https://from-file\n"
        "username: file-user\n"
        "password: file-pass\n"
        "site: file-site\n"
        "consul:\n"
        "  address: consul:8500\n"
        "  token: abc\n",
    )

    config = load_config(
        path,
        environ={"UNIFI_USERNAME": "env-user"},
        overrides={"site": "cli-site", "endpoint": None},
    )

    session = config.session
    assert session.endpoint == "https://from-file"
    assert session.username == "env-user"
    assert session.password == "file-pass"
    assert session.site == "cli-site"
    assert config.consul.address == "consul:8500"
    assert config.consul.token == "abc"


def test_config_path_from_environment(tmp_path: Path):
    path = write_config(tmp_path, "endpoint: https://env-file\n")

    config = load_config(environ={"UNIFI_BLOCK_CONFIG": path})

    assert config.session.endpoint == "https://env-file"


def test_empty_file_is_defaults(tmp_path: Path):
    config = load_config(write_config(tmp_path, ""), environ={})
    assert config.session.endpoint == "http://unifi"


@pytest.mark.parametrize(
    "text",
    [
        "- just\n- a list\n",
        "endpoint: [unclosed\n",
        "consul: nope\n",
        "timeout: soon\n",
        "verify_ssl: maybe\n",
    ],
)
def test_invalid_files_rejected(tmp_path: Path, text: str):
    with pytest.raises(ConfigError):
        load_config(write_config(tmp_path, text), environ={})


def test_missing_file_rejected(tmp_path: Path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "nope.yaml"), environ={})
