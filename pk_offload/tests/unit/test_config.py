from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from pk_offload import config as config_module
from pk_offload.config import AppConfig, dump_default_config, load_config
from pk_offload.exceptions import ConfigError
from pk_offload.models import SignatureFormat
from pk_offload.utils import ensure_loopback_host, parse_hex_digest


@pytest.fixture(autouse=True)
def isolated_dirs(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    user_dir = tmp_path / "user-config"
    monkeypatch.setattr(config_module, "runtime_config_dir", lambda: user_dir)
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("PKO_KEY_FILE", raising=False)
    return user_dir


def test_defaults_without_any_file() -> None:
    config = load_config()
    assert config.signing.simulate_async is True
    assert config.signing.signature_format is SignatureFormat.DER
    assert config.signing.key_file.name == "ecc-key.pem"
    assert config.server.host == "127.0.0.1"
    assert config.server.port == 11111
    assert config.server.max_message_bytes == 256
    assert config.retry.max_polls is None
    assert config.retry.timeout is None


def test_loads_explicit_yaml(tmp_path: Path) -> None:
    path = tmp_path / "custom.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "signing": {"key_file": str(tmp_path / "k.pem"), "signature_format": "raw"},
                "retry": {"max_polls": 4, "poll_interval": 0.01},
                "server": {"host": "localhost", "port": 0},
            }
        ),
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.signing.key_file == tmp_path / "k.pem"
    assert config.signing.signature_format is SignatureFormat.RAW
    assert config.server.host == "localhost"
    policy = config.retry.policy()
    assert policy.max_polls == 4
    assert policy.poll_interval == 0.01


def test_project_file_is_found_in_working_directory(tmp_path: Path) -> None:
    project = tmp_path / ".pko" / "config.yaml"
    project.parent.mkdir()
    project.write_text("logging:\n  level: debug\n", encoding="utf-8")
    assert load_config().logging.normalized_level() == "DEBUG"


def test_user_config_directory_is_searched(isolated_dirs: Path) -> None:
    isolated_dirs.mkdir()
    (isolated_dirs / "config.yaml").write_text("server:\n  port: 4433\n", encoding="utf-8")
    assert load_config().server.port == 4433


def test_missing_explicit_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yaml")


def test_public_host_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "bad.yaml"
    path.write_text("server:\n  host: 0.0.0.0\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_malformed_yaml_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "broken.yaml"
    path.write_text("signing: [unterminated\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(path)


def test_env_overrides_key_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PKO_KEY_FILE", str(tmp_path / "from-env.pem"))
    assert load_config().signing.key_file == tmp_path / "from-env.pem"


def test_dump_default_config_round_trips(tmp_path: Path) -> None:
    target = tmp_path / "out" / "config.yaml"
    dump_default_config(target)
    loaded = load_config(target)
    assert loaded.model_dump() == AppConfig().model_dump()


@pytest.mark.parametrize("host", ["127.0.0.1", "::1", "LOCALHOST", " 127.0.0.2 "])
def test_loopback_hosts_accepted(host: str) -> None:
    assert ensure_loopback_host(host)


@pytest.mark.parametrize("host", ["", "10.0.0.1", "example.com"])
def test_non_loopback_hosts_rejected(host: str) -> None:
    with pytest.raises(ValueError):
        ensure_loopback_host(host)


def test_parse_hex_digest_tolerates_separators() -> None:
    assert parse_hex_digest(" de:ad be:ef ") == b"\xde\xad\xbe\xef"
    with pytest.raises(ValueError):
        parse_hex_digest("xyz")
    with pytest.raises(ValueError):
        parse_hex_digest("")
