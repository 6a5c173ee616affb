"""Unit tests for configuration loader"""
import json

import pytest

from pairbot.config.config import PairbotConfig
from pairbot.config.loader import (
    apply_env_overrides,
    get_config_path,
    invalidate_config_cache,
    load_config,
)


@pytest.fixture(autouse=True)
def fresh_cache(monkeypatch):
    for var in ("PORT", "COMPANY_NAME", "PAIRBOT_ADMIN_API_KEY", "PAIRBOT_AUTO_CONNECT"):
        monkeypatch.delenv(var, raising=False)
    invalidate_config_cache()
    yield
    invalidate_config_cache()


def test_get_config_path():
    """Test config path resolution returns a well-known path."""
    path = get_config_path()
    assert path.name == "pairbot.json"


def test_load_config_default(tmp_path):
    """Test loading default config when file doesn't exist"""
    config = load_config(tmp_path / "nonexistent.json")

    assert isinstance(config, PairbotConfig)
    assert config.server.port == 3000
    assert config.pairing.code_expiry_minutes == 10
    assert config.pairing.max_sessions == 100
    assert config.connection.max_qr_attempts == 5
    assert config.company.name == "IAN TECH"


def test_load_config_file(tmp_path):
    config_path = tmp_path / "pairbot.json"
    config_path.write_text(json.dumps({
        "server": {"port": 8080},
        "pairing": {"code_expiry_minutes": 5, "mystery": True},
        "company": {"name": "ACME"},
    }))

    config = load_config(config_path)

    assert config.server.port == 8080
    assert config.pairing.code_expiry_minutes == 5
    assert config.pairing.max_sessions == 100
    assert config.company.name == "ACME"


def test_load_config_with_env_vars(monkeypatch, tmp_path):
    """Test ${VAR} tokens are replaced from the environment"""
    monkeypatch.setenv("TEST_ADMIN_KEY", "from-env")
    config_path = tmp_path / "pairbot.json"
    config_path.write_text('{"server": {"admin_api_key": "${TEST_ADMIN_KEY}"}}')

    config = load_config(config_path)
    assert config.server.admin_api_key == "from-env"


def test_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("PORT", "4000")
    monkeypatch.setenv("COMPANY_NAME", "ACME")
    monkeypatch.setenv("PAIRBOT_AUTO_CONNECT", "false")

    config = load_config(tmp_path / "nonexistent.json")

    assert config.server.port == 4000
    assert config.company.name == "ACME"
    assert config.connection.auto_connect is False


def test_invalid_env_override_ignored():
    config = apply_env_overrides(PairbotConfig(), {"PORT": "not-a-port"})
    assert config.server.port == 3000


def test_broken_file_falls_back_to_defaults(tmp_path):
    config_path = tmp_path / "pairbot.json"
    config_path.write_text("{broken")

    config = load_config(config_path)
    assert config.server.port == 3000


def test_config_is_cached(tmp_path):
    first = load_config(tmp_path / "nonexistent.json")
    assert load_config(tmp_path / "nonexistent.json") is first

    invalidate_config_cache()
    assert load_config(tmp_path / "nonexistent.json") is not first


def test_to_dict_round_trip():
    config = PairbotConfig()
    assert PairbotConfig.from_dict(config.to_dict()) == config
