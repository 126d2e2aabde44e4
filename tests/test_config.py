"""Tests for AriesConfig loading."""

from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from aries.config import AriesConfig


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in list(os.environ):
        if name.startswith("ARIES_"):
            monkeypatch.delenv(name)


class TestDefaults:
    def test_defaults(self):
        config = AriesConfig.load()
        assert config.port == 8080
        assert config.store == "sqlite"
        assert config.heartbeat_interval == 60.0
        assert config.probe_timeout < config.lookup_timeout

    def test_missing_file_uses_defaults(self, tmp_path):
        config = AriesConfig.load(tmp_path / "nope.json")
        assert config == AriesConfig()


class TestLoad:
    def test_json_file(self, tmp_path):
        path = tmp_path / "aries.json"
        path.write_text(json.dumps({"port": 9090, "heartbeat_interval": 3600, "bogus": 1}))
        config = AriesConfig.load(path)
        assert config.port == 9090
        assert config.heartbeat_interval == 3600

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / "aries.json"
        path.write_text(json.dumps({"port": 9090}))
        monkeypatch.setenv("ARIES_PORT", "7070")
        monkeypatch.setenv("ARIES_LOOKUP_TIMEOUT", "2.5")
        config = AriesConfig.load(path)
        assert config.port == 7070
        assert config.lookup_timeout == 2.5

    def test_bad_env_value(self, monkeypatch):
        monkeypatch.setenv("ARIES_PORT", "eighty")
        with pytest.raises(ValueError, match="ARIES_PORT"):
            AriesConfig.load()

    def test_unknown_store(self, monkeypatch):
        monkeypatch.setenv("ARIES_STORE", "redis")
        with pytest.raises(ValueError, match="Unknown store"):
            AriesConfig.load()

    def test_non_positive_timeout(self):
        config = AriesConfig(probe_timeout=0)
        with pytest.raises(ValueError):
            config.validate()


class TestPaths:
    def test_relative_csv_lives_in_data_dir(self):
        config = AriesConfig(data_dir="/srv/aries")
        assert config.csv_path == Path("/srv/aries/services.csv")
        assert config.db_path == Path("/srv/aries/aries.db")

    def test_absolute_csv_path(self):
        config = AriesConfig(services_csv="/etc/aries/services.csv")
        assert config.csv_path == Path("/etc/aries/services.csv")
