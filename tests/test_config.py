"""Tests for project configuration loading."""

from __future__ import annotations

from pathlib import Path

from knbn.config import get_default_columns, get_log_level, get_server_config, load_config


def _write(tmp_path: Path, text: str) -> None:
    (tmp_path / "knbn.config.yaml").write_text(text, encoding="utf-8")


class TestLoadConfig:
    def test_missing_file(self, tmp_path: Path) -> None:
        assert load_config(tmp_path) == ({}, None)

    def test_empty_file(self, tmp_path: Path) -> None:
        _write(tmp_path, "")
        assert load_config(tmp_path) == ({}, None)

    def test_valid_file(self, tmp_path: Path) -> None:
        _write(tmp_path, "log_level: debug\nserver:\n  port: 9100\n")
        config, err = load_config(tmp_path)
        assert err is None
        assert config["server"] == {"port": 9100}

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        _write(tmp_path, "columns: [unclosed\n")
        config, err = load_config(tmp_path)
        assert config == {}
        assert err is not None and "YAMLError" in err

    def test_non_mapping(self, tmp_path: Path) -> None:
        _write(tmp_path, "- just\n- a list\n")
        config, err = load_config(tmp_path)
        assert config == {}
        assert "expected object" in err


class TestGetters:
    def test_default_columns(self) -> None:
        assert get_default_columns({"columns": ["a", "b"]}) == ["a", "b"]
        assert get_default_columns({"columns": ["a", ""]}) is None
        assert get_default_columns({"columns": "a"}) is None
        assert get_default_columns({}) is None

    def test_log_level(self) -> None:
        assert get_log_level({"log_level": "debug"}) == "DEBUG"
        assert get_log_level({"log_level": "loud"}) is None
        assert get_log_level({}) is None

    def test_server_defaults(self) -> None:
        assert get_server_config({}) == {"host": "127.0.0.1", "port": 9000}

    def test_server_overrides_and_bad_values(self) -> None:
        assert get_server_config({"server": {"host": "0.0.0.0", "port": 8080}}) == {"host": "0.0.0.0", "port": 8080}
        assert get_server_config({"server": {"port": "eighty"}})["port"] == 9000
