from __future__ import annotations

from pathlib import Path

import pytest

from vsslink.core.config import default_config_path, load_config
from vsslink.core.errors import ConfigLoadError, ConfigValidationError
from vsslink.core.model import RelayConfig


def _write_config(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_missing_default_config_yields_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))

    config = load_config()
    assert config == RelayConfig()
    assert config.transport.type == "rfcomm"
    assert config.transport.channel is None
    assert config.speed.gpsd_port == 2947


def test_default_config_is_read_from_xdg(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    _write_config(
        tmp_path / "cfg" / "vsslink" / "config.yaml",
        """
device: "88:92:CC:11:22:33"
keep_alive: false
transport:
  type: rfcomm
  channel: 3
  write_timeout_s: 0.1
speed:
  source: fixed
  fixed_mph: 12.5
""",
    )

    assert default_config_path() == tmp_path / "cfg" / "vsslink" / "config.yaml"
    config = load_config()
    assert config.device == "88:92:CC:11:22:33"
    assert config.keep_alive is False
    assert config.transport.channel == 3
    assert config.transport.write_timeout_s == 0.1
    assert config.transport.connect_timeout_s == 10.0
    assert config.speed.source == "fixed"
    assert config.speed.fixed_mph == 12.5


def test_explicit_missing_path_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigLoadError):
        load_config(tmp_path / "nope.yaml")


def test_empty_file_yields_defaults(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.yaml", "")
    assert load_config(path) == RelayConfig()


def test_unknown_transport_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
transport:
  type: ble
""",
    )
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_unknown_key_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.yaml", "tick_hz: 20\n")
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_channel_out_of_range_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
transport:
  channel: 31
""",
    )
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_serial_transport_with_channel_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
transport:
  type: serial
  channel: 1
""",
    )
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_duplicate_yaml_keys_rejected(tmp_path: Path) -> None:
    path = _write_config(
        tmp_path / "config.yaml",
        """
speed:
  source: gpsd
  source: fixed
""",
    )
    with pytest.raises(ConfigValidationError):
        load_config(path)


def test_non_mapping_root_rejected(tmp_path: Path) -> None:
    path = _write_config(tmp_path / "config.yaml", "- rfcomm\n- serial\n")
    with pytest.raises(ConfigValidationError):
        load_config(path)
