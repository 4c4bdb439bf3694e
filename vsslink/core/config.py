"""Loading and validation of the YAML relay configuration."""

from __future__ import annotations

import json
import logging
import os
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from vsslink.core.errors import ConfigLoadError, ConfigValidationError
from vsslink.core.model import RelayConfig, SpeedSettings, TransportSettings

LOGGER = logging.getLogger(__name__)


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigValidationError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


def _load_schema_validator() -> Any:
    schema_text = resources.files("vsslink.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "vsslink/config.yaml"


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigLoadError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigValidationError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigValidationError(f"Config file {path} must contain a mapping at root")
    return loaded


def build_config(doc: dict[str, Any], source: Path | str = "<config>") -> RelayConfig:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    transport_doc = doc.get("transport", {})
    transport_type = transport_doc.get("type", "rfcomm")
    if transport_type == "serial" and "channel" in transport_doc:
        raise ConfigValidationError(f"transport.channel applies to rfcomm only ({source})")

    defaults = TransportSettings()
    transport = TransportSettings(
        type=transport_type,
        channel=int(transport_doc["channel"]) if "channel" in transport_doc else None,
        baudrate=int(transport_doc.get("baudrate", defaults.baudrate)),
        connect_timeout_s=float(transport_doc.get("connect_timeout_s", defaults.connect_timeout_s)),
        write_timeout_s=float(transport_doc.get("write_timeout_s", defaults.write_timeout_s)),
    )

    speed_doc = doc.get("speed", {})
    speed_defaults = SpeedSettings()
    speed = SpeedSettings(
        source=speed_doc.get("source", speed_defaults.source),
        gpsd_host=speed_doc.get("gpsd_host", speed_defaults.gpsd_host),
        gpsd_port=int(speed_doc.get("gpsd_port", speed_defaults.gpsd_port)),
        fixed_mph=float(speed_doc.get("fixed_mph", speed_defaults.fixed_mph)),
    )

    return RelayConfig(
        device=doc.get("device"),
        transport=transport,
        speed=speed,
        keep_alive=bool(doc.get("keep_alive", True)),
    )


def load_config(path: Path | None = None) -> RelayConfig:
    """Load the relay config from ``path`` or the default XDG location.

    An explicit path must exist. A missing default file yields the defaults.
    """
    if path is None:
        path = default_config_path()
        if not path.is_file():
            LOGGER.debug("No config at %s, using defaults", path)
            return RelayConfig()

    doc = _read_yaml(path)
    return build_config(doc, path)
