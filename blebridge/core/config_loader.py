"""Configuration loading and validation for the YAML settings file."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, replace
from importlib import resources
from pathlib import Path
from typing import Any

import yaml
from jsonschema import ValidationError, validators

from blebridge.core.errors import (
    ConfigLoadError,
    ConfigValidationError,
    InvalidAddressFormat,
    InvalidUUIDFormat,
)
from blebridge.core.identifiers import normalize_address, normalize_uuid
from blebridge.core.model import BLESettings, BridgeConfig, LoggingSettings

CONFIG_ENV = "BLEBRIDGE_CONFIG"


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


@dataclass(frozen=True)
class LoadedConfig:
    config: BridgeConfig
    source: Path | None
    warnings: tuple[str, ...]


def _load_schema_validator() -> Any:
    schema_text = resources.files("blebridge.schemas").joinpath("config.schema.json").read_text(
        encoding="utf-8"
    )
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def default_config_path() -> Path:
    xdg_config = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return xdg_config / "blebridge/config.yaml"


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


def _optional_uuid(value: str | None, *, context: str) -> str | None:
    if value is None:
        return None
    try:
        return normalize_uuid(value)
    except InvalidUUIDFormat as exc:
        raise ConfigValidationError(f"{context}: {exc}") from exc


def _build_config(doc: dict[str, Any], source: Path | str) -> BridgeConfig:
    validator = _load_schema_validator()
    try:
        validator.validate(doc)
    except ValidationError as exc:
        path = ".".join(str(p) for p in exc.path)
        where = f" ({path})" if path else ""
        raise ConfigValidationError(f"Schema validation failed for {source}{where}: {exc.message}") from exc

    ble_doc = doc.get("ble", {})
    logging_doc = doc.get("logging", {})
    defaults = BLESettings()

    try:
        printer_address = normalize_address(ble_doc.get("printer_address", defaults.printer_address))
    except InvalidAddressFormat as exc:
        raise ConfigValidationError(f"ble.printer_address: {exc}") from exc

    ble = BLESettings(
        printer_address=printer_address,
        device_name_contains=ble_doc.get("device_name_contains", defaults.device_name_contains),
        service_uuid=_optional_uuid(ble_doc.get("service_uuid"), context="ble.service_uuid"),
        write_characteristic_uuid=_optional_uuid(
            ble_doc.get("write_characteristic_uuid"),
            context="ble.write_characteristic_uuid",
        ),
        chunk_size=int(ble_doc.get("chunk_size", defaults.chunk_size)),
        write_with_response=ble_doc.get("write_with_response", defaults.write_with_response),
        scan_seconds=int(ble_doc.get("scan_seconds", defaults.scan_seconds)),
        connect_timeout_s=float(ble_doc.get("connect_timeout_s", defaults.connect_timeout_s)),
        debug_scan_on_connect_failure=ble_doc.get(
            "debug_scan_on_connect_failure", defaults.debug_scan_on_connect_failure
        ),
    )
    return BridgeConfig(
        ble=ble,
        logging=LoggingSettings(
            file_path=logging_doc.get("file_path"),
            console_verbose=logging_doc.get("console_verbose", False),
        ),
    )


def _apply_env_overrides(doc: dict[str, Any]) -> dict[str, Any]:
    overrides = {
        "BLEBRIDGE_PRINTER_ADDRESS": ("ble", "printer_address"),
        "BLEBRIDGE_DEVICE_NAME_CONTAINS": ("ble", "device_name_contains"),
        "BLEBRIDGE_LOG_FILE": ("logging", "file_path"),
    }
    merged = {section: dict(values) for section, values in doc.items() if isinstance(values, dict)}
    merged.update({key: value for key, value in doc.items() if not isinstance(value, dict)})
    for env_name, (section, key) in overrides.items():
        value = os.environ.get(env_name)
        if value:
            merged.setdefault(section, {})[key] = value
    return merged


def _config_warnings(config: BridgeConfig) -> list[str]:
    warnings: list[str] = []
    if config.ble.service_uuid is None or config.ble.write_characteristic_uuid is None:
        warnings.append(
            "ble.service_uuid/ble.write_characteristic_uuid not configured; print commands will fail."
        )
    return warnings


def load_config(path: Path | str | None = None) -> LoadedConfig:
    """Load settings from ``path``, ``$BLEBRIDGE_CONFIG``, or the XDG default.

    A missing file at the XDG default location yields built-in defaults; an
    explicitly named file must exist.
    """
    explicit = path if path is not None else os.environ.get(CONFIG_ENV) or None
    source = Path(explicit) if explicit is not None else default_config_path()

    doc: dict[str, Any] = {}
    if explicit is not None or source.is_file():
        doc = _read_yaml(source)
    else:
        source = None

    config = _build_config(_apply_env_overrides(doc), source or "defaults")
    return LoadedConfig(config=config, source=source, warnings=tuple(_config_warnings(config)))


def with_overrides(config: BridgeConfig, **ble_overrides: Any) -> BridgeConfig:
    """Return ``config`` with non-None ``ble`` fields replaced."""
    changes = {key: value for key, value in ble_overrides.items() if value is not None}
    if not changes:
        return config
    return replace(config, ble=replace(config.ble, **changes))
