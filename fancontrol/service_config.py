"""Service configuration: selected model, controller type and fan settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional, Union

from .jsonwriter import to_string
from .model_config import (
    ConfigError,
    EmbeddedControllerType,
    TemperatureAlgorithmType,
    _enum_of,
    _field,
    _from_object,
    _list_of,
    _object_of,
    _to_float,
    _to_int,
    _to_str,
    _validate_fields,
    embedded_controller_type_from_string,
)
from .nxjson import JsonNode, JsonType, parse_file

log = logging.getLogger(__name__)

AUTO_SPEED = -1.0
MAX_SPEED = 100.0
_FILE_MODE = 0o664


def _to_ec_type(node: JsonNode) -> EmbeddedControllerType:
    text = _to_str(node)
    try:
        return embedded_controller_type_from_string(text)
    except ValueError:
        raise ConfigError("Invalid value for EmbeddedControllerType") from None


@dataclass
class FanTemperatureSourceConfig:
    """Which sensors feed the temperature of one fan, and how they combine."""

    fan_index: Optional[int] = _field("FanIndex", _to_int, required=True)
    temperature_algorithm_type: Optional[TemperatureAlgorithmType] = _field(
        "TemperatureAlgorithmType",
        _enum_of(TemperatureAlgorithmType),
        default=lambda: TemperatureAlgorithmType.AVERAGE,
    )
    sensors: Optional[list[str]] = _field("Sensors", _list_of(_to_str), default=list)


@dataclass
class ServiceConfig:
    """Persistent settings of the fan control service."""

    selected_config_id: Optional[str] = _field(
        "SelectedConfigId", _to_str, required=True
    )
    embedded_controller_type: Optional[EmbeddedControllerType] = _field(
        "EmbeddedControllerType", _to_ec_type
    )
    target_fan_speeds: Optional[list[float]] = _field(
        "TargetFanSpeeds", _list_of(_to_float), default=list
    )
    fan_temperature_sources: Optional[list[FanTemperatureSourceConfig]] = _field(
        "FanTemperatureSources",
        _list_of(_object_of(FanTemperatureSourceConfig)),
        default=list,
    )

    def to_json(self) -> JsonNode:
        """Build the JSON object written to the configuration file."""
        root = JsonNode(JsonType.OBJECT)
        if self.selected_config_id is not None:
            root.append(JsonNode(JsonType.STRING, "SelectedConfigId", self.selected_config_id))
        if self.embedded_controller_type is not None:
            root.append(
                JsonNode(
                    JsonType.STRING,
                    "EmbeddedControllerType",
                    str(self.embedded_controller_type),
                )
            )
        if self.target_fan_speeds:
            speeds = root.append(JsonNode(JsonType.ARRAY, "TargetFanSpeeds"))
            for speed in self.target_fan_speeds:
                speeds.append(JsonNode(JsonType.DOUBLE, None, float(speed)))
        if self.fan_temperature_sources:
            sources = root.append(JsonNode(JsonType.ARRAY, "FanTemperatureSources"))
            for source in self.fan_temperature_sources:
                item = sources.append(JsonNode(JsonType.OBJECT))
                item.append(JsonNode(JsonType.INTEGER, "FanIndex", int(source.fan_index)))
                algorithm = source.temperature_algorithm_type or TemperatureAlgorithmType.AVERAGE
                item.append(
                    JsonNode(JsonType.STRING, "TemperatureAlgorithmType", str(algorithm))
                )
                if source.sensors:
                    sensors = item.append(JsonNode(JsonType.ARRAY, "Sensors"))
                    for sensor in source.sensors:
                        sensors.append(JsonNode(JsonType.STRING, None, sensor))
        return root

    def write(self, path: Union[str, os.PathLike]) -> None:
        """Write the configuration to ``path``, replacing its content."""
        text = to_string(self.to_json())
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, _FILE_MODE)
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(text)


def service_config_from_json(node: JsonNode, source: Optional[str] = None) -> ServiceConfig:
    """Build and validate a service configuration from a parsed JSON object.

    Out-of-range target speeds are corrected and reported as warnings;
    ``source`` names the origin in those messages.
    """
    config: ServiceConfig = _from_object(ServiceConfig, node)
    _validate_fields(config)

    def warn(message: str) -> None:
        log.warning("%s", f"{source}: {message}" if source else message)

    corrected: list[float] = []
    for speed in config.target_fan_speeds:
        if speed > MAX_SPEED:
            warn("TargetFanSpeeds: value cannot be greater than 100.0")
            speed = MAX_SPEED
        if speed < 0.0 and speed != AUTO_SPEED:
            warn("TargetFanSpeeds: Please use `-1' for selecting auto mode")
            speed = AUTO_SPEED
        corrected.append(speed)
    config.target_fan_speeds = corrected

    for fan_source in config.fan_temperature_sources:
        _validate_fields(fan_source)

    return config


def load_service_config(path: Union[str, os.PathLike]) -> ServiceConfig:
    """Read and validate a service configuration file."""
    return service_config_from_json(parse_file(path), os.fspath(path))