"""Notebook model configuration: reading from JSON and validation."""

from __future__ import annotations

import enum
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass, field, fields
from typing import Any, Callable, Iterator, Optional, Union

from .nxjson import JsonNode, JsonType, parse_file

log = logging.getLogger(__name__)

SHORT_MIN = -32768
SHORT_MAX = 32767

_DEFAULT_THRESHOLDS = (
    (60, 0, 0),
    (63, 48, 10),
    (66, 55, 20),
    (68, 59, 50),
    (71, 63, 70),
    (75, 67, 100),
)

_DEFAULT_LEGACY_THRESHOLDS = (
    (0, 0, 0),
    (60, 48, 10),
    (63, 55, 20),
    (66, 59, 50),
    (68, 63, 70),
    (71, 67, 100),
)


class ConfigError(ValueError):
    """Raised when a configuration cannot be read or is invalid."""


class RegisterWriteMode(enum.Enum):
    """How a value is combined with the register's current content."""

    SET = "Set"
    AND = "And"
    OR = "Or"


class RegisterWriteOccasion(enum.Enum):
    """When a register write is applied."""

    ON_WRITE_FAN_SPEED = "OnWriteFanSpeed"
    ON_INITIALIZATION = "OnInitialization"


class OverrideTargetOperation(enum.Enum):
    """Whether a fan speed override applies to reading, writing or both."""

    READ = "Read"
    WRITE = "Write"
    READ_WRITE = "ReadWrite"

    @property
    def reads(self) -> bool:
        return self in (OverrideTargetOperation.READ, OverrideTargetOperation.READ_WRITE)

    @property
    def writes(self) -> bool:
        return self in (OverrideTargetOperation.WRITE, OverrideTargetOperation.READ_WRITE)


class EmbeddedControllerType(enum.Enum):
    """Backend used to access the embedded controller."""

    EC_SYS = "ec_sys"
    ACPI_EC = "acpi_ec"
    DEV_PORT = "dev_port"
    DUMMY = "dummy"

    def __str__(self) -> str:
        return self.value


_LEGACY_EC_NAMES = {
    "ec_sys_linux": EmbeddedControllerType.EC_SYS,
    "ec_acpi": EmbeddedControllerType.ACPI_EC,
    "ec_linux": EmbeddedControllerType.DEV_PORT,
}


class TemperatureAlgorithmType(enum.Enum):
    """How several sensor readings are combined into one temperature."""

    AVERAGE = "Average"
    MIN = "Min"
    MAX = "Max"

    def __str__(self) -> str:
        return self.value


def embedded_controller_type_from_string(text: str) -> EmbeddedControllerType:
    """Return the controller type for a name, accepting older spellings too."""
    try:
        return EmbeddedControllerType(text)
    except ValueError:
        pass
    if text in _LEGACY_EC_NAMES:
        return _LEGACY_EC_NAMES[text]
    raise ValueError("Invalid value for EmbeddedControllerType")


# -- conversion from JSON nodes ---------------------------------------------

Converter = Callable[[JsonNode], Any]


def _to_bool(node: JsonNode) -> bool:
    if node.type is JsonType.BOOL:
        return bool(node.value)
    raise ConfigError("Not a bool")


def _to_int(node: JsonNode) -> int:
    if node.type is JsonType.INTEGER:
        return int(node.value)
    raise ConfigError("Not a int")


def _to_short(node: JsonNode) -> int:
    value = _to_int(node)
    if not SHORT_MIN <= value <= SHORT_MAX:
        raise ConfigError("Value not in range for short type")
    return value


def _to_float(node: JsonNode) -> float:
    if node.type in (JsonType.INTEGER, JsonType.DOUBLE):
        return float(node.value)
    raise ConfigError("Not a double")


def _to_str(node: JsonNode) -> str:
    if node.type is JsonType.STRING:
        return node.value
    raise ConfigError("Not a string")


def _enum_of(enum_cls: type[enum.Enum]) -> Converter:
    def convert(node: JsonNode) -> enum.Enum:
        text = _to_str(node)
        try:
            return enum_cls(text)
        except ValueError:
            raise ConfigError(f"Invalid value for {enum_cls.__name__}") from None

    return convert


def _list_of(convert: Converter) -> Converter:
    def convert_list(node: JsonNode) -> list:
        if node.type is not JsonType.ARRAY:
            raise ConfigError("Not an array")
        return [convert(child) for child in node.children]

    return convert_list


def _object_of(cls: type) -> Converter:
    return lambda node: _from_object(cls, node)


def _field(
    json_key: str,
    convert: Converter,
    *,
    required: bool = False,
    default: Optional[Callable[[], Any]] = None,
    bounds: Optional[tuple[float, float]] = None,
) -> Any:
    return field(
        default=None,
        metadata={
            "json": json_key,
            "convert": convert,
            "required": required,
            "default": default,
            "bounds": bounds,
        },
    )


def _from_object(cls: type, node: JsonNode) -> Any:
    if node.type is not JsonType.OBJECT:
        raise ConfigError("Not an object")
    by_key = {f.metadata["json"]: f for f in fields(cls)}
    values: dict[str, Any] = {}
    for child in node.children:
        spec = by_key.get(child.key)
        if spec is None:
            raise ConfigError(f"{child.key}: Unknown option")
        try:
            values[spec.name] = spec.metadata["convert"](child)
        except ConfigError as exc:
            raise ConfigError(f"{child.key}: {exc}") from None
    return cls(**values)


def _validate_fields(obj: Any) -> None:
    """Fill in defaults, then check required fields and value ranges."""
    for spec in fields(obj):
        meta = spec.metadata
        key = meta["json"]
        value = getattr(obj, spec.name)
        if value is None:
            if meta["default"] is not None:
                value = meta["default"]()
                setattr(obj, spec.name, value)
            elif meta["required"]:
                raise ConfigError(f"{key}: Missing option")
            else:
                continue
        bounds = meta["bounds"]
        if bounds is not None and not bounds[0] <= value <= bounds[1]:
            raise ConfigError(f"{key}: Value not in range")


@contextmanager
def _context(where: str) -> Iterator[None]:
    try:
        yield
    except ConfigError as exc:
        raise ConfigError(f"{where}: {exc}") from None


# -- configuration structures -----------------------------------------------


@dataclass
class TemperatureThreshold:
    """Fan speed to use between a down and an up temperature."""

    up_threshold: Optional[int] = _field("UpThreshold", _to_short, required=True)
    down_threshold: Optional[int] = _field("DownThreshold", _to_short, required=True)
    fan_speed: Optional[float] = _field(
        "FanSpeed", _to_float, required=True, bounds=(0.0, 100.0)
    )


@dataclass
class FanSpeedPercentageOverride:
    """Maps a speed percentage to a fixed register value."""

    fan_speed_percentage: Optional[float] = _field(
        "FanSpeedPercentage", _to_float, required=True, bounds=(0.0, 100.0)
    )
    fan_speed_value: Optional[int] = _field("FanSpeedValue", _to_int, required=True)
    target_operation: Optional[OverrideTargetOperation] = _field(
        "TargetOperation",
        _enum_of(OverrideTargetOperation),
        default=lambda: OverrideTargetOperation.READ_WRITE,
    )


@dataclass
class FanConfiguration:
    """Registers and speed mapping of one fan."""

    fan_display_name: Optional[str] = _field("FanDisplayName", _to_str)
    read_register: Optional[int] = _field(
        "ReadRegister", _to_int, required=True, bounds=(0, 255)
    )
    write_register: Optional[int] = _field(
        "WriteRegister", _to_int, required=True, bounds=(0, 255)
    )
    min_speed_value: Optional[int] = _field("MinSpeedValue", _to_int, required=True)
    max_speed_value: Optional[int] = _field("MaxSpeedValue", _to_int, required=True)
    independent_read_min_max_values: Optional[bool] = _field(
        "IndependentReadMinMaxValues", _to_bool, default=lambda: False
    )
    min_speed_value_read: Optional[int] = _field(
        "MinSpeedValueRead", _to_int, default=lambda: 0
    )
    max_speed_value_read: Optional[int] = _field(
        "MaxSpeedValueRead", _to_int, default=lambda: 0
    )
    reset_required: Optional[bool] = _field(
        "ResetRequired", _to_bool, default=lambda: False
    )
    fan_speed_reset_value: Optional[int] = _field(
        "FanSpeedResetValue", _to_int, required=True
    )
    temperature_thresholds: Optional[list[TemperatureThreshold]] = _field(
        "TemperatureThresholds", _list_of(_object_of(TemperatureThreshold)), default=list
    )
    fan_speed_percentage_overrides: Optional[list[FanSpeedPercentageOverride]] = _field(
        "FanSpeedPercentageOverrides",
        _list_of(_object_of(FanSpeedPercentageOverride)),
        default=list,
    )


@dataclass
class RegisterWriteConfiguration:
    """A register value written at start-up or with every fan speed write."""

    write_mode: Optional[RegisterWriteMode] = _field(
        "WriteMode", _enum_of(RegisterWriteMode), default=lambda: RegisterWriteMode.SET
    )
    write_occasion: Optional[RegisterWriteOccasion] = _field(
        "WriteOccasion",
        _enum_of(RegisterWriteOccasion),
        default=lambda: RegisterWriteOccasion.ON_INITIALIZATION,
    )
    register: Optional[int] = _field("Register", _to_int, required=True, bounds=(0, 255))
    value: Optional[int] = _field("Value", _to_int, required=True, bounds=(0, 255))
    reset_required: Optional[bool] = _field(
        "ResetRequired", _to_bool, default=lambda: False
    )
    reset_value: Optional[int] = _field(
        "ResetValue", _to_int, required=True, bounds=(0, 255)
    )
    reset_write_mode: Optional[RegisterWriteMode] = _field(
        "ResetWriteMode",
        _enum_of(RegisterWriteMode),
        default=lambda: RegisterWriteMode.SET,
    )
    description: Optional[str] = _field("Description", _to_str)


def _default_thresholds(legacy: bool) -> list[TemperatureThreshold]:
    table = _DEFAULT_LEGACY_THRESHOLDS if legacy else _DEFAULT_THRESHOLDS
    return [TemperatureThreshold(up, down, speed) for up, down, speed in table]


@dataclass
class ModelConfig:
    """Fan control configuration of one notebook model."""

    notebook_model: Optional[str] = _field("NotebookModel", _to_str, required=True)
    author: Optional[str] = _field("Author", _to_str)
    ec_poll_interval: Optional[int] = _field(
        "EcPollInterval", _to_int, default=lambda: 3000
    )
    read_write_words: Optional[bool] = _field(
        "ReadWriteWords", _to_bool, default=lambda: False
    )
    critical_temperature: Optional[int] = _field(
        "CriticalTemperature", _to_int, default=lambda: 75
    )
    fan_configurations: Optional[list[FanConfiguration]] = _field(
        "FanConfigurations", _list_of(_object_of(FanConfiguration)), required=True
    )
    register_write_configurations: Optional[list[RegisterWriteConfiguration]] = _field(
        "RegisterWriteConfigurations",
        _list_of(_object_of(RegisterWriteConfiguration)),
        default=list,
    )
    legacy_temperature_thresholds_behaviour: Optional[bool] = _field(
        "LegacyTemperatureThresholdsBehaviour", _to_bool, default=lambda: False
    )

    def validate(self) -> list[str]:
        """Fill in defaults and check consistency.

        Raises :class:`ConfigError` on the first error and returns the
        warnings found, which are also logged.
        """
        warnings: list[str] = []

        def warn(message: str) -> None:
            log.warning("%s", message)
            warnings.append(message)

        _validate_fields(self)

        for i, rwc in enumerate(self.register_write_configurations):
            with _context(f"RegisterWriteConfigurations[{i}]"):
                if not rwc.reset_required:
                    rwc.reset_value = 0
                _validate_fields(rwc)

        for i, fan in enumerate(self.fan_configurations):
            fan_where = f"FanConfigurations[{i}]"
            with _context(fan_where):
                self._validate_fan(i, fan, fan_where, warn)

        return warnings

    def _validate_fan(
        self,
        index: int,
        fan: FanConfiguration,
        fan_where: str,
        warn: Callable[[str], None],
    ) -> None:
        if fan.fan_display_name is None:
            fan.fan_display_name = f"Fan #{index}"
        if not fan.reset_required:
            fan.fan_speed_reset_value = 0

        _validate_fields(fan)

        if fan.min_speed_value == fan.max_speed_value:
            raise ConfigError("MinSpeedValue and MaxSpeedValue cannot be the same")
        if (
            fan.independent_read_min_max_values
            and fan.min_speed_value_read == fan.max_speed_value_read
        ):
            raise ConfigError("MinSpeedValueRead and MaxSpeedValueRead cannot be the same")

        for j, override in enumerate(fan.fan_speed_percentage_overrides):
            with _context(f"FanSpeedPercentageOverrides[{j}]"):
                _validate_fields(override)

        if not fan.temperature_thresholds:
            fan.temperature_thresholds = _default_thresholds(
                self.legacy_temperature_thresholds_behaviour
            )

        thresholds = fan.temperature_thresholds
        for j, threshold in enumerate(thresholds):
            where = f"TemperatureThresholds[{j}]"
            with _context(where):
                _validate_fields(threshold)
                if threshold.up_threshold < threshold.down_threshold:
                    raise ConfigError("UpThreshold cannot be less than DownThreshold")
                if threshold.up_threshold > self.critical_temperature:
                    warn(
                        f"{fan_where}: {where}: "
                        "UpThreshold cannot be greater than CriticalTemperature"
                    )
                if any(
                    other is not threshold and other.up_threshold == threshold.up_threshold
                    for other in thresholds
                ):
                    raise ConfigError("Duplicate UpThreshold")

        if not any(t.fan_speed == 0 for t in thresholds):
            warn(f"{fan_where}: No threshold with FanSpeed == 0 found")
        if not any(t.fan_speed == 100 for t in thresholds):
            warn(f"{fan_where}: No threshold with FanSpeed == 100 found")


def model_config_from_json(node: JsonNode) -> ModelConfig:
    """Build a model configuration from a parsed JSON object (not yet validated)."""
    return _from_object(ModelConfig, node)


def load_model_config(path: Union[str, os.PathLike]) -> ModelConfig:
    """Read a model configuration file (not yet validated)."""
    return model_config_from_json(parse_file(path))