import json

import pytest

from fancontrol.model_config import (
    ConfigError,
    EmbeddedControllerType,
    OverrideTargetOperation,
    RegisterWriteMode,
    RegisterWriteOccasion,
    embedded_controller_type_from_string,
    load_model_config,
    model_config_from_json,
)
from fancontrol.nxjson import parse

DEFAULT_THRESHOLDS = [
    (60, 0, 0),
    (63, 48, 10),
    (66, 55, 20),
    (68, 59, 50),
    (71, 63, 70),
    (75, 67, 100),
]

LEGACY_THRESHOLDS = [
    (0, 0, 0),
    (60, 48, 10),
    (63, 55, 20),
    (66, 59, 50),
    (68, 63, 70),
    (71, 67, 100),
]


def make_config(fan=None, **top):
    fan_cfg = {"ReadRegister": 1, "WriteRegister": 2, "MinSpeedValue": 0, "MaxSpeedValue": 255}
    fan_cfg.update(fan or {})
    doc = {"NotebookModel": "Example Laptop", "FanConfigurations": [fan_cfg]}
    doc.update(top)
    return model_config_from_json(parse(json.dumps(doc)))


def threshold_tuples(fan):
    return [(t.up_threshold, t.down_threshold, t.fan_speed) for t in fan.temperature_thresholds]


def test_default_thresholds_are_filled_in():
    config = make_config()
    config.validate()
    assert threshold_tuples(config.fan_configurations[0]) == DEFAULT_THRESHOLDS


def test_legacy_default_thresholds():
    config = make_config(LegacyTemperatureThresholdsBehaviour=True)
    config.validate()
    assert threshold_tuples(config.fan_configurations[0]) == LEGACY_THRESHOLDS


def test_default_thresholds_produce_no_warnings():
    config = make_config()
    assert config.validate() == []


def test_default_fan_name():
    config = make_config()
    config.validate()
    assert config.fan_configurations[0].fan_display_name == "Fan #0"


def test_explicit_fan_name_kept():
    config = make_config({"FanDisplayName": "CPU fan"})
    config.validate()
    assert config.fan_configurations[0].fan_display_name == "CPU fan"


def test_reset_value_zeroed_when_not_required():
    config = make_config({"FanSpeedResetValue": 77})
    config.validate()
    assert config.fan_configurations[0].fan_speed_reset_value == 0


def test_reset_value_required_when_reset_required():
    config = make_config({"ResetRequired": True})
    with pytest.raises(ConfigError, match="FanSpeedResetValue"):
        config.validate()


def test_reset_value_kept_when_required():
    config = make_config({"ResetRequired": True, "FanSpeedResetValue": 77})
    config.validate()
    assert config.fan_configurations[0].fan_speed_reset_value == 77


def test_min_equals_max_is_error():
    config = make_config({"MinSpeedValue": 10, "MaxSpeedValue": 10})
    with pytest.raises(ConfigError) as info:
        config.validate()
    assert str(info.value) == (
        "FanConfigurations[0]: MinSpeedValue and MaxSpeedValue cannot be the same"
    )


def test_independent_read_values_must_differ():
    config = make_config(
        {"IndependentReadMinMaxValues": True, "MinSpeedValueRead": 5, "MaxSpeedValueRead": 5}
    )
    with pytest.raises(ConfigError, match="MinSpeedValueRead and MaxSpeedValueRead"):
        config.validate()


def test_up_below_down_is_error():
    thresholds = [{"UpThreshold": 40, "DownThreshold": 50, "FanSpeed": 0}]
    config = make_config({"TemperatureThresholds": thresholds})
    with pytest.raises(ConfigError) as info:
        config.validate()
    assert str(info.value) == (
        "FanConfigurations[0]: TemperatureThresholds[0]: "
        "UpThreshold cannot be less than DownThreshold"
    )


def test_duplicate_up_threshold_is_error():
    thresholds = [
        {"UpThreshold": 50, "DownThreshold": 40, "FanSpeed": 0},
        {"UpThreshold": 50, "DownThreshold": 45, "FanSpeed": 100},
    ]
    config = make_config({"TemperatureThresholds": thresholds})
    with pytest.raises(ConfigError, match="Duplicate UpThreshold"):
        config.validate()


def test_up_above_critical_warns():
    thresholds = [
        {"UpThreshold": 50, "DownThreshold": 40, "FanSpeed": 0},
        {"UpThreshold": 90, "DownThreshold": 80, "FanSpeed": 100},
    ]
    config = make_config({"TemperatureThresholds": thresholds}, CriticalTemperature=80)
    warnings = config.validate()
    assert warnings == [
        "FanConfigurations[0]: TemperatureThresholds[1]: "
        "UpThreshold cannot be greater than CriticalTemperature"
    ]


def test_missing_zero_and_full_speed_warn():
    thresholds = [{"UpThreshold": 50, "DownThreshold": 40, "FanSpeed": 50}]
    config = make_config({"TemperatureThresholds": thresholds})
    warnings = config.validate()
    assert "FanConfigurations[0]: No threshold with FanSpeed == 0 found" in warnings
    assert "FanConfigurations[0]: No threshold with FanSpeed == 100 found" in warnings


def test_fan_speed_out_of_range():
    thresholds = [{"UpThreshold": 50, "DownThreshold": 40, "FanSpeed": 150}]
    config = make_config({"TemperatureThresholds": thresholds})
    with pytest.raises(ConfigError, match=r"TemperatureThresholds\[0\]: FanSpeed"):
        config.validate()


@pytest.mark.parametrize(
    "top, message",
    [
        ({"ReadWriteWords": 1}, "ReadWriteWords: Not a bool"),
        ({"CriticalTemperature": "hot"}, "CriticalTemperature: Not a int"),
        ({"NotebookModel": 5}, "NotebookModel: Not a string"),
        ({"FanConfigurations": {}}, "FanConfigurations: Not an array"),
    ],
)
def test_type_errors(top, message):
    doc = {"NotebookModel": "Example Laptop", "FanConfigurations": []}
    doc.update(top)
    with pytest.raises(ConfigError) as info:
        model_config_from_json(parse(json.dumps(doc)))
    assert str(info.value) == message


def test_short_range_error():
    thresholds = [{"UpThreshold": 40000, "DownThreshold": 0, "FanSpeed": 0}]
    with pytest.raises(ConfigError, match="Value not in range for short type"):
        make_config({"TemperatureThresholds": thresholds})


def test_double_field_accepts_integer():
    thresholds = [{"UpThreshold": 50, "DownThreshold": 40, "FanSpeed": 100}]
    config = make_config({"TemperatureThresholds": thresholds})
    assert config.fan_configurations[0].temperature_thresholds[0].fan_speed == 100.0


def test_register_write_configuration_enums():
    rwc = {"Register": 5, "Value": 1, "WriteMode": "Or", "WriteOccasion": "OnWriteFanSpeed"}
    config = make_config(RegisterWriteConfigurations=[rwc])
    config.validate()
    parsed = config.register_write_configurations[0]
    assert parsed.write_mode is RegisterWriteMode.OR
    assert parsed.write_occasion is RegisterWriteOccasion.ON_WRITE_FAN_SPEED
    assert parsed.reset_value == 0
    assert parsed.reset_write_mode is RegisterWriteMode.SET


def test_invalid_register_write_mode():
    rwc = {"Register": 5, "Value": 1, "WriteMode": "Xor"}
    with pytest.raises(ConfigError, match="Invalid value for RegisterWriteMode"):
        make_config(RegisterWriteConfigurations=[rwc])


def test_register_write_configuration_error_has_index():
    rwc = {"Value": 1}
    config = make_config(RegisterWriteConfigurations=[rwc])
    with pytest.raises(ConfigError, match=r"^RegisterWriteConfigurations\[0\]: Register"):
        config.validate()


def test_override_defaults_and_errors():
    overrides = [{"FanSpeedPercentage": 0, "FanSpeedValue": 255}]
    config = make_config({"FanSpeedPercentageOverrides": overrides})
    config.validate()
    override = config.fan_configurations[0].fan_speed_percentage_overrides[0]
    assert override.target_operation is OverrideTargetOperation.READ_WRITE
    assert override.target_operation.reads and override.target_operation.writes

    bad = make_config(
        {"FanSpeedPercentageOverrides": [{"FanSpeedPercentage": 150, "FanSpeedValue": 1}]}
    )
    with pytest.raises(ConfigError, match=r"FanSpeedPercentageOverrides\[0\]"):
        bad.validate()


def test_unknown_key_is_error():
    with pytest.raises(ConfigError, match="Colour"):
        make_config(Colour="red")


def test_missing_notebook_model():
    config = model_config_from_json(parse('{"FanConfigurations": []}'))
    with pytest.raises(ConfigError, match="NotebookModel"):
        config.validate()


def test_not_an_object():
    with pytest.raises(ConfigError, match="Not an object"):
        model_config_from_json(parse("[]"))


@pytest.mark.parametrize(
    "text, expected",
    [
        ("ec_sys", EmbeddedControllerType.EC_SYS),
        ("acpi_ec", EmbeddedControllerType.ACPI_EC),
        ("dev_port", EmbeddedControllerType.DEV_PORT),
        ("dummy", EmbeddedControllerType.DUMMY),
        ("ec_sys_linux", EmbeddedControllerType.EC_SYS),
        ("ec_acpi", EmbeddedControllerType.ACPI_EC),
        ("ec_linux", EmbeddedControllerType.DEV_PORT),
    ],
)
def test_embedded_controller_type_from_string(text, expected):
    assert embedded_controller_type_from_string(text) is expected


def test_embedded_controller_type_round_trip():
    for ec_type in EmbeddedControllerType:
        assert embedded_controller_type_from_string(str(ec_type)) is ec_type


def test_invalid_embedded_controller_type():
    with pytest.raises(ValueError, match="Invalid value for EmbeddedControllerType"):
        embedded_controller_type_from_string("serial")


def test_load_model_config(tmp_path):
    path = tmp_path / "model.json"
    path.write_text(
        "// sample\n"
        '{"NotebookModel": "Example Laptop", "Author": "someone",\n'
        ' "FanConfigurations": [{"ReadRegister": 1, "WriteRegister": 2,\n'
        '   "MinSpeedValue": 0, "MaxSpeedValue": 255}]}\n'
    )
    config = load_model_config(path)
    config.validate()
    assert config.notebook_model == "Example Laptop"
    assert config.author == "someone"
    assert config.fan_configurations[0].max_speed_value == 255