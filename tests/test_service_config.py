import logging

import pytest

from fancontrol.model_config import (
    ConfigError,
    EmbeddedControllerType,
    TemperatureAlgorithmType,
)
from fancontrol.nxjson import JsonParseError, parse
from fancontrol.service_config import (
    FanTemperatureSourceConfig,
    ServiceConfig,
    load_service_config,
    service_config_from_json,
)


def test_target_speeds_are_corrected():
    node = parse('{"SelectedConfigId": "Model", "TargetFanSpeeds": [50, 150, -5, -1]}')
    config = service_config_from_json(node)
    assert config.target_fan_speeds == [50.0, 100.0, -1.0, -1.0]


def test_correction_is_logged(caplog):
    node = parse('{"SelectedConfigId": "Model", "TargetFanSpeeds": [150]}')
    with caplog.at_level(logging.WARNING):
        service_config_from_json(node, "conf.json")
    assert any("greater than 100.0" in r.getMessage() for r in caplog.records)
    assert any(r.getMessage().startswith("conf.json: ") for r in caplog.records)


def test_missing_selected_config_id():
    with pytest.raises(ConfigError):
        service_config_from_json(parse('{"TargetFanSpeeds": [1]}'))


def test_unknown_key_rejected():
    with pytest.raises(ConfigError):
        service_config_from_json(parse('{"SelectedConfigId": "M", "Bogus": 1}'))


def test_legacy_controller_name():
    node = parse('{"SelectedConfigId": "M", "EmbeddedControllerType": "ec_sys_linux"}')
    config = service_config_from_json(node)
    assert config.embedded_controller_type is EmbeddedControllerType.EC_SYS


def test_invalid_controller_name():
    node = parse('{"SelectedConfigId": "M", "EmbeddedControllerType": "nope"}')
    with pytest.raises(ConfigError, match="EmbeddedControllerType"):
        service_config_from_json(node)


def test_temperature_source_defaults():
    node = parse(
        '{"SelectedConfigId": "M", "FanTemperatureSources": [{"FanIndex": 0}]}'
    )
    config = service_config_from_json(node)
    source = config.fan_temperature_sources[0]
    assert source.temperature_algorithm_type is TemperatureAlgorithmType.AVERAGE
    assert source.sensors == []


def test_temperature_source_requires_fan_index():
    node = parse(
        '{"SelectedConfigId": "M", "FanTemperatureSources": [{"Sensors": ["a"]}]}'
    )
    with pytest.raises(ConfigError):
        service_config_from_json(node)


def test_to_json_omits_unset_fields():
    node = ServiceConfig(selected_config_id="M").to_json()
    assert [child.key for child in node.children] == ["SelectedConfigId"]


def test_write_and_load_round_trip(tmp_path):
    config = ServiceConfig(
        selected_config_id='Model "X"',
        embedded_controller_type=EmbeddedControllerType.ACPI_EC,
        target_fan_speeds=[-1.0, 42.5],
        fan_temperature_sources=[
            FanTemperatureSourceConfig(
                fan_index=1,
                temperature_algorithm_type=TemperatureAlgorithmType.MAX,
                sensors=["coretemp", "k10temp"],
            )
        ],
    )
    path = tmp_path / "nbfc.json"
    config.write(path)
    assert load_service_config(path) == config


def test_write_truncates_existing(tmp_path):
    path = tmp_path / "nbfc.json"
    path.write_text("x" * 5000)
    ServiceConfig(selected_config_id="M").write(path)
    assert load_service_config(path).selected_config_id == "M"


def test_load_invalid_json(tmp_path):
    path = tmp_path / "bad.json"
    path.write_text("{ nonsense")
    with pytest.raises(JsonParseError):
        load_service_config(path)