import copy

import jsonschema
import pytest
import yaml
from conftest import make_notification

from telegram_notifier.common.models import Disposition, RoutingRule
from telegram_notifier.common.settings import (
    ConfigurationError,
    compute_config_hash,
    load_settings,
    validate_config,
)
from telegram_notifier.notifier.config import NotifierConfig
from telegram_notifier.routing.matcher import match_rule


def test_validate_config_accepts_base_config(base_settings, schema_path) -> None:
    validate_config(base_settings, schema_path)


def test_validate_config_accepts_example_settings(schema_path) -> None:
    example = yaml.safe_load((schema_path.parent / "settings.example.yaml").read_text(encoding="utf-8"))
    validate_config(example, schema_path)


def test_validate_config_rejects_unknown_disposition(base_settings, schema_path) -> None:
    config = copy.deepcopy(base_settings)
    config["devices"] = [{"device_id": "A", "disposition": "later"}]
    with pytest.raises(jsonschema.ValidationError):
        validate_config(config, schema_path)


def test_validate_config_rejects_unknown_top_level_key(base_settings, schema_path) -> None:
    config = copy.deepcopy(base_settings)
    config["unexpected"] = True
    with pytest.raises(jsonschema.ValidationError):
        validate_config(config, schema_path)


def test_validate_config_rejects_bad_verbosity(base_settings, schema_path) -> None:
    config = copy.deepcopy(base_settings)
    config["log_verbosity"] = 3
    with pytest.raises(jsonschema.ValidationError):
        validate_config(config, schema_path)


def test_validate_config_rejects_unquoted_switch_value(base_settings, schema_path) -> None:
    config = copy.deepcopy(base_settings)
    config["devices"] = yaml.safe_load("- device_id: sw\n  value: on\n  disposition: ignore\n")
    assert config["devices"][0]["value"] is True
    with pytest.raises(jsonschema.ValidationError):
        validate_config(config, schema_path)


def test_quoted_switch_value_matches_notification(base_settings, schema_path) -> None:
    config = copy.deepcopy(base_settings)
    config["devices"] = yaml.safe_load('- device_id: sw\n  value: "on"\n  disposition: ignore\n')
    validate_config(config, schema_path)
    rules = NotifierConfig.from_settings(config).rules
    rule = match_rule(rules, make_notification(source="sw", value="on"))
    assert rule == RoutingRule(device_id="sw", value="on", disposition=Disposition.IGNORE)


def test_notifier_config_rejects_boolean_rule_value(base_settings) -> None:
    base_settings["devices"] = [{"device_id": "sw", "value": False}]
    with pytest.raises(ConfigurationError, match="quoted"):
        NotifierConfig.from_settings(base_settings)


def test_load_settings_reads_yaml(tmp_path, base_settings, schema_path) -> None:
    config_path = tmp_path / "settings.yaml"
    config_path.write_text(yaml.safe_dump(base_settings))
    settings = load_settings(config_path, schema_path)
    assert settings.config_version == "1"
    assert settings.log_level == "INFO"
    assert settings.raw["telegram"]["chat_id"] == "42"
    assert len(compute_config_hash(config_path)) == 64


def test_load_settings_missing_file(tmp_path, schema_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_settings(tmp_path / "missing.yaml", schema_path)


def test_notifier_config_sorts_rules_and_parses_dispositions(base_settings) -> None:
    base_settings["devices"] = [
        {"message": "default"},
        {"device_id": "A", "disposition": "collect"},
        {"device_id": "A", "value": 1, "message": "A is 1", "disposition": "ignore"},
    ]
    config = NotifierConfig.from_settings(base_settings)
    assert config.rules == (
        RoutingRule(device_id="A", value="1", message="A is 1", disposition=Disposition.IGNORE),
        RoutingRule(device_id="A", disposition=Disposition.COLLECT),
        RoutingRule(message="default"),
    )
    assert config.collection_enabled
    assert config.log_verbosity == 2
    assert config.telegram.token == "TEST_TOKEN"


def test_notifier_config_collection_disabled_without_collect_rules(base_settings) -> None:
    base_settings["devices"] = [{"device_id": "A", "disposition": "normal"}]
    assert not NotifierConfig.from_settings(base_settings).collection_enabled
    base_settings["collect_default_messages"] = True
    assert NotifierConfig.from_settings(base_settings).collection_enabled


def test_notifier_config_rejects_unknown_disposition(base_settings) -> None:
    base_settings["devices"] = [{"device_id": "A", "disposition": "sometimes"}]
    with pytest.raises(ConfigurationError):
        NotifierConfig.from_settings(base_settings)


def test_notifier_config_token_falls_back_to_env(base_settings, monkeypatch) -> None:
    base_settings["telegram"] = {"token": None, "chat_id": None}
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "ENV_TOKEN")
    monkeypatch.setenv("TELEGRAM_CHAT_ID", "99")
    config = NotifierConfig.from_settings(base_settings)
    assert config.telegram.token == "ENV_TOKEN"
    assert config.telegram.chat_id == "99"


def test_notifier_config_requires_token(base_settings, monkeypatch) -> None:
    monkeypatch.delenv("TELEGRAM_BOT_TOKEN", raising=False)
    base_settings["telegram"] = {"chat_id": "1"}
    with pytest.raises(ConfigurationError):
        NotifierConfig.from_settings(base_settings)


def test_notifier_config_rejects_unknown_timezone(base_settings) -> None:
    base_settings["flush_timezone"] = "Mars/Olympus_Mons"
    with pytest.raises(ConfigurationError):
        NotifierConfig.from_settings(base_settings)
