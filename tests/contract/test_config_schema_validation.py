from __future__ import annotations

import json

import jsonschema
import pytest

from erp_import.config.loader import SCHEMA_PATH, ConfigError, build_config

"""config_schema.json contract."""


def _schema():
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_schema_file_is_valid_json_schema():
    jsonschema.Draft202012Validator.check_schema(_schema())


def test_full_example_valid():
    jsonschema.validate(
        {
            "schema": "ims",
            "preview_limit": 200,
            "detail_limit": 200,
            "max_file_size_mb": 10,
            "error_log_dir": "./logs",
            "database": {"dsn": None, "host": "localhost", "port": 5432, "user": "postgres", "password": None, "database": "postgres"},
        },
        _schema(),
    )


@pytest.mark.parametrize(
    "data",
    [
        {"schema": "ims; DROP TABLE items"},
        {"schema": "IMS"},
        {"preview_limit": -1},
        {"max_file_size_mb": 0},
        {"database": {"port": 70000}},
        {"database": {"hostname": "x"}},
        {"unknown_key": 1},
    ],
)
def test_invalid_configs_rejected(data):
    with pytest.raises(ConfigError):
        build_config(data)
