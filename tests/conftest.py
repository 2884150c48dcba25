"""Shared fixtures: temporary asset and output folders, rule configs."""

import json

import pytest


@pytest.fixture
def base_path(tmp_path):
    path = tmp_path / "assets"
    path.mkdir()
    return path


@pytest.fixture
def output_folder(tmp_path):
    path = tmp_path / "spritesheets"
    path.mkdir()
    return path


@pytest.fixture
def basic_config():
    """One rule requiring a body and eye shape, drawing every slot it knows."""
    return {
        "if_keys_and_values": [
            {
                "keys_and_values": [{"keys": ["Base Body", "Eye Shape"]}],
                "properties": [
                    {"key": "Base Body", "folder": "Base Body"},
                    {"key": "Eye Shape", "folder": "Eye Shape"},
                    {"key": "Wearable (Head)", "folder": "Wearables/Wearable (Head)"},
                    {"key": "Wearable (Hands)", "folder": "Wearables/Wearable (Hands)"},
                    {"key": "Wearable (Pet)", "folder": "Wearables/Wearable (Pet)"},
                ],
            }
        ]
    }


@pytest.fixture
def write_json(tmp_path):
    def _write(name, data):
        path = tmp_path / name
        path.write_text(json.dumps(data), encoding="utf-8")
        return path

    return _write
