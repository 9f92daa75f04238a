"""
Tests for configuration loading.
"""

import json

import pytest

from ticketless_entry.app import create_app
from ticketless_entry.config import load_config


def test_defaults(monkeypatch):
    for name in ("STORE_BACKEND", "EVENT_TIMEZONE", "SEND_INTERVAL_SECONDS", "MAIL_USE_TLS"):
        monkeypatch.delenv(name, raising=False)

    config = load_config()

    assert config['STORE_BACKEND'] == 'sheets'
    assert config['EVENT_TIMEZONE'] == 'Asia/Tokyo'
    assert config['SEND_INTERVAL_SECONDS'] == 1.0
    assert config['MAIL_USE_TLS'] is True
    assert config['ATTENDEES_WORKSHEET'] == 'Attendees'


def test_environment(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "memory")
    monkeypatch.setenv("SEND_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("MAIL_USE_TLS", "false")
    monkeypatch.setenv("DEBUG_MODE", "True")

    config = load_config()

    assert config['STORE_BACKEND'] == 'memory'
    assert config['SEND_INTERVAL_SECONDS'] == 2.5
    assert config['MAIL_USE_TLS'] is False
    assert config['DEBUG'] is True


def test_overrides_win(monkeypatch):
    monkeypatch.setenv("STORE_BACKEND", "sheets")
    assert load_config({'STORE_BACKEND': 'memory'})['STORE_BACKEND'] == 'memory'


def test_unsupported_backend():
    with pytest.raises(ValueError):
        create_app({'STORE_BACKEND': 'csv', 'REDIS_URL': ''})


def test_taxonomy_file(tmp_path):
    path = tmp_path / "taxonomy.json"
    path.write_text(json.dumps({"aliases": [["早割", "StandardPass"]]}), encoding="utf-8")

    entry_app = create_app({'STORE_BACKEND': 'memory', 'REDIS_URL': '', 'TAXONOMY_FILE': str(path)})

    assert entry_app.taxonomy.normalize("早割") == "StandardPass"
