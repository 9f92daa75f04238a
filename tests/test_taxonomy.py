"""
Tests for ticket type normalization and reception windows.
"""

import json

import pytest

from ticketless_entry.exceptions import DataValidationException
from ticketless_entry.repositories import JSONRepository
from ticketless_entry.taxonomy import TaxonomyConfig, TicketTaxonomy


class TestTicketTaxonomy:

    def test_price_code_maps_to_priority_pass(self, taxonomy):
        canonical = taxonomy.normalize("15400")
        assert canonical == "PriorityPass"
        assert taxonomy.reception_window(canonical) == "18:30-19:00"

    def test_numeric_price_code(self, taxonomy):
        assert taxonomy.normalize(15400) == "PriorityPass"

    def test_historical_label_maps_to_vip(self, taxonomy):
        canonical = taxonomy.normalize("役員招待枠")
        assert canonical == "VIP Pass"
        assert taxonomy.reception_window(canonical) == "18:30-19:00"

    def test_canonical_label_is_stable(self, taxonomy):
        for canonical in ("VIP Pass", "PriorityPass", "StandardPass", "GuestPass"):
            assert taxonomy.normalize(canonical) == canonical

    def test_unknown_label_passes_through(self, taxonomy):
        assert taxonomy.normalize("  Backstage ") == "Backstage"
        assert taxonomy.reception_window("Backstage") == "19:00-"

    def test_empty_label(self, taxonomy):
        assert taxonomy.normalize(None) == ""
        assert taxonomy.reception_window("") == "19:00-"

    def test_first_alias_wins(self):
        taxonomy = TicketTaxonomy(TaxonomyConfig(aliases=(("X", "First"), ("X", "Second"))))
        assert taxonomy.normalize("X") == "First"

    def test_config_is_immutable(self, taxonomy):
        with pytest.raises(Exception):
            taxonomy.config.default_window = "00:00-"
        with pytest.raises(TypeError):
            taxonomy.config.windows["VIP Pass"] = "00:00-"


class TestTaxonomyConfig:

    def test_from_dict_overrides(self):
        config = TaxonomyConfig.from_dict({
            "aliases": [["A", "Alpha"]],
            "windows": {"Alpha": "10:00-11:00"},
            "default_window": "12:00-",
        })
        taxonomy = TicketTaxonomy(config)

        assert taxonomy.normalize("A") == "Alpha"
        assert taxonomy.reception_window("Alpha") == "10:00-11:00"
        assert taxonomy.reception_window("PriorityPass") == "12:00-"
        assert config.guest_type == "GuestPass"

    def test_from_empty_dict_uses_defaults(self):
        assert TaxonomyConfig.from_dict({}).aliases == TaxonomyConfig().aliases

    def test_malformed_aliases(self):
        with pytest.raises(DataValidationException):
            TaxonomyConfig.from_dict({"aliases": [["only-one"]]})

    def test_malformed_windows(self):
        with pytest.raises(DataValidationException):
            TaxonomyConfig.from_dict({"windows": ["VIP Pass"]})

    def test_loads_from_json_file(self, tmp_path):
        path = tmp_path / "taxonomy.json"
        path.write_text(json.dumps({"aliases": [["9900", "StandardPass"]]}), encoding="utf-8")

        config = TaxonomyConfig.from_dict(JSONRepository(str(path)).load_data())

        assert TicketTaxonomy(config).normalize("9900") == "StandardPass"
