"""
Tests for catalog loading and the record models.
"""
import json

import pytest

from substitution_module.catalog import load_drugs, load_rules
from substitution_module.config import DEFAULT_CATALOG_PATH, DEFAULT_RULES_PATH, load_settings
from substitution_module.errors import CatalogLoadError
from substitution_module.models import Drug, MatchType, SubstitutionRule, SubstitutionSuggestion


def _write(path, payload):
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_bundled_data_loads():
    drugs = load_drugs(DEFAULT_CATALOG_PATH)
    rules = load_rules(DEFAULT_RULES_PATH)

    assert len(drugs) == 17
    assert len({d.id for d in drugs}) == len(drugs)
    assert [r.id for r in rules] == ["r-001", "r-002"]
    assert rules[0].equivalent_drugs == ["d-017", "d-999"]


def test_camel_case_and_snake_case_keys(tmp_path):
    path = _write(tmp_path / "drugs.json", [
        {"id": "a", "name": "A", "activeMolecule": "X", "dosage": "5mg", "dosageForm": "Tablet", "stockLevel": 3},
        {"id": "b", "name": "B", "active_molecule": "X", "dosage": "5mg", "dosage_form": "Tablet", "is_controlled": True},
    ])

    a, b = load_drugs(path)

    assert a.active_molecule == "X" and a.stock_level == 3
    assert b.is_controlled is True and b.stock_level == 0


def test_missing_file(tmp_path):
    with pytest.raises(CatalogLoadError, match="not found"):
        load_drugs(tmp_path / "nope.json")


def test_not_an_array(tmp_path):
    path = _write(tmp_path / "rules.json", {"rules": []})
    with pytest.raises(CatalogLoadError, match="JSON array"):
        load_rules(path)


def test_invalid_json(tmp_path):
    path = tmp_path / "drugs.json"
    path.write_text("[{", encoding="utf-8")
    with pytest.raises(CatalogLoadError, match="Invalid JSON"):
        load_drugs(path)


def test_invalid_record(tmp_path):
    path = _write(tmp_path / "rules.json", [
        {"activeMolecule": "X", "dosage": "5mg", "dosageForm": "Tablet", "substitutionRatio": 0},
    ])
    with pytest.raises(CatalogLoadError, match="SubstitutionRule"):
        load_rules(path)


def test_one_non_positive_ratio_rejects_whole_rule_file(tmp_path):
    path = _write(tmp_path / "rules.json", [
        {"id": "ok", "activeMolecule": "X", "dosage": "5mg", "dosageForm": "Tablet", "substitutionRatio": 2},
        {"id": "zero", "activeMolecule": "Y", "dosage": "5mg", "dosageForm": "Tablet", "substitutionRatio": 0},
        {"id": "negative", "activeMolecule": "Z", "dosage": "5mg", "dosageForm": "Tablet", "substitutionRatio": -1},
    ])
    with pytest.raises(CatalogLoadError, match="substitution_ratio|substitutionRatio"):
        load_rules(path)


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("SUBSTITUTION_CATALOG_PATH", str(tmp_path / "c.json"))
    monkeypatch.setenv("SUBSTITUTION_LOG_LEVEL", "debug")
    monkeypatch.delenv("SUBSTITUTION_RULES_PATH", raising=False)

    settings = load_settings()

    assert settings.catalog_path == tmp_path / "c.json"
    assert settings.rules_path == DEFAULT_RULES_PATH
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize("stock,status", [(0, "out-of-stock"), (5, "low-stock"), (10, "low-stock"), (11, "in-stock")])
def test_stock_status(stock, status):
    drug = Drug(id="a", name="A", active_molecule="X", dosage="5mg", dosage_form="Tablet",
                stock_level=stock, min_stock_level=10)
    assert drug.stock_status == status


@pytest.mark.parametrize("confidence,band", [(95, "high"), (90, "high"), (85, "medium"), (60, "low"), (40, "very-low")])
def test_confidence_band(confidence, band):
    drug = Drug(id="a", name="A", active_molecule="X", dosage="5mg", dosage_form="Tablet")
    suggestion = SubstitutionSuggestion(drug=drug, match_type=MatchType.SIMILAR, confidence=confidence, reason="r")
    assert suggestion.confidence_band == band


def test_rule_defaults():
    rule = SubstitutionRule(active_molecule="X", dosage="5mg", dosage_form="Tablet")
    assert rule.is_active is True
    assert rule.substitution_ratio == 1.0
    assert rule.equivalent_drugs == []
