# tests/test_rule_loader.py
import json

import pytest

from ftl_engine.config import DEFAULT_RULES_DIR
from ftl_engine.load_rules import (
    INVALID_REPORTS,
    RULEBOOK,
    VALID_RULES,
    build_rulebook,
    load_rules_from_folder,
)
from ftl_engine.validate_rules import main as validate_main


def test_shipped_rules_are_valid():
    assert INVALID_REPORTS == []
    assert set(VALID_RULES) == {"fdp_table", "rest_rules", "cumulative_limits"}
    assert RULEBOOK.fdp.max_fdp_minutes == 840
    assert RULEBOOK.cumulative.window("duty_28_day").max_minutes == 11400


def test_get_rules(client):
    resp = client.get("/rules")
    assert resp.status_code == 200
    data = resp.json()
    assert isinstance(data, list)
    assert [r["id"] for r in data] == ["cumulative_limits", "fdp_table", "rest_rules"]


def test_get_rule_detail(client):
    resp = client.get("/rules/fdp_table")
    assert resp.status_code == 200
    assert resp.json()["logic"]["type"] == "fdp_table"
    assert client.get("/rules/nope").status_code == 404


def test_loader_reports_bad_files(tmp_path):
    (tmp_path / "a_broken.json").write_text("{not json", encoding="utf-8")
    (tmp_path / "b_no_type.json").write_text(json.dumps({"id": "x", "title": "x", "logic": {}}), encoding="utf-8")
    (tmp_path / "c_wrapped.json").write_text(json.dumps({"rules": [
        {"id": "one", "title": "one", "logic": {"type": "note"}},
        {"id": "off", "title": "off", "logic": {"type": "note"}, "enabled": False},
        {"id": "one", "title": "dup", "logic": {"type": "note"}},
    ]}), encoding="utf-8")

    valid, invalid = load_rules_from_folder(tmp_path)
    assert list(valid) == ["one"]
    errors = [i["error"] for i in invalid]
    assert errors[0].startswith("json_parse_error")
    assert errors[1].startswith("validation_error")
    assert errors[2] == "duplicate rule id: one"


def test_loader_checks_typed_logic(tmp_path):
    raw = json.loads((DEFAULT_RULES_DIR / "fdp_table.json").read_text(encoding="utf-8"))
    del raw["logic"]["table"]["0600-0659"]
    (tmp_path / "fdp.json").write_text(json.dumps(raw), encoding="utf-8")
    valid, invalid = load_rules_from_folder(tmp_path)
    assert valid == {}
    assert len(invalid) == 1


def test_missing_folder_is_empty(tmp_path):
    assert load_rules_from_folder(tmp_path / "nowhere") == ({}, [])


def test_rulebook_needs_every_rule_type():
    partial = {k: v for k, v in VALID_RULES.items() if k != "rest_rules"}
    with pytest.raises(RuntimeError):
        build_rulebook(partial)


def test_validate_rules_cli(tmp_path, capsys):
    assert validate_main([str(DEFAULT_RULES_DIR)]) == 0
    (tmp_path / "bad.json").write_text('{"id": "x",\n "title": }', encoding="utf-8")
    assert validate_main([str(tmp_path)]) == 2
    out = capsys.readouterr().out
    assert "JSON parse error" in out
    assert validate_main([str(tmp_path / "missing")]) == 1
