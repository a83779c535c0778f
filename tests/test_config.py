# tests/test_config.py
from pathlib import Path

from ftl_engine.config import DEFAULT_RULES_DIR, AppConfig


def test_defaults(monkeypatch):
    for var in ("FTL_STORE_PATH", "FTL_RULES_DIR", "FTL_LOG_LEVEL", "FTL_MAX_RECORDS"):
        monkeypatch.delenv(var, raising=False)
    cfg = AppConfig.from_env()
    assert cfg.store_path is None
    assert cfg.rules_dir == DEFAULT_RULES_DIR
    assert cfg.log_level == "INFO"
    assert cfg.max_records == 500
    assert any("memory only" in issue for issue in cfg.validate())


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.delenv("FTL_RULES_DIR", raising=False)
    monkeypatch.setenv("FTL_STORE_PATH", str(tmp_path / "store.json"))
    monkeypatch.setenv("FTL_LOG_LEVEL", "debug")
    monkeypatch.setenv("FTL_MAX_RECORDS", "50")
    cfg = AppConfig.from_env()
    assert cfg.store_path == tmp_path / "store.json"
    assert cfg.log_level == "DEBUG"
    assert cfg.max_records == 50
    assert cfg.validate() == []


def test_bad_values(monkeypatch):
    monkeypatch.setenv("FTL_MAX_RECORDS", "lots")
    monkeypatch.setenv("FTL_LOG_LEVEL", "chatty")
    monkeypatch.setenv("FTL_RULES_DIR", "/definitely/not/here")
    cfg = AppConfig.from_env()
    assert cfg.max_records == 500
    assert cfg.rules_dir == Path("/definitely/not/here")
    issues = cfg.validate()
    assert any("Rules folder not found" in i for i in issues)
    assert any("FTL_LOG_LEVEL" in i for i in issues)


def test_non_positive_max_records_falls_back(monkeypatch):
    for value in ("0", "-5"):
        monkeypatch.setenv("FTL_MAX_RECORDS", value)
        assert AppConfig.from_env().max_records == 500
