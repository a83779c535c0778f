# ftl_engine/main.py
"""
Flight time limitations engine - FastAPI main file.

Rules are loaded once from the rules folder (see load_rules.py). Exposes:
- GET  /               -> readiness + rules count
- GET  /rules          -> list rule summaries
- GET  /rules/{id}     -> full rule detail
- plus the FDP / rest / records / duty / compliance routes from api.py

Run with: uvicorn ftl_engine.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel

from .api import router as api_router
from .config import get_config
from .load_rules import INVALID_REPORTS, VALID_RULES
from .store import RecordStore

log = logging.getLogger("uvicorn.error")


# ---------- RESPONSE MODELS ----------
class RuleSummary(BaseModel):
    id: str
    title: Optional[str] = None
    reference: Optional[Any] = None
    enabled: Optional[bool] = None
    version: Optional[str] = None


class RuleDetail(RuleSummary):
    logic: Optional[Dict[str, Any]] = None
    notes: Optional[Dict[str, Any]] = None


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        log.warning("Unknown log level %r, leaving logging unchanged", level_name)
        return
    for name in ("ftl_engine", "rule_loader"):
        logging.getLogger(name).setLevel(level)


def create_app(store: Optional[RecordStore] = None) -> FastAPI:
    """
    Build the app. A store passed in is used as-is; otherwise one is created from
    the environment config at startup.
    """

    @asynccontextmanager
    async def _lifespan(app: FastAPI):
        config = get_config()
        _configure_logging(config.log_level)

        app.state.rules = dict(VALID_RULES)
        app.state.invalid_rules = list(INVALID_REPORTS)
        app.state.store = store if store is not None else RecordStore(config.store_path, config.max_records)

        log.info("Rule loader startup: %d valid, %d invalid", len(app.state.rules), len(app.state.invalid_rules))
        yield

    app = FastAPI(title="Flight Time Limitations Engine", lifespan=_lifespan)
    app.include_router(api_router)

    # ---------- ROOT ----------
    @app.get("/")
    def root(request: Request):
        rules_map = getattr(request.app.state, "rules", {})
        invalid = getattr(request.app.state, "invalid_rules", [])
        return {
            "message": "FTL Engine Ready!",
            "rules_loaded": len(rules_map),
            "rules_invalid": len(invalid),
        }

    # ---------- LIST RULES ----------
    @app.get("/rules", response_model=List[RuleSummary])
    def get_rules(request: Request):
        rules_map = getattr(request.app.state, "rules", {})
        return [
            RuleSummary(id=r.id, title=r.title, reference=r.reference, enabled=r.enabled, version=r.version)
            for r in sorted(rules_map.values(), key=lambda x: x.id)
        ]

    # ---------- GET RULE DETAIL ----------
    @app.get("/rules/{rule_id}", response_model=RuleDetail)
    def get_rule_detail(rule_id: str, request: Request):
        rules_map = getattr(request.app.state, "rules", {})
        rule = rules_map.get(rule_id)
        if rule is None:
            raise HTTPException(status_code=404, detail=f"Rule '{rule_id}' not found")
        return RuleDetail(**rule.model_dump())

    return app


app = create_app()
