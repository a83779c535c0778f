# ftl_engine/config.py
"""
Application configuration.

Loads settings from environment variables with sensible defaults. Regulatory limits
are not configured here; they live in the JSON files of the rules folder.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

DEFAULT_RULES_DIR = Path(__file__).resolve().parent / "rules"
DEFAULT_MAX_RECORDS = 500


@dataclass
class AppConfig:
    """Main application configuration"""
    store_path: Optional[Path]
    rules_dir: Path
    log_level: str
    max_records: int = DEFAULT_MAX_RECORDS

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Load all configuration from environment"""
        store_path = os.environ.get('FTL_STORE_PATH')
        rules_dir = os.environ.get('FTL_RULES_DIR')
        try:
            max_records = int(os.environ.get('FTL_MAX_RECORDS', str(DEFAULT_MAX_RECORDS)))
        except ValueError:
            logger.warning("FTL_MAX_RECORDS is not an integer, using %d", DEFAULT_MAX_RECORDS)
            max_records = DEFAULT_MAX_RECORDS
        if max_records < 1:
            logger.warning("FTL_MAX_RECORDS must be at least 1, using %d", DEFAULT_MAX_RECORDS)
            max_records = DEFAULT_MAX_RECORDS
        return cls(
            store_path=Path(store_path) if store_path else None,
            rules_dir=Path(rules_dir) if rules_dir else DEFAULT_RULES_DIR,
            log_level=os.environ.get('FTL_LOG_LEVEL', 'INFO').upper(),
            max_records=max_records,
        )

    def validate(self) -> List[str]:
        """Validate configuration and return list of issues"""
        issues = []
        if not self.rules_dir.is_dir():
            issues.append(f"Rules folder not found: {self.rules_dir}")
        if self.store_path is None:
            issues.append("FTL_STORE_PATH not set - duty records are kept in memory only")
        if self.max_records < 1:
            issues.append("FTL_MAX_RECORDS must be at least 1")
        if self.log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
            issues.append(f"Unknown FTL_LOG_LEVEL {self.log_level!r}")
        return issues


# Singleton config instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get or create application config singleton"""
    global _config
    if _config is None:
        _config = AppConfig.from_env()

        for issue in _config.validate():
            logger.warning(f"Config: {issue}")

        logger.info(f"Config loaded - rules: {_config.rules_dir}, store: {_config.store_path or 'memory'}")

    return _config


def reload_config() -> AppConfig:
    """Force reload configuration from environment"""
    global _config
    _config = None
    return get_config()
