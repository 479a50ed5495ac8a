"""Application settings resolved once from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import date
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_date(name: str) -> Optional[date]:
    raw = os.getenv(name)
    if not raw:
        return None
    return date.fromisoformat(raw.strip())


@dataclass(frozen=True)
class RolePolicySettings:
    default_loan_days: int
    max_loan_days: int
    requires_validation: bool


def _default_role_policies() -> dict[str, RolePolicySettings]:
    return {
        "student": RolePolicySettings(
            default_loan_days=7,
            max_loan_days=10,
            requires_validation=True,
        ),
        "lecturer": RolePolicySettings(
            default_loan_days=30,
            max_loan_days=60,
            requires_validation=False,
        ),
        "stock_manager": RolePolicySettings(
            default_loan_days=0,
            max_loan_days=0,
            requires_validation=False,
        ),
    }


@dataclass(frozen=True)
class Settings:
    app_name: str
    app_version: str
    log_level: str
    database_path: Path
    fixed_today: Optional[date]
    seed_demo_inventory: bool
    role_policies: dict[str, RolePolicySettings] = field(
        default_factory=_default_role_policies
    )
    demo_instances_per_type: int = 3


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Build settings from the process environment (and a local .env file)."""
    load_dotenv()
    return Settings(
        app_name=os.getenv("APP_NAME", "Borrowdesk Equipment Lending"),
        app_version=os.getenv("APP_VERSION", "1.0.0"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        database_path=Path(
            os.getenv(
                "BORROWDESK_DATABASE_PATH",
                str(PROJECT_ROOT / "data" / "borrowdesk.db"),
            )
        ),
        fixed_today=_env_date("BORROWDESK_TODAY"),
        seed_demo_inventory=_env_bool("BORROWDESK_SEED_DEMO_INVENTORY", True),
        demo_instances_per_type=int(os.getenv("BORROWDESK_DEMO_INSTANCES", "3")),
    )
