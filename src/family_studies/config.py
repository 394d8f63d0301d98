from __future__ import annotations

import os
from dataclasses import dataclass

from family_studies.logging import LOG_LEVELS


def _f(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, default))
    except ValueError:
        return default


def _i(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except ValueError:
        return default


def _s(name: str, default: str) -> str:
    return os.getenv(name) or default


def _level(name: str, default: str) -> str:
    level = _s(name, default).upper()
    return level if level in LOG_LEVELS else default


@dataclass(frozen=True)
class FamilyStudiesConfig:
    # A lock younger than this, held by the current user, is their own
    # just-opened edit session
    lock_freshness_seconds: float = 5.0

    baseline_lock_priority: int = 100
    self_lock_priority: int = 500

    # Placeholder ids for pedigree individuals without a patient record
    placeholder_prefix: str = "pedigree:"
    family_id_prefix: str = "FAM"

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> FamilyStudiesConfig:
        return cls(
            lock_freshness_seconds=_f("FAMILY_STUDIES_LOCK_FRESHNESS_SECONDS", 5.0),
            baseline_lock_priority=_i("FAMILY_STUDIES_BASELINE_LOCK_PRIORITY", 100),
            self_lock_priority=_i("FAMILY_STUDIES_SELF_LOCK_PRIORITY", 500),
            placeholder_prefix=_s("FAMILY_STUDIES_PLACEHOLDER_PREFIX", "pedigree:"),
            family_id_prefix=_s("FAMILY_STUDIES_FAMILY_ID_PREFIX", "FAM"),
            log_level=_level("FAMILY_STUDIES_LOG_LEVEL", "INFO"),
        )


CONFIG = FamilyStudiesConfig.from_env()
