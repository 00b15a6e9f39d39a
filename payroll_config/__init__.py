"""
payroll_config -- effective-dated statutory reference data.

Responsibility:
    Owns the South African income tax tables, rebates, thresholds and the
    UIF / SDL contribution parameters, one ``PayrollRateSet`` per tax year
    (1 March to the end of February).  ``get_default_registry()`` is the
    runtime entry point; it loads the YAML sets shipped in ``sets/`` once
    per process.  ``get_registry(sets_dir)`` merges in operator-installed
    sets for tax years published after a release.

Architecture position:
    Configuration -- sits above ``payroll_kernel`` and below
    ``payroll_engines`` / ``payroll_modules``.  The kernel MUST NEVER
    import from ``payroll_config``.

Invariants enforced:
    - Every rate set passes integrity validation when it is constructed,
      from YAML or in code; a broken shipped table fails the process at
      startup, never a single calculation.
    - Effective ranges never overlap.

Failure modes:
    - ``TaxTableIntegrityError`` -- a set is malformed or inconsistent.
    - ``RateSetNotFoundError`` -- no set is in force on a pay date.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from payroll_config.loader import load_rate_sets
from payroll_config.schema import (
    PayrollRateSet,
    RateSetRegistry,
    RebateCategory,
    RebateSchedule,
    TaxBracket,
    TaxTable,
    TaxThresholds,
)

DEFAULT_SETS_DIR = Path(__file__).parent / "sets"


@lru_cache(maxsize=8)
def get_registry(sets_dir: Path | None = None) -> RateSetRegistry:
    """
    Registry over the shipped rate sets plus those in ``sets_dir`` (cached).

    Args:
        sets_dir: Optional directory of additional YAML rate sets, for tax
            years published after this release.  They are merged with the
            shipped sets and pass the same integrity checks.
    """
    if sets_dir is None:
        return load_rate_sets(DEFAULT_SETS_DIR)
    return load_rate_sets(DEFAULT_SETS_DIR, Path(sets_dir))


def get_default_registry() -> RateSetRegistry:
    """Registry over the rate sets shipped with the package (cached)."""
    return get_registry()


__all__ = [
    "DEFAULT_SETS_DIR",
    "PayrollRateSet",
    "RateSetRegistry",
    "RebateCategory",
    "RebateSchedule",
    "TaxBracket",
    "TaxTable",
    "TaxThresholds",
    "get_default_registry",
    "get_registry",
]
