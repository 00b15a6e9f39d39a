"""
Rate Set Loader (``payroll_config.loader``).

Responsibility
--------------
Loads YAML rate set files and parses them into typed
``payroll_config.schema`` dataclass instances.  Runtime callers normally
go through ``payroll_config.get_default_registry()``; this module is the
tooling underneath it and the entry point for tests that need a custom
table.

Architecture position
---------------------
**Config layer**.  Depends on the kernel for exceptions only; has no
dependency on engines or modules.

Invariants enforced
-------------------
* Monetary values and rates must be written as quoted decimal strings or
  integers in YAML.  A bare float such as ``0.18`` is rejected, so binary
  floating point never enters a tax table.
* Every parsed rate set has passed ``assert_rate_set_integrity`` (run by
  ``PayrollRateSet`` itself on construction) before it is returned.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the raw
  document, stored on the rate set for audit identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing keys, bad dates, float or non-numeric values
  -> ``TaxTableIntegrityError`` naming the rate set and the problem.
* Structurally valid but inconsistent tables -> ``TaxTableIntegrityError``.

Audit relevance
---------------
The checksum of the source document travels on the rate set and is
snapshotted, together with the version, on every payslip computed with it.
"""

from __future__ import annotations

import hashlib
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from payroll_config.schema import (
    PayrollRateSet,
    RateSetRegistry,
    RebateSchedule,
    TaxBracket,
    TaxTable,
    TaxThresholds,
)
from payroll_kernel.exceptions import TaxTableIntegrityError
from payroll_kernel.logging_config import get_logger

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, name: str) -> Decimal:
    """
    Parse an exact decimal from YAML.

    Accepts quoted strings and integers.  Floats are refused because
    ``yaml.safe_load`` has already rounded them through binary.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise ValueError(f"{name}: write {value!r} as a quoted decimal string")
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError(f"{name}: {value!r} is not a decimal number") from None
        if not result.is_finite():
            raise ValueError(f"{name}: {value!r} is not finite")
        return result
    raise ValueError(f"{name}: cannot parse decimal from {value!r}")


def parse_bracket(data: dict[str, Any], index: int) -> TaxBracket:
    prefix = f"tax_table[{index}]"
    raw_max = data.get("max")
    return TaxBracket(
        min=parse_decimal(data["min"], f"{prefix}.min"),
        max=None if raw_max is None else parse_decimal(raw_max, f"{prefix}.max"),
        rate=parse_decimal(data["rate"], f"{prefix}.rate"),
        cumulative_tax_at_min=parse_decimal(
            data.get("cumulative_tax_at_min", 0), f"{prefix}.cumulative_tax_at_min"
        ),
    )


def parse_rate_set(data: dict[str, Any], checksum: str = "") -> PayrollRateSet:
    """
    Parse and validate a ``PayrollRateSet`` from a dict.

    Raises:
        TaxTableIntegrityError: on any missing key, unparseable value, or
            failed integrity check.
    """
    version = str(data.get("version", "<unnamed>"))
    try:
        uif = data["uif"]
        sdl = data["sdl"]
        retirement = data.get("retirement", {})
        rate_set = PayrollRateSet(
            version=version,
            effective_from=parse_date(data["effective_from"]),
            effective_to=parse_date(data["effective_to"]) if data.get("effective_to") else None,
            tax_table=TaxTable(
                brackets=tuple(
                    parse_bracket(b, i) for i, b in enumerate(data["tax_table"])
                )
            ),
            rebates=RebateSchedule(
                primary=parse_decimal(data["rebates"]["primary"], "rebates.primary"),
                secondary=parse_decimal(data["rebates"]["secondary"], "rebates.secondary"),
                tertiary=parse_decimal(data["rebates"]["tertiary"], "rebates.tertiary"),
            ),
            thresholds=TaxThresholds(
                under_65=parse_decimal(data["thresholds"]["under_65"], "thresholds.under_65"),
                age_65_to_74=parse_decimal(
                    data["thresholds"]["age_65_to_74"], "thresholds.age_65_to_74"
                ),
                age_75_plus=parse_decimal(
                    data["thresholds"]["age_75_plus"], "thresholds.age_75_plus"
                ),
            ),
            uif_employee_rate=parse_decimal(uif["employee_rate"], "uif.employee_rate"),
            uif_employer_rate=parse_decimal(uif["employer_rate"], "uif.employer_rate"),
            uif_monthly_ceiling=parse_decimal(uif["monthly_ceiling"], "uif.monthly_ceiling"),
            sdl_rate=parse_decimal(sdl["rate"], "sdl.rate"),
            sdl_exemption_threshold=parse_decimal(
                sdl["exemption_threshold"], "sdl.exemption_threshold"
            ),
            pension_reduces_taxable_income=bool(
                retirement.get("reduces_taxable_income", False)
            ),
            pension_deduction_percent=parse_decimal(
                retirement.get("deduction_percent", "0.275"),
                "retirement.deduction_percent",
            ),
            pension_deduction_annual_cap=parse_decimal(
                retirement.get("annual_cap", "350000"), "retirement.annual_cap"
            ),
            jurisdiction=data.get("jurisdiction", "ZA"),
            currency=data.get("currency", "ZAR"),
            checksum=checksum,
        )
    except KeyError as exc:
        raise TaxTableIntegrityError(version, [f"missing key {exc.args[0]!r}"]) from exc
    except (TypeError, ValueError) as exc:
        raise TaxTableIntegrityError(version, [str(exc)]) from exc

    return rate_set


def load_rate_set_file(path: Path) -> PayrollRateSet:
    """Load, checksum, parse and validate one YAML rate set file."""
    data = load_yaml_file(path)
    rate_set = parse_rate_set(data, checksum=compute_checksum(data))
    logger.debug(
        "rate_set_loaded",
        extra={
            "version": rate_set.version,
            "effective_from": rate_set.effective_from,
            "effective_to": rate_set.effective_to,
            "checksum": rate_set.checksum,
            "path": str(path),
        },
    )
    return rate_set


def load_rate_sets(*directories: Path) -> RateSetRegistry:
    """
    Load every ``*.yaml`` rate set in ``directories`` into one registry.

    Sets from all directories are merged, so a tax year published after a
    release can be installed from a separate directory alongside the
    shipped ones.  Overlapping or duplicate versions across directories
    are rejected by the registry like any other overlap.

    Raises:
        FileNotFoundError: if no directory holds a rate set file.
    """
    paths = [p for d in directories for p in sorted(Path(d).glob("*.yaml"))]
    if not paths:
        names = ", ".join(str(d) for d in directories)
        raise FileNotFoundError(f"No rate set files found in {names}")
    registry = RateSetRegistry(load_rate_set_file(p) for p in paths)
    logger.info(
        "rate_sets_loaded",
        extra={
            "directories": [str(d) for d in directories],
            "versions": list(registry.versions),
        },
    )
    return registry


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
