"""
Shared helpers for module read-modify-write flows.

Used by payroll_modules/*/service.py to load rows for mutation under a row
lock, enforce caller-supplied compare-and-swap versions, and translate
SQLAlchemy's stale-row detection into the kernel's typed conflict error.

Architecture: Modules layer. Imports only from payroll_kernel and SQLAlchemy.
"""

from __future__ import annotations

from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from payroll_kernel.exceptions import OptimisticLockError
from payroll_kernel.logging_config import get_logger

logger = get_logger("modules.session")

M = TypeVar("M")


def load_for_update(session: Session, model_cls: type[M], entity_id: UUID) -> M | None:
    """
    Load one row with ``SELECT ... FOR UPDATE``, refreshing any stale copy
    already held in the identity map.

    SQLite has no row locks; the clause is omitted there and the version
    check at flush time is the only guard.
    """
    stmt = (
        select(model_cls)
        .where(model_cls.id == entity_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return session.execute(stmt).scalar_one_or_none()


def check_expected_version(
    entity_type: str,
    model: Any,
    expected_version: int | None,
) -> None:
    """Raise ``OptimisticLockError`` when the caller's version is out of date."""
    if expected_version is None or model.version == expected_version:
        return
    logger.warning(
        "optimistic_lock_conflict",
        extra={
            "entity_type": entity_type,
            "entity_id": str(model.id),
            "expected_version": expected_version,
            "actual_version": model.version,
        },
    )
    raise OptimisticLockError(
        entity_type=entity_type,
        entity_id=str(model.id),
        expected_version=expected_version,
        actual_version=model.version,
    )


def flush_versioned(session: Session, entity_type: str, entity_id: UUID) -> None:
    """Flush pending changes; a lost version race becomes ``OptimisticLockError``."""
    try:
        session.flush()
    except StaleDataError as exc:
        logger.warning(
            "optimistic_lock_conflict",
            extra={"entity_type": entity_type, "entity_id": str(entity_id)},
        )
        raise OptimisticLockError(
            entity_type=entity_type, entity_id=str(entity_id)
        ) from exc
