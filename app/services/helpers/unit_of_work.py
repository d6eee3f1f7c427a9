"""
Unit-of-work helpers for workflow actions.

Every workflow action runs inside exactly one ``atomic()`` block: all of its
writes (primary entity, audit row, review-queue mutation, secondary entity)
are flushed to the same session and committed together, or rolled back
together. Nothing here retries.

Usage:
    from app.services.helpers.unit_of_work import atomic, get_or_raise

    with atomic("intervention.transition"):
        intervention = get_or_raise(Intervention, intervention_id)
        intervention.status = "COMPLETED"
        write_intervention_log(...)
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import NotFoundError, StaleVersionError, StoreFailure
from app.models import db

logger = logging.getLogger(__name__)


@contextmanager
def atomic(action: str):
    """Run the enclosed writes as one transaction.

    Commits on success. On any exception the session is rolled back, then:
      - domain exceptions propagate unchanged;
      - ``StaleDataError`` (a versioned row changed underneath us) becomes
        ``StaleVersionError``;
      - any other ``SQLAlchemyError`` becomes ``StoreFailure``.
    """
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Concurrent modification detected during %s: %s", action, exc)
        raise StaleVersionError(resource=action) from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Store failure during %s", action, exc_info=True)
        raise StoreFailure(action) from exc
    except Exception:
        db.session.rollback()
        raise


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    obj = db.session.get(model, pk) if pk else None
    if obj is None:
        raise NotFoundError(resource=label or model.__name__, resource_id=pk)
    return obj


def check_version(entity, expected_version):
    """Raise StaleVersionError when the caller's expected version is outdated."""
    if expected_version is None:
        return
    if entity.version != expected_version:
        raise StaleVersionError(
            resource=type(entity).__name__,
            resource_id=entity.id,
            expected=expected_version,
            actual=entity.version,
        )
