"""Translate SQLAlchemy failures into PersistenceError at the store boundary."""

from collections.abc import Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError

from vision_builder.core.exceptions import PersistenceError

logger = structlog.get_logger(__name__)


@contextmanager
def translate_store_errors(operation: str, **context: object) -> Iterator[None]:
    """Re-raise any SQLAlchemyError raised inside the block as PersistenceError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            "store_operation_failed",
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
            **context,
        )
        raise PersistenceError(f"{operation} failed") from exc
