from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    """The backing store could not complete a compliance read or write."""

    def __init__(self, operation: str) -> None:
        super().__init__(f"compliance storage unavailable during {operation}")
        self.operation = operation


@contextmanager
def storage_errors(db: Session, operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("compliance storage failure operation=%s error=%s", operation, exc)
        raise StorageUnavailableError(operation) from exc
