# backend/services/transaction.py
import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.errors import InventoryError, PersistenceError

logger = logging.getLogger(__name__)

_DEPTH_KEY = "atomic_depth"

# Client facing text; statement and parameters only go to the log
PERSISTENCE_FAILED = "Transaction failed, nothing was saved"


@contextmanager
def atomic(db: Session):
    """
    Run the enclosed block as one unit of work.

    The outermost ``atomic`` commits on success and rolls back on any error.
    Nested blocks join the outer one, so a service that is atomic on its own
    (e.g. the inventory engine) becomes part of the caller's transaction.
    Database errors are logged and re-raised as PersistenceError with a
    generic message; inventory errors pass through unchanged.
    """
    depth = db.info.get(_DEPTH_KEY, 0)
    db.info[_DEPTH_KEY] = depth + 1
    try:
        yield db
        if depth == 0:
            db.commit()
    except InventoryError:
        if depth == 0:
            db.rollback()
        raise
    except SQLAlchemyError as e:
        if depth == 0:
            db.rollback()
            logger.error("Transaction rolled back: %s", e, exc_info=True)
            raise PersistenceError(PERSISTENCE_FAILED) from e
        raise
    except Exception:
        if depth == 0:
            db.rollback()
        raise
    finally:
        db.info[_DEPTH_KEY] = depth
