# utils/transactions.py
import functools
import logging

from sqlalchemy.orm.exc import StaleDataError

from extensions import db
from utils.errors import ConflictError

logger = logging.getLogger(__name__)


def atomic(fn):
    """
    Run a service call as one unit of work: commit on success, roll back
    everything on any exception. Only public service entry points carry this;
    helpers they call must not commit.
    """
    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            result = fn(*args, **kwargs)
            db.session.commit()
            return result
        except StaleDataError:
            db.session.rollback()
            logger.warning("Concurrent modification detected in %s; rolled back", fn.__name__)
            raise ConflictError("Record was modified concurrently, retry")
        except Exception:
            db.session.rollback()
            raise
    return wrapper
