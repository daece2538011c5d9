import logging
from contextlib import contextmanager

from flask_cors import CORS
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from bloodbank.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

db = SQLAlchemy()
cors = CORS()


@contextmanager
def storage_guard(session, action):
    """Run a unit of work, rolling back on any failure.

    Driver faults (lost connections, lock or pool timeouts) surface as
    StorageUnavailableError; everything else is re-raised unchanged.
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError) as e:
        session.rollback()
        logger.error("Storage fault while %s: %s", action, e)
        raise StorageUnavailableError(f"Storage unavailable while {action}") from e
    except DBAPIError as e:
        session.rollback()
        if e.connection_invalidated:
            logger.error("Lost database connection while %s: %s", action, e)
            raise StorageUnavailableError(f"Storage unavailable while {action}") from e
        raise
    except Exception:
        session.rollback()
        raise
