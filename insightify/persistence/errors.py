"""Translation of driver-level failures into storage errors."""

import logging
from contextlib import asynccontextmanager

from sqlalchemy.exc import InterfaceError, OperationalError

from insightify.core.exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

# Raised when the database cannot be reached or drops the connection.
# asyncpg surfaces refused connections as plain OSError subclasses.
UNAVAILABLE_ERRORS = (OperationalError, InterfaceError, OSError)


@asynccontextmanager
async def storage_errors(operation: str):
    """Re-raise connectivity failures inside the block as StorageUnavailableError.

    Args:
        operation: Name of the operation, used in the error message and log
    """
    try:
        yield
    except UNAVAILABLE_ERRORS as e:
        logger.error(
            f"Storage unavailable during {operation}: {e}",
            extra={"operation": operation},
        )
        raise StorageUnavailableError(f"Storage unavailable during {operation}") from e
