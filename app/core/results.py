"""Result values returned by mutation operations."""

import functools
from collections.abc import Awaitable, Callable
from typing import Any, ParamSpec

import structlog
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import AppException, exception_for_status

logger = structlog.get_logger(__name__)

P = ParamSpec("P")

GENERIC_FAILURE = "Internal server error"


class OperationResult(BaseModel):
    """
    Outcome of a mutation.

    Failures carry a human-readable ``error`` and the status code that
    classifies it (validation, authorization, not found, conflict, or a
    generic infrastructure failure).
    """

    success: bool
    error: str | None = None
    status_code: int = 200
    id: str | None = None

    @classmethod
    def ok(cls, id: Any = None) -> "OperationResult":
        """Successful result, optionally carrying the created id."""
        return cls(success=True, id=str(id) if id is not None else None)

    @classmethod
    def fail(cls, error: str, status_code: int = 400) -> "OperationResult":
        """Failed result with a reason."""
        return cls(success=False, error=error, status_code=status_code)

    def raise_for_error(self) -> None:
        """Raise the matching application exception if the operation failed."""
        if not self.success:
            raise exception_for_status(self.error or GENERIC_FAILURE, self.status_code)


def returns_result(
    func: Callable[P, Awaitable[OperationResult]],
) -> Callable[P, Awaitable[OperationResult]]:
    """
    Convert exceptions raised by a service method into a failed result.

    The wrapped method belongs to a service holding its session as ``self.db``;
    the session is rolled back before the failure is returned. Store errors
    and unexpected errors are logged and reported with a generic message.
    """

    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> OperationResult:
        service = args[0]
        try:
            return await func(*args, **kwargs)
        except AppException as e:
            await service.db.rollback()  # type: ignore[attr-defined]
            logger.info(
                "operation_rejected",
                operation=func.__name__,
                reason=e.message,
                status_code=e.status_code,
            )
            return OperationResult.fail(e.message, e.status_code)
        except SQLAlchemyError as e:
            await service.db.rollback()  # type: ignore[attr-defined]
            logger.error("operation_failed", operation=func.__name__, error=str(e))
            return OperationResult.fail(GENERIC_FAILURE, 500)
        except Exception as e:
            await service.db.rollback()  # type: ignore[attr-defined]
            logger.exception("operation_crashed", operation=func.__name__, error=str(e))
            return OperationResult.fail(GENERIC_FAILURE, 500)

    return wrapper
