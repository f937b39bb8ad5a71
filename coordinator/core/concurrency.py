"""Optimistic transaction runner."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from coordinator.core.exceptions import (
    ConflictException,
    PreconditionFailedException,
    StaleRecordError,
)

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_lost_race(action: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info(
            "optimistic_retry",
            action=action,
            attempt=retry_state.attempt_number,
            table=getattr(error, "table", None),
            row_id=str(getattr(error, "row_id", "")),
        )

    return _before_sleep


async def _attempt(db: AsyncSession, operation: Callable[[], Awaitable[T]], action: str) -> T:
    """One read-validate-write pass, committed or fully rolled back."""
    try:
        result = await operation()
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        logger.warning("integrity_conflict", action=action, error=str(e.orig))
        raise ConflictException("The requested time slot is no longer available") from e
    except BaseException:
        await db.rollback()
        raise
    return result


async def run_optimistic(
    db: AsyncSession,
    operation: Callable[[], Awaitable[T]],
    *,
    action: str,
    attempts: int = 3,
) -> T:
    """
    Run ``operation`` and commit, retrying from scratch when a versioned write loses a race.

    ``operation`` must re-read everything it validates, since each attempt
    starts from a rolled-back session. Only ``StaleRecordError`` is retried;
    any other error rolls back and propagates, so a rejected operation never
    leaves a partial write.

    Args:
        db: Database session
        operation: Coroutine factory performing reads, checks and guarded writes
        action: Name used in logs and the final error
        attempts: Maximum number of tries

    Returns:
        Whatever ``operation`` returned on the committed attempt

    Raises:
        ConflictException: If a uniqueness constraint rejected the write
        PreconditionFailedException: If every attempt lost its race
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(StaleRecordError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential_jitter(initial=0.01, max=0.2, jitter=0.02),
        before_sleep=_log_lost_race(action),
        reraise=True,
    )
    try:
        return await retrying(_attempt, db, operation, action)
    except StaleRecordError as e:
        logger.warning("optimistic_retries_exhausted", action=action, attempts=attempts)
        raise PreconditionFailedException(
            f"Could not {action}: the record changed concurrently, please retry"
        ) from e
