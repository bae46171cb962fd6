"""
Optimistic update with rollback.

Every place that flips visible state before the server confirms it (poll
votes, circle membership, settings toggles) goes through
``optimistic_update`` so the restore path is written once.
"""
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from app.core.exceptions import APIError

logger = logging.getLogger(__name__)

S = TypeVar("S")
T = TypeVar("T")


@dataclass
class OptimisticResult(Generic[T]):
    """Outcome of an optimistic update"""
    ok: bool
    value: Optional[T] = None
    error: Optional[str] = None
    status_code: Optional[int] = None


async def optimistic_update(
    snapshot: Callable[[], S],
    apply: Callable[[], Any],
    effect: Callable[[], Awaitable[T]],
    restore: Callable[[S], Any],
    operation: str = "update",
) -> OptimisticResult[T]:
    """
    Apply tentative state, perform the effect, restore on failure.

    Args:
        snapshot: Captures the state that ``restore`` needs; called before apply.
        apply: Mutates local state to the tentative value.
        effect: The server call.
        restore: Puts the captured snapshot back.
        operation: Name used in log messages.
    """
    saved = snapshot()
    apply()

    try:
        value = await effect()
    except APIError as e:
        restore(saved)
        logger.warning(f"{operation} failed, rolled back: {e.message}")
        return OptimisticResult(ok=False, error=e.message, status_code=e.status_code)
    except Exception as e:
        restore(saved)
        logger.error(f"{operation} failed, rolled back: {e}", exc_info=True)
        return OptimisticResult(ok=False, error=str(e) or "Something went wrong", status_code=500)

    return OptimisticResult(ok=True, value=value)
