"""Optimistic local updates with rollback on remote failure."""

import logging
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def optimistic_update(
    apply: Callable[[], None],
    remote_call: Callable[[], T],
    rollback: Callable[[], None],
) -> T:
    """
    Apply a local change immediately, then confirm it remotely.

    If ``remote_call`` raises, ``rollback`` restores the prior local state
    and the original exception propagates to the caller.
    """
    apply()
    try:
        return remote_call()
    except Exception:
        logger.warning("Remote update failed; rolling back local change", exc_info=True)
        rollback()
        raise
