"""
Simulated generation progress.

Backends report no progress for a generation, so the percentage shown while
one runs is an approximation: it creeps towards APPROXIMATE_CEILING while the
call is outstanding and jumps to 100 when it returns successfully.
"""

import threading
from collections.abc import Callable
from typing import TypeVar

T = TypeVar("T")

APPROXIMATE_CEILING = 90
DONE = 100


def next_progress(current: int, ceiling: int = APPROXIMATE_CEILING) -> int:
    """Advance by a tenth of the remaining distance (at least 1), never past ceiling."""
    if current >= ceiling:
        return ceiling
    return min(ceiling, current + max(1, (ceiling - current) // 10))


def run_with_simulated_progress(
    fn: Callable[[], T],
    on_progress: Callable[[int], None] | None = None,
    interval: float = 0.3,
) -> T:
    """
    Run fn on a worker thread, reporting approximate progress every interval.

    Exceptions raised by fn are re-raised in the calling thread; 100 is only
    reported when fn returns.
    """
    report = on_progress or (lambda _p: None)
    result_holder: list[T | None] = [None]
    exc_holder: list[BaseException | None] = [None]

    def worker() -> None:
        try:
            result_holder[0] = fn()
        except BaseException as e:
            exc_holder[0] = e

    thread = threading.Thread(target=worker, daemon=True)
    thread.start()
    progress = 0
    report(progress)
    while True:
        thread.join(timeout=interval)
        if not thread.is_alive():
            break
        progress = next_progress(progress)
        report(progress)

    if exc_holder[0] is not None:
        raise exc_holder[0]
    report(DONE)
    return result_holder[0]  # type: ignore[return-value]


__all__ = ["APPROXIMATE_CEILING", "DONE", "next_progress", "run_with_simulated_progress"]
