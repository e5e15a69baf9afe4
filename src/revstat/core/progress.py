"""Progress reporting for batch loops.

Operations accept any callable ``progress(index, total)`` and call it before
every batch with the amount of work already done, then once more with
``(total, total)`` on completion, so reported values increase monotonically. The
default reporter logs the percentage through the operation's logger.
"""

import logging
from typing import Callable, Optional

__all__ = ['ProgressCallback', 'log_progress']

ProgressCallback = Callable[[int, int], None]


def log_progress(label: str, log: Optional[logging.Logger] = None,
                 level: int = logging.DEBUG) -> ProgressCallback:
    """Build a reporter that logs ``"<label>: 42.00%"`` lines.

    Parameters
    ----------
    label : str
        Prefix identifying the target, e.g. the dataset path.
    log : logging.Logger, optional
        Logger to write to (default: this module's logger).
    level : int, optional
        Log level for intermediate batches. Completion is logged at INFO.
    """
    log = log or logging.getLogger(__name__)

    def _report(index: int, total: int) -> None:
        percent = 100.0 if total == 0 else 100.0 * index / total
        if index >= total:
            log.info("%s: %.2f%%", label, 100.0)
        else:
            log.log(level, "%s: %.2f%%", label, percent)

    return _report
