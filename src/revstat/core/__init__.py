"""Processing engine: chunked row reversal and running-statistics reduction.

Both engines work on an open ArrayStore, stream data in bounded batches,
and report per-target results as TargetOutcome records.
"""

from revstat.core.guard import CompletionGuard
from revstat.core.mirror import ChunkWindow, MirrorPair, iter_mirror_pairs, reverse_rows
from revstat.core.outcome import OutcomeStatus, TargetOutcome
from revstat.core.progress import ProgressCallback, log_progress
from revstat.core.reverser import ChunkedRowReverser
from revstat.core.stats import RunningStatsReducer

__all__ = [
    'ChunkedRowReverser',
    'RunningStatsReducer',
    'CompletionGuard',
    'ChunkWindow',
    'MirrorPair',
    'iter_mirror_pairs',
    'reverse_rows',
    'OutcomeStatus',
    'TargetOutcome',
    'ProgressCallback',
    'log_progress',
]
