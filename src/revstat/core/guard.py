"""Skip-if-exists guard with commit-by-rename staging.

Outputs are written under a staging name (``<final><staging_suffix>``) and
renamed into place only after the last batch has been written. The final
path therefore exists only for complete outputs, which makes the plain
existence check a reliable "already done" test across process restarts.
A staging dataset found on entry belongs to an interrupted run and is
discarded before a fresh attempt.
"""

import logging

from revstat.store.h5store import ArrayStore

__all__ = ['CompletionGuard']

logger = logging.getLogger(__name__)


class CompletionGuard:
    """Existence-based idempotency check for store outputs.

    Parameters
    ----------
    store : ArrayStore
        Store the outputs live in.
    staging_suffix : str, optional
        Suffix appended to a final path while it is being written.
    """

    def __init__(self, store: ArrayStore, staging_suffix: str = ".partial"):
        self.store = store
        self.staging_suffix = staging_suffix

    def is_complete(self, path: str) -> bool:
        """True if the final output exists, i.e. a previous run committed it."""
        return self.store.exists(path)

    def staging_path(self, path: str) -> str:
        return path + self.staging_suffix

    def begin(self, path: str, replace: bool = False) -> str:
        """Prepare a clean staging location for `path` and return it.

        With ``replace=True`` an existing final output is deleted as well.
        Multi-output operations use this for the outputs committed before
        their guard output, which are orphaned if the run died in between.
        """
        if replace and self.store.exists(path):
            logger.warning("Replacing output orphaned by an earlier run: %s", path)
            self.store.delete(path)
        staging = self.staging_path(path)
        if self.store.exists(staging):
            logger.warning("Discarding incomplete output from an earlier run: %s", staging)
            self.store.delete(staging)
        return staging

    def commit(self, path: str) -> None:
        """Publish the staged output under its final name."""
        self.store.rename(self.staging_path(path), path)
        logger.debug("Committed %s", path)
