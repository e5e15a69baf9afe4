"""SQLite-based run ledger.

Records what happened to every dataset and accumulator group in every
operation (reverse, stats, export). The store itself decides what is already
done (outputs exist or not); the ledger answers "what failed last time, and
why" without re-walking the HDF5 file.
"""

import sqlite3
import logging
from pathlib import Path
from datetime import datetime, timezone
from typing import Optional, Dict, List

from revstat.core.outcome import TargetOutcome

__all__ = ['RunLedger']

logger = logging.getLogger(__name__)


class RunLedger:
    """Tracks per-target outcomes across pipeline runs.

    **Database Schema:**

    SQLite table `targets`, one row per (target, operation):

    - target: Dataset path or group (e.g., /ndvi/sum, /ndvi)
    - operation: reverse, stats, export
    - status: completed, skipped, failed, pending
    - output: Output dataset or raster path
    - reason / error_message: Why skipped, or why failed
    - elapsed_seconds, attempts, run_id
    - Timestamps: created_at, updated_at (ISO format, UTC)

    A later run overwrites the row of the same (target, operation), so the
    table always reflects the most recent attempt.

    **Transactions:**

    Each write runs in its own ``with conn:`` transaction, committed on
    success and rolled back on error. The ledger is owned by a single
    orchestrator and is not shared across threads.

    **Typical Usage:**

    Called by the orchestrator after every target. Users can query it for
    failures or reset them before a rerun::

        with RunLedger(db_path) as ledger:
            for row in ledger.get_failed():
                print(row["target"], row["error_message"])
            ledger.reset_failed()
    """

    def __init__(self, db_path: Path | str):
        """Initialize ledger.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file. Created if it doesn't exist.
            Typically: {base_dir}/logs/revstat_ledger.db
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None

        self._init_database()
        logger.info(f"Run ledger initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()

        with conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS targets (
                    target TEXT NOT NULL,
                    operation TEXT NOT NULL,

                    status TEXT DEFAULT 'pending',
                    output TEXT,
                    reason TEXT,
                    error_message TEXT,

                    elapsed_seconds REAL,
                    attempts INTEGER DEFAULT 0,
                    run_id TEXT,

                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,

                    PRIMARY KEY (target, operation)
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_status ON targets(status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_operation ON targets(operation)")


    def record(self, outcome: TargetOutcome, run_id: Optional[str] = None):
        """Insert or update the row for ``(outcome.target, outcome.operation)``.

        Parameters
        ----------
        outcome : TargetOutcome
            Result of one operation on one target.
        run_id : str, optional
            Identifier of the run that produced the outcome.
        """
        conn = self._get_connection()
        now = datetime.now(timezone.utc).isoformat()
        row = outcome.as_record()

        with conn:
            conn.execute("""
                INSERT INTO targets
                (target, operation, status, output, reason, error_message,
                 elapsed_seconds, attempts, run_id, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?, ?, ?)
                ON CONFLICT(target, operation) DO UPDATE SET
                    status = excluded.status,
                    output = excluded.output,
                    reason = excluded.reason,
                    error_message = excluded.error_message,
                    elapsed_seconds = excluded.elapsed_seconds,
                    attempts = targets.attempts + 1,
                    run_id = excluded.run_id,
                    updated_at = excluded.updated_at
            """, (
                row["target"],
                row["operation"],
                row["status"],
                row["output"],
                row["reason"],
                row["error"],
                row["elapsed_seconds"],
                run_id,
                now,
                now,
            ))

        logger.debug(f"Recorded {row['operation']} {row['status']}: {row['target']}")

    def get_status(self, target: str, operation: str) -> Optional[Dict]:
        """Latest row for a target and operation, or None if never recorded."""
        conn = self._get_connection()

        with conn:
            cursor = conn.execute("""
                SELECT * FROM targets WHERE target = ? AND operation = ?
            """, (target, operation))
            row = cursor.fetchone()

            if row:
                return dict(row)
            return None

    def get_failed(self, operation: Optional[str] = None) -> List[Dict]:
        """Rows whose latest attempt failed, ordered by target.

        Parameters
        ----------
        operation : str, optional
            Restrict to one operation ('reverse', 'stats', 'export').
        """
        conn = self._get_connection()

        query = "SELECT * FROM targets WHERE status = 'failed'"
        params = []
        if operation:
            query += " AND operation = ?"
            params.append(operation)
        query += " ORDER BY target, operation"

        with conn:
            cursor = conn.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]

    def get_statistics(self, operation: Optional[str] = None) -> Dict:
        """Summary counts.

        Returns
        -------
        dict
            - `total`: Rows recorded
            - `completed`, `skipped`, `failed`, `pending`: Rows per status
            - `elapsed_seconds`: Sum of elapsed time over all rows
        """
        conn = self._get_connection()

        where_clause = "WHERE operation = ?" if operation else ""
        params = [operation] if operation else []

        with conn:
            cursor = conn.execute(f"""
                SELECT
                    COUNT(*) as total,
                    COALESCE(SUM(CASE WHEN status = 'completed' THEN 1 ELSE 0 END), 0) as completed,
                    COALESCE(SUM(CASE WHEN status = 'skipped' THEN 1 ELSE 0 END), 0) as skipped,
                    COALESCE(SUM(CASE WHEN status = 'failed' THEN 1 ELSE 0 END), 0) as failed,
                    COALESCE(SUM(CASE WHEN status = 'pending' THEN 1 ELSE 0 END), 0) as pending,
                    COALESCE(SUM(elapsed_seconds), 0.0) as elapsed_seconds
                FROM targets
                {where_clause}
            """, params)
            row = cursor.fetchone()
            return dict(row) if row else {}

    def reset_failed(self, operation: Optional[str] = None) -> int:
        """Mark failed rows as pending and clear their error messages.

        Outputs are not touched; the next run decides what to redo from the
        store contents, not from the ledger.

        Returns
        -------
        int
            Number of rows reset.
        """
        conn = self._get_connection()
        now = datetime.now(timezone.utc).isoformat()

        with conn:
            if operation:
                cursor = conn.execute("""
                    UPDATE targets
                    SET status = 'pending', error_message = NULL, updated_at = ?
                    WHERE status = 'failed' AND operation = ?
                """, (now, operation))
            else:
                cursor = conn.execute("""
                    UPDATE targets
                    SET status = 'pending', error_message = NULL, updated_at = ?
                    WHERE status = 'failed'
                """, (now,))
            count = cursor.rowcount

        logger.info(f"Reset {count} failed target(s) to pending")
        return count

    def close(self):
        """Close database connection. Safe to call multiple times."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
