"""Pipeline modules.

- orchestrator: Main pipeline controller
- ledger: SQLite-based record of per-target outcomes
"""

from revstat.pipeline.orchestrator import PipelineOrchestrator
from revstat.pipeline.ledger import RunLedger

__all__ = [
    "PipelineOrchestrator",
    "RunLedger",
]
