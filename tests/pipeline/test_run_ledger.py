import pytest

from revstat.core import OutcomeStatus, TargetOutcome
from revstat.pipeline.ledger import RunLedger

pytestmark = [pytest.mark.unit, pytest.mark.pipeline]


@pytest.fixture
def ledger(temp_dir):
    ledger = RunLedger(temp_dir / "logs" / "ledger.db")
    yield ledger
    ledger.close()


def _outcome(target, operation="reverse", status=OutcomeStatus.COMPLETED, **kwargs):
    return TargetOutcome(target, operation, status, **kwargs)


def test_record_and_fetch(ledger):
    ledger.record(_outcome("/ndvi/sum", output="/ndvi/sum_rev", elapsed_seconds=1.5),
                  run_id="r1")

    status = ledger.get_status("/ndvi/sum", "reverse")

    assert status["status"] == "completed"
    assert status["output"] == "/ndvi/sum_rev"
    assert status["elapsed_seconds"] == 1.5
    assert status["attempts"] == 1
    assert status["run_id"] == "r1"


def test_unknown_target_returns_none(ledger):
    assert ledger.get_status("/nope", "reverse") is None


def test_same_target_different_operations(ledger):
    ledger.record(_outcome("/ndvi", "stats"))
    ledger.record(_outcome("/ndvi", "export", OutcomeStatus.SKIPPED, reason="no template"))

    assert ledger.get_status("/ndvi", "stats")["status"] == "completed"
    assert ledger.get_status("/ndvi", "export")["reason"] == "no template"


def test_rerecord_updates_row(ledger):
    ledger.record(_outcome("/x", status=OutcomeStatus.FAILED, error="[reverse] /x: boom"))
    ledger.record(_outcome("/x"))

    status = ledger.get_status("/x", "reverse")

    assert status["status"] == "completed"
    assert status["error_message"] is None
    assert status["attempts"] == 2


def test_get_failed(ledger):
    ledger.record(_outcome("/a", status=OutcomeStatus.FAILED, error="boom"))
    ledger.record(_outcome("/b"))
    ledger.record(_outcome("/g", "stats", OutcomeStatus.FAILED, error="bad sizes"))

    failed = ledger.get_failed()
    assert [(r["target"], r["operation"]) for r in failed] == [("/a", "reverse"), ("/g", "stats")]
    assert [r["target"] for r in ledger.get_failed("stats")] == ["/g"]


def test_statistics(ledger):
    ledger.record(_outcome("/a", elapsed_seconds=1.0))
    ledger.record(_outcome("/b", status=OutcomeStatus.SKIPPED))
    ledger.record(_outcome("/c", status=OutcomeStatus.FAILED, error="x", elapsed_seconds=0.5))

    stats = ledger.get_statistics()

    assert stats["total"] == 3
    assert stats["completed"] == 1
    assert stats["skipped"] == 1
    assert stats["failed"] == 1
    assert stats["elapsed_seconds"] == pytest.approx(1.5)
    assert ledger.get_statistics("stats")["total"] == 0


def test_statistics_empty(ledger):
    stats = ledger.get_statistics()
    assert stats["total"] == 0
    assert stats["failed"] == 0


def test_reset_failed(ledger):
    ledger.record(_outcome("/a", status=OutcomeStatus.FAILED, error="boom"))
    ledger.record(_outcome("/g", "stats", OutcomeStatus.FAILED, error="boom"))

    assert ledger.reset_failed("reverse") == 1
    assert ledger.get_status("/a", "reverse")["status"] == "pending"
    assert ledger.get_status("/a", "reverse")["error_message"] is None
    assert ledger.get_status("/g", "stats")["status"] == "failed"

    assert ledger.reset_failed() == 1
    assert ledger.get_failed() == []


def test_persists_across_instances(temp_dir):
    path = temp_dir / "ledger.db"
    with RunLedger(path) as ledger:
        ledger.record(_outcome("/a"))

    with RunLedger(path) as ledger:
        assert ledger.get_status("/a", "reverse")["status"] == "completed"


def test_close_is_idempotent(ledger):
    ledger.close()
    ledger.close()
