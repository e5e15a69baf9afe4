"""Tests for RunningStatsReducer: numerics, batching and staging."""

import logging

import numpy as np
import pytest

from revstat.contracts import MissingInput, SizeMismatch
from revstat.core import OutcomeStatus, RunningStatsReducer

pytestmark = pytest.mark.unit


def _put(store, path, values, dtype):
    values = np.asarray(values, dtype=dtype).reshape(-1)
    store.create_dataset(path, dtype, values.size)
    store.write_slice(path, 0, values)


def _put_group(store, group, sums, sumsqs, counts):
    _put(store, f"{group}/sum_rev", sums, np.float32)
    _put(store, f"{group}/sumsq_rev", sumsqs, np.float32)
    _put(store, f"{group}/count_rev", counts, np.uint8)


def _get(store, path):
    return store.read_slice(path, 0, store.size(path))


class TestCompute:
    """Batch arithmetic, no I/O."""

    def test_mean_and_sd(self, internal_config):
        reducer = RunningStatsReducer(internal_config)
        mean, sd, single = reducer.compute(
            np.array([10], np.float32), np.array([30], np.float32), np.array([4], np.uint8))

        assert mean.dtype == np.float32
        assert sd.dtype == np.float32
        assert mean[0] == pytest.approx(2.5)
        assert sd[0] == pytest.approx(1.29099, rel=1e-5)
        assert single == 0

    def test_zero_count_gets_sentinel(self, internal_config):
        reducer = RunningStatsReducer(internal_config)
        mean, sd, _ = reducer.compute(
            np.array([0, 5], np.float32), np.array([0, 0], np.float32),
            np.array([0, 0], np.uint8))

        np.testing.assert_array_equal(sd, [-1.0, -1.0])
        assert np.isfinite(sd).all()
        assert np.isnan(mean).all()

    def test_custom_sentinel(self, make_config):
        reducer = RunningStatsReducer(make_config(sd_sentinel=-9999))
        _, sd, _ = reducer.compute(
            np.zeros(1, np.float32), np.zeros(1, np.float32), np.zeros(1, np.uint8))
        assert sd[0] == -9999.0

    def test_single_count_default_is_nan(self, internal_config):
        reducer = RunningStatsReducer(internal_config)
        mean, sd, single = reducer.compute(
            np.array([3], np.float32), np.array([9], np.float32), np.array([1], np.uint8))

        assert mean[0] == 3.0
        assert np.isnan(sd[0])
        assert single == 1

    def test_single_count_sentinel_policy(self, make_config):
        reducer = RunningStatsReducer(make_config(stats={"single_count_sd": "sentinel"}))
        _, sd, _ = reducer.compute(
            np.array([3], np.float32), np.array([9], np.float32), np.array([1], np.uint8))
        assert sd[0] == -1.0

    def test_negative_variance_clamped(self, internal_config):
        """float32 cancellation can make sumsq - sum^2/n slightly negative."""
        reducer = RunningStatsReducer(internal_config)
        _, sd, _ = reducer.compute(
            np.array([3.0], np.float32), np.array([2.99], np.float32),
            np.array([3], np.uint8))
        assert sd[0] == 0.0

    def test_zero_mask_uses_integer_counts(self, internal_config):
        """Counts of 255 stay distinct from zero after conversion."""
        reducer = RunningStatsReducer(internal_config)
        _, sd, _ = reducer.compute(
            np.array([255], np.float32), np.array([255], np.float32),
            np.array([255], np.uint8))
        assert sd[0] == pytest.approx(0.0)

    def test_no_floating_point_warnings(self, internal_config, recwarn):
        reducer = RunningStatsReducer(internal_config)
        reducer.compute(np.zeros(3, np.float32), np.zeros(3, np.float32),
                        np.array([0, 1, 2], np.uint8))
        assert not [w for w in recwarn if issubclass(w.category, RuntimeWarning)]


@pytest.mark.store
class TestReduce:
    """End-to-end reduction of a group stored in HDF5."""

    def test_writes_mean_and_sd(self, h5_store, internal_config):
        _put_group(h5_store, "/ndvi", [10, 0, 4], [30, 0, 16], [4, 0, 1])

        outcome = RunningStatsReducer(internal_config).reduce(h5_store, "/ndvi")

        assert outcome.status == OutcomeStatus.COMPLETED
        assert outcome.output == "/ndvi/mean_rev"
        mean = _get(h5_store, "/ndvi/mean_rev")
        sd = _get(h5_store, "/ndvi/sd_rev")
        assert mean[0] == pytest.approx(2.5)
        assert np.isnan(mean[1])
        assert mean[2] == 4.0
        assert sd[0] == pytest.approx(1.29099, rel=1e-5)
        assert sd[1] == -1.0
        assert np.isnan(sd[2])
        assert not h5_store.exists("/ndvi/mean_rev.partial")
        assert not h5_store.exists("/ndvi/sd_rev.partial")

    def test_batch_boundary_consistency(self, h5_store, make_config):
        """2.5M cells in 1M batches equal a single 2.5M batch."""
        n = 2_500_000
        rng = np.random.default_rng(42)
        counts = rng.integers(0, 20, size=n, dtype=np.uint8)
        values = rng.random(n, dtype=np.float32) * 10
        sums = values * counts
        sumsqs = values * values * counts
        _put_group(h5_store, "/a", sums, sumsqs, counts)
        _put_group(h5_store, "/b", sums, sumsqs, counts)

        RunningStatsReducer(make_config(stats={"batch_size": 1_000_000})).reduce(h5_store, "/a")
        RunningStatsReducer(make_config(stats={"batch_size": n})).reduce(h5_store, "/b")

        np.testing.assert_array_equal(_get(h5_store, "/a/mean_rev"), _get(h5_store, "/b/mean_rev"))
        np.testing.assert_array_equal(_get(h5_store, "/a/sd_rev"), _get(h5_store, "/b/sd_rev"))

    def test_skips_when_mean_exists(self, h5_store, internal_config):
        _put_group(h5_store, "/g", [1], [1], [1])
        _put(h5_store, "/g/mean_rev", [123], np.float32)

        outcome = RunningStatsReducer(internal_config).reduce(h5_store, "/g")

        assert outcome.status == OutcomeStatus.SKIPPED
        assert not h5_store.exists("/g/sd_rev")
        assert _get(h5_store, "/g/mean_rev")[0] == 123

    def test_orphaned_sd_is_recomputed(self, h5_store, internal_config):
        """sd without mean means the previous run died between commits."""
        _put_group(h5_store, "/g", [10], [30], [4])
        _put(h5_store, "/g/sd_rev", [99], np.float32)
        _put(h5_store, "/g/mean_rev.partial", [99], np.float32)

        outcome = RunningStatsReducer(internal_config).reduce(h5_store, "/g")

        assert outcome.status == OutcomeStatus.COMPLETED
        assert _get(h5_store, "/g/sd_rev")[0] == pytest.approx(1.29099, rel=1e-5)
        assert _get(h5_store, "/g/mean_rev")[0] == pytest.approx(2.5)

    def test_size_mismatch(self, h5_store, internal_config):
        _put(h5_store, "/g/sum_rev", [1, 2], np.float32)
        _put(h5_store, "/g/sumsq_rev", [1, 2, 3], np.float32)
        _put(h5_store, "/g/count_rev", [1, 2], np.uint8)

        with pytest.raises(SizeMismatch) as excinfo:
            RunningStatsReducer(internal_config).reduce(h5_store, "/g")

        assert excinfo.value.target == "/g"
        assert excinfo.value.operation == "stats"
        assert "sumsq=3" in str(excinfo.value)
        assert not h5_store.exists("/g/mean_rev")

    def test_missing_accumulator(self, h5_store, internal_config):
        _put(h5_store, "/g/sum_rev", [1], np.float32)
        _put(h5_store, "/g/count_rev", [1], np.uint8)

        with pytest.raises(MissingInput) as excinfo:
            RunningStatsReducer(internal_config).reduce(h5_store, "/g")

        assert excinfo.value.target == "/g/sumsq_rev"
        assert excinfo.value.operation == "stats"

    def test_single_count_warning(self, h5_store, internal_config, caplog):
        _put_group(h5_store, "/g", [1, 2, 3], [1, 4, 5], [1, 1, 2])

        with caplog.at_level(logging.WARNING, logger="revstat.core.stats"):
            RunningStatsReducer(internal_config).reduce(h5_store, "/g")

        assert "2 cells have a single observation" in caplog.text

    def test_progress_reports_elements(self, h5_store, make_config):
        _put_group(h5_store, "/g", np.ones(7), np.ones(7), np.ones(7))
        calls = []

        RunningStatsReducer(make_config(stats={"batch_size": 3})).reduce(
            h5_store, "/g", progress=lambda i, n: calls.append((i, n)))

        assert calls == [(0, 7), (3, 7), (6, 7), (7, 7)]

    def test_custom_names(self, h5_store, make_config):
        config = make_config(reverse={"suffix": "_flip"},
                             stats={"sum_name": "s", "sumsq_name": "s2", "count_name": "n"})
        _put(h5_store, "/g/s_flip", [6], np.float32)
        _put(h5_store, "/g/s2_flip", [14], np.float32)
        _put(h5_store, "/g/n_flip", [3], np.uint8)

        RunningStatsReducer(config).reduce(h5_store, "/g")

        assert _get(h5_store, "/g/mean_flip")[0] == pytest.approx(2.0)
        assert _get(h5_store, "/g/sd_flip")[0] == pytest.approx(1.0)
