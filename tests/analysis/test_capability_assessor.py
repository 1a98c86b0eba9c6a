"""
Tests for device capability assessment and its cache.

Covers:
- Tier classification thresholds
- Benchmark duration scoring
- Probe failure defaults
- Cache hit, staleness and forced refresh
"""

import pytest

from core.database import MockFirestoreClient
from analysis_service.models.capability_assessor import (
    CapabilityAssessor,
    DEFAULT_BENCHMARK_SCORE,
    DEFAULT_CPU_CORES,
    DEFAULT_RAM_MB,
    MS_PER_DAY,
    benchmark_duration_to_score,
    classify_device_tier,
)
from analysis_service.models.repositories import CapabilityCache
from analysis_service.models.types import DeviceTier


NOW_SECONDS = 1_800_000_000.0
NOW_MS = int(NOW_SECONDS * 1000)


def make_assessor(cache, ram=8192, cores=8, gpu=False, ml=True, benchmark=80, calls=None):
    def counted_benchmark():
        if calls is not None:
            calls.append("benchmark")
        return benchmark

    return CapabilityAssessor(
        cache,
        probes={
            "available_ram": lambda: ram,
            "cpu_cores": lambda: cores,
            "has_gpu": lambda: gpu,
            "ml_framework_supported": lambda: ml,
        },
        benchmark=counted_benchmark,
        clock=lambda: NOW_SECONDS,
        max_age_days=7,
    )


@pytest.fixture
def cache():
    return CapabilityCache(MockFirestoreClient())


# ============================================
# Classification
# ============================================

class TestClassifyDeviceTier:

    def test_high(self):
        assert classify_device_tier(8192, 8, 80) == DeviceTier.HIGH

    def test_high_needs_every_threshold(self):
        # Strong CPU but too little RAM
        assert classify_device_tier(4096, 8, 95) == DeviceTier.MID
        # Benchmark must be strictly above 70
        assert classify_device_tier(8192, 8, 70) == DeviceTier.MID

    def test_mid(self):
        assert classify_device_tier(3072, 4, 41) == DeviceTier.MID

    def test_low(self):
        assert classify_device_tier(2048, 8, 90) == DeviceTier.LOW
        assert classify_device_tier(4096, 4, 40) == DeviceTier.LOW
        assert classify_device_tier(4096, 2, 90) == DeviceTier.LOW


class TestBenchmarkScore:

    def test_fast_run_scores_high(self):
        assert benchmark_duration_to_score(0) == 100
        assert 90 <= benchmark_duration_to_score(40) <= 100

    def test_mid_range_interpolates(self):
        assert benchmark_duration_to_score(50) == 90
        assert benchmark_duration_to_score(100) == 70

    def test_slow_run_floors_at_zero(self):
        assert benchmark_duration_to_score(150) == 50
        assert benchmark_duration_to_score(250) == 40
        assert benchmark_duration_to_score(10_000) == 0

    def test_monotonic(self):
        scores = [benchmark_duration_to_score(ms) for ms in range(0, 1000, 10)]
        assert scores == sorted(scores, reverse=True)


# ============================================
# Detection
# ============================================

class TestDetection:

    def test_detects_and_caches(self, cache):
        caps = make_assessor(cache).detect_device_capabilities()

        assert caps.tier == DeviceTier.HIGH
        assert caps.available_ram == 8192
        assert caps.ml_framework_supported is True

        stored, last_assessed = cache.load()
        assert stored == caps
        assert last_assessed == NOW_MS

    def test_failing_probes_use_defaults(self, cache):
        def broken():
            raise OSError("probe unavailable")

        assessor = CapabilityAssessor(
            cache,
            probes={
                "available_ram": broken,
                "cpu_cores": broken,
                "has_gpu": broken,
                "ml_framework_supported": broken,
            },
            benchmark=broken,
            clock=lambda: NOW_SECONDS,
        )
        caps = assessor.detect_device_capabilities()

        assert caps.available_ram == DEFAULT_RAM_MB
        assert caps.cpu_cores == DEFAULT_CPU_CORES
        assert caps.has_gpu is False
        assert caps.ml_framework_supported is False
        assert caps.benchmark_score == DEFAULT_BENCHMARK_SCORE
        assert caps.tier == DeviceTier.LOW

    def test_sequential_probes_match(self, cache):
        assessor = make_assessor(cache, ram=4096, cores=4, benchmark=60)
        assessor.concurrent_probes = False

        assert assessor.detect_device_capabilities().tier == DeviceTier.MID

    def test_cache_write_failure_still_returns(self):
        class BrokenCache:
            def load(self):
                return None

            def save(self, capabilities, last_assessed_ms):
                raise RuntimeError("disk full")

        caps = make_assessor(BrokenCache()).detect_device_capabilities()
        assert caps.tier == DeviceTier.HIGH


class TestCapabilityCacheAge:

    def test_fresh_cache_skips_detection(self, cache):
        calls = []
        first = make_assessor(cache, calls=calls).detect_device_capabilities()
        # Different probes would yield a different tier if detection ran
        second = make_assessor(cache, ram=1024, calls=calls).detect_device_capabilities()

        assert second == first
        assert calls == ["benchmark"]

    def test_stale_cache_redetects(self, cache):
        old = make_assessor(cache, ram=1024, cores=2, benchmark=10).detect_device_capabilities()
        assert old.tier == DeviceTier.LOW

        # Record is 8 days old
        stored, _ = cache.load()
        cache.save(stored, NOW_MS - 8 * MS_PER_DAY)

        calls = []
        fresh = make_assessor(cache, calls=calls).detect_device_capabilities()

        assert calls == ["benchmark"]
        assert fresh.tier == DeviceTier.HIGH
        assert cache.load()[1] == NOW_MS

    def test_exactly_max_age_is_stale(self, cache):
        make_assessor(cache).detect_device_capabilities()
        stored, _ = cache.load()
        cache.save(stored, NOW_MS - 7 * MS_PER_DAY)

        assert make_assessor(cache).load_cached_capabilities() is None

    def test_force_refresh_ignores_cache(self, cache):
        make_assessor(cache, ram=1024).detect_device_capabilities()

        calls = []
        caps = make_assessor(cache, calls=calls).detect_device_capabilities(force_refresh=True)

        assert calls == ["benchmark"]
        assert caps.available_ram == 8192

    def test_corrupt_record_is_a_miss(self):
        db = MockFirestoreClient()
        db.collection("device_capabilities").document("1").set({"tier": "ultra"})

        assert CapabilityCache(db).load() is None
