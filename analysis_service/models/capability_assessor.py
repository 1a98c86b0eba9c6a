"""
SHOTCOACH Analysis Service - Capability Assessor

Measures RAM, CPU cores, GPU and pose-framework availability plus a short
CPU/memory micro-benchmark, classifies the host into a device tier and
caches the result for a week.
"""

import importlib.util
import logging
import math
import os
import random
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Optional

import cv2

from core.config import settings
from .repositories import CapabilityCache
from .types import DeviceCapabilities, DeviceTier

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════════
# SAFE DEFAULTS (used when a probe fails)
# ═══════════════════════════════════════════════════════════════════════════════

DEFAULT_RAM_MB = 2048
DEFAULT_CPU_CORES = 2
DEFAULT_HAS_GPU = False
DEFAULT_ML_SUPPORTED = False
DEFAULT_BENCHMARK_SCORE = 50

BENCHMARK_ITERATIONS = 100_000
BENCHMARK_ARRAY_SIZE = 10_000

MS_PER_DAY = 24 * 60 * 60 * 1000


# ═══════════════════════════════════════════════════════════════════════════════
# PROBES
# ═══════════════════════════════════════════════════════════════════════════════

def get_available_ram_mb() -> int:
    """Physical memory in MB."""
    pages = os.sysconf("SC_PHYS_PAGES")
    page_size = os.sysconf("SC_PAGE_SIZE")
    return int(pages * page_size / (1024 * 1024))


def get_cpu_cores() -> int:
    cores = os.cpu_count()
    if not cores:
        raise RuntimeError("CPU count unavailable")
    return cores


def check_gpu_availability() -> bool:
    """True when OpenCV was built with CUDA and sees a device."""
    return cv2.cuda.getCudaEnabledDeviceCount() > 0


def check_ml_framework() -> bool:
    """True when the pose estimation runtime is importable."""
    return importlib.util.find_spec("mediapipe") is not None


def benchmark_duration_to_score(duration_ms: float) -> int:
    """
    Map benchmark wall time to 0-100.
    
    <50ms scores 90-100, 50-150ms interpolates 90 down to 50,
    slower runs descend from 50 by one point per 10ms, floored at 0.
    """
    if duration_ms < 50:
        score = 90 + min(10, (50 - duration_ms) / 5)
    elif duration_ms < 150:
        score = 50 + ((150 - duration_ms) / 100) * 40
    else:
        score = max(0, 50 - (duration_ms - 150) / 10)
    return int(round(score))


def run_performance_benchmark() -> int:
    """
    Fixed-iteration CPU + memory workload, scored by elapsed time.
    
    Iteration counts never change so scores are comparable across runs
    on the same hardware.
    """
    start = time.perf_counter()
    
    result = 0.0
    for i in range(BENCHMARK_ITERATIONS):
        result += math.sqrt(i) * math.sin(i) * math.cos(i)
    
    values = [random.random() * 1000 for _ in range(BENCHMARK_ARRAY_SIZE)]
    values.sort()
    filtered = [v for v in values if v > 500]
    mapped = [v * 2 for v in filtered]
    
    duration_ms = (time.perf_counter() - start) * 1000
    score = benchmark_duration_to_score(duration_ms)
    logger.debug(f"Benchmark: {duration_ms:.1f}ms -> {score} (checksum {result:.2f}, {len(mapped)} items)")
    return score


def classify_device_tier(ram_mb: int, cpu_cores: int, benchmark_score: int) -> DeviceTier:
    """All three thresholds of a tier must hold; otherwise drop a tier."""
    if ram_mb >= 6144 and cpu_cores >= 6 and benchmark_score > 70:
        return DeviceTier.HIGH
    if ram_mb >= 3072 and cpu_cores >= 4 and benchmark_score > 40:
        return DeviceTier.MID
    return DeviceTier.LOW


# ═══════════════════════════════════════════════════════════════════════════════
# ASSESSOR
# ═══════════════════════════════════════════════════════════════════════════════

class CapabilityAssessor:
    """
    Detects device capabilities with a persistent, staleness-checked cache.
    
    Probes are injectable so tests can simulate any device.
    """
    
    def __init__(
        self,
        cache: CapabilityCache,
        probes: Optional[Dict[str, Callable[[], object]]] = None,
        benchmark: Callable[[], int] = run_performance_benchmark,
        clock: Callable[[], float] = time.time,
        max_age_days: int = None,
        concurrent_probes: bool = True,
    ):
        self.cache = cache
        self.probes = {
            "available_ram": get_available_ram_mb,
            "cpu_cores": get_cpu_cores,
            "has_gpu": check_gpu_availability,
            "ml_framework_supported": check_ml_framework,
        }
        if probes:
            self.probes.update(probes)
        self.benchmark = benchmark
        self.clock = clock
        self.max_age_days = max_age_days or settings.CAPABILITY_CACHE_MAX_AGE_DAYS
        self.concurrent_probes = concurrent_probes
        
        self._defaults = {
            "available_ram": DEFAULT_RAM_MB,
            "cpu_cores": DEFAULT_CPU_CORES,
            "has_gpu": DEFAULT_HAS_GPU,
            "ml_framework_supported": DEFAULT_ML_SUPPORTED,
        }
    
    def _now_ms(self) -> int:
        return int(self.clock() * 1000)
    
    def detect_device_capabilities(self, force_refresh: bool = False) -> DeviceCapabilities:
        """Return cached capabilities if fresh, otherwise run full detection."""
        if not force_refresh:
            cached = self.load_cached_capabilities()
            if cached is not None:
                return cached
        
        capabilities = self._run_detection()
        
        try:
            self.cache.save(capabilities, self._now_ms())
        except Exception as e:
            logger.warning(f"⚠️ Failed to cache device capabilities: {e}")
        
        return capabilities
    
    def load_cached_capabilities(self) -> Optional[DeviceCapabilities]:
        """Cached record, or None when missing or older than the max age."""
        cached = self.cache.load()
        if cached is None:
            return None
        
        capabilities, last_assessed = cached
        age_ms = self._now_ms() - last_assessed
        if age_ms < self.max_age_days * MS_PER_DAY:
            logger.debug(f"Using cached capabilities (age {age_ms / MS_PER_DAY:.1f} days)")
            return capabilities
        
        logger.info("🔄 Cached device capabilities are stale, re-detecting")
        return None
    
    def _run_detection(self) -> DeviceCapabilities:
        signals = self._gather_signals()
        benchmark_score = self._safe_probe("benchmark_score", self.benchmark, DEFAULT_BENCHMARK_SCORE)
        
        tier = classify_device_tier(signals["available_ram"], signals["cpu_cores"], benchmark_score)
        capabilities = DeviceCapabilities(
            tier=tier,
            available_ram=int(signals["available_ram"]),
            cpu_cores=int(signals["cpu_cores"]),
            has_gpu=bool(signals["has_gpu"]),
            ml_framework_supported=bool(signals["ml_framework_supported"]),
            benchmark_score=int(benchmark_score),
        )
        logger.info(
            f"📱 Device tier={tier.value} ram={capabilities.available_ram}MB "
            f"cores={capabilities.cpu_cores} gpu={capabilities.has_gpu} "
            f"ml={capabilities.ml_framework_supported} bench={benchmark_score}"
        )
        return capabilities
    
    def _gather_signals(self) -> Dict[str, object]:
        # Independent probes; the benchmark runs alone afterwards since its
        # duration is the measurement
        if not self.concurrent_probes:
            return {
                name: self._safe_probe(name, probe, self._defaults[name])
                for name, probe in self.probes.items()
            }
        
        with ThreadPoolExecutor(max_workers=len(self.probes), thread_name_prefix="capability_probe_") as executor:
            futures = {
                name: executor.submit(self._safe_probe, name, probe, self._defaults[name])
                for name, probe in self.probes.items()
            }
            return {name: future.result() for name, future in futures.items()}
    
    @staticmethod
    def _safe_probe(name: str, probe: Callable[[], object], default: object) -> object:
        try:
            return probe()
        except Exception as e:
            logger.warning(f"⚠️ Capability probe '{name}' failed ({e}); using default {default}")
            return default
