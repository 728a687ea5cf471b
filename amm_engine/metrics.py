"""
Prometheus metrics for the AMM math engine.

The math functions themselves stay pure; the stateful TWAP oracle and the
arbitrage scanner record what they observe here.
"""

import logging
import threading
import time
from typing import Any, Dict, Optional

from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from .constants import METRICS_CONSTANTS

logger = logging.getLogger(__name__)

_PREFIX = METRICS_CONSTANTS["METRIC_PREFIX"]


class EngineMetrics:
    """
    Engine metrics collection

    Provides Prometheus-compatible metrics for:
    - TWAP observations, duplicates and staleness
    - Manipulation checks against the TWAP
    - Arbitrage candidates and opportunities
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize metrics with custom registry or default"""
        self.registry = registry or REGISTRY
        self._initialize_metrics()
        self._lock = threading.RLock()

    def _initialize_metrics(self):
        """Initialize all Prometheus metrics"""

        # === TWAP METRICS ===
        self.twap_observations_total = Counter(
            f"{_PREFIX}_twap_observations_total",
            "Total price observations accepted by the TWAP oracle",
            ["pair"],
            registry=self.registry,
        )

        self.twap_duplicate_observations_total = Counter(
            f"{_PREFIX}_twap_duplicate_observations_total",
            "Observations ignored because they repeat the last timestamp",
            ["pair"],
            registry=self.registry,
        )

        self.twap_stale_reads_total = Counter(
            f"{_PREFIX}_twap_stale_reads_total",
            "Reads that found the TWAP older than its maximum age",
            ["pair"],
            registry=self.registry,
        )

        self.twap_manipulation_rejections_total = Counter(
            f"{_PREFIX}_twap_manipulation_rejections_total",
            "Spot prices rejected for deviating too far from the TWAP",
            ["pair"],
            registry=self.registry,
        )

        self.twap_deviation_bps = Histogram(
            f"{_PREFIX}_twap_deviation_bps",
            "Spot price deviation from TWAP in basis points",
            ["pair"],
            buckets=METRICS_CONSTANTS["HISTOGRAM_BUCKETS_DEVIATION_BPS"],
            registry=self.registry,
        )

        self.tracked_pairs = Gauge(
            f"{_PREFIX}_tracked_pairs",
            "Number of pairs with live TWAP state",
            registry=self.registry,
        )

        # === ARBITRAGE METRICS ===
        self.arbitrage_candidates_total = Counter(
            f"{_PREFIX}_arbitrage_candidates_total",
            "Arbitrage candidates evaluated",
            ["kind"],
            registry=self.registry,
        )

        self.arbitrage_opportunities_total = Counter(
            f"{_PREFIX}_arbitrage_opportunities_total",
            "Profitable arbitrage opportunities found",
            ["kind"],
            registry=self.registry,
        )

        self.arbitrage_net_profit_bps = Histogram(
            f"{_PREFIX}_arbitrage_net_profit_bps",
            "Net profit of profitable opportunities in basis points of input",
            ["kind"],
            buckets=METRICS_CONSTANTS["HISTOGRAM_BUCKETS_PROFIT_BPS"],
            registry=self.registry,
        )

    # === METRIC RECORDING METHODS ===

    def record_observation(self, pair: str):
        """Record an accepted TWAP observation"""
        with self._lock:
            self.twap_observations_total.labels(pair=pair).inc()

    def record_duplicate_observation(self, pair: str):
        """Record a same-timestamp observation that was ignored"""
        with self._lock:
            self.twap_duplicate_observations_total.labels(pair=pair).inc()

    def record_stale_read(self, pair: str):
        """Record a stale TWAP read"""
        with self._lock:
            self.twap_stale_reads_total.labels(pair=pair).inc()

    def record_deviation_check(self, pair: str, deviation_bps: int, accepted: bool):
        """Record the outcome of a spot-vs-TWAP manipulation check"""
        with self._lock:
            self.twap_deviation_bps.labels(pair=pair).observe(deviation_bps)
            if not accepted:
                self.twap_manipulation_rejections_total.labels(pair=pair).inc()

    def set_tracked_pairs(self, count: int):
        """Update the tracked pair gauge"""
        with self._lock:
            self.tracked_pairs.set(count)

    def record_candidate(self, kind: str, count: int = 1):
        """Record evaluated arbitrage candidates"""
        with self._lock:
            self.arbitrage_candidates_total.labels(kind=kind).inc(count)

    def record_opportunity(self, kind: str, net_profit_bps: int):
        """Record a profitable opportunity"""
        with self._lock:
            self.arbitrage_opportunities_total.labels(kind=kind).inc()
            self.arbitrage_net_profit_bps.labels(kind=kind).observe(net_profit_bps)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Get current metrics summary"""
        return {
            "metrics_available": True,
            "registry_collectors": len(list(self.registry._collector_to_names.keys())),
            "timestamp": time.time(),
        }


# Global metrics instance (singleton pattern)
_global_metrics: Optional[EngineMetrics] = None


def get_metrics() -> EngineMetrics:
    """Get or create global metrics instance"""
    global _global_metrics
    if _global_metrics is None:
        _global_metrics = EngineMetrics()
    return _global_metrics


def initialize_metrics(registry: Optional[CollectorRegistry] = None) -> EngineMetrics:
    """Initialize global metrics with custom registry"""
    global _global_metrics
    _global_metrics = EngineMetrics(registry)
    logger.debug("Engine metrics initialized")
    return _global_metrics
