"""
Time-weighted average price tracking and manipulation checks.

A TWAPState is created by the first observation of a pair and mutated by
every later observation. The cumulative price integrates last_price over
time, and the average divides it by the time elapsed since the first
observation. Reads project the last price forward to the query time, so a
TWAP can be read between updates; no decay is applied, the last price is
assumed to persist.

Functions here operate on explicitly passed state. TWAPOracle wraps a set of
per-pair states behind one lock per pair, so updates to the same pair are
serialized and readers never see a half-applied update.
"""

import dataclasses
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from .constants import BPS_DENOMINATOR, DEFAULT_CONFIG, MAX_SCORE
from .exceptions import InvalidTimestamp, ValidationError
from .fixed_point import add, check_uint256, mul, mul_div
from .metrics import EngineMetrics
from .price_math import price_deviation_bps, standard_deviation
from .utils import get_logger, is_valid_basis_points

logger = get_logger(__name__)

FRESHNESS_WEIGHT_BPS = 7_000
SUFFICIENCY_SCORE = MAX_SCORE - FRESHNESS_WEIGHT_BPS


@dataclass(frozen=True)
class TWAPConfig:
    """
    Immutable TWAP parameters.

    Attributes:
        observation_period: Seconds of history needed for the TWAP to count
            as fully covered
        max_observation_age: Seconds after the last update before the state
            is stale
        min_observations: Observations required before health_score is non-zero
        max_deviation_bps: Default manipulation threshold for validate_against_twap
    """

    observation_period: int = DEFAULT_CONFIG["OBSERVATION_PERIOD"]
    max_observation_age: int = DEFAULT_CONFIG["MAX_OBSERVATION_AGE"]
    min_observations: int = DEFAULT_CONFIG["MIN_OBSERVATIONS"]
    max_deviation_bps: int = DEFAULT_CONFIG["MAX_DEVIATION_BPS"]

    def __post_init__(self):
        if self.observation_period <= 0:
            raise ValidationError(
                f"observation_period must be positive, got {self.observation_period}"
            )
        if self.max_observation_age <= 0:
            raise ValidationError(
                f"max_observation_age must be positive, got {self.max_observation_age}"
            )
        if self.min_observations < 1:
            raise ValidationError(
                f"min_observations must be at least 1, got {self.min_observations}"
            )
        if not is_valid_basis_points(self.max_deviation_bps):
            raise ValidationError(
                f"max_deviation_bps must be within [0, {BPS_DENOMINATOR}], "
                f"got {self.max_deviation_bps}"
            )


@dataclass
class TWAPState:
    """
    Mutable per-pair TWAP record.

    Attributes:
        config: Immutable parameters this state was created with
        start_time: Timestamp of the first observation
        last_update_time: Timestamp of the latest observation
        last_price: Latest observed price (WAD)
        cumulative_price: Integral of price over time since start_time
        observation_count: Number of accepted observations
        time_weighted_average_price: cumulative_price / (last_update_time - start_time),
            or the first price before any time has elapsed
        pair: Optional pair label for logging and metrics
    """

    config: TWAPConfig
    start_time: int
    last_update_time: int
    last_price: int
    cumulative_price: int = 0
    observation_count: int = 1
    time_weighted_average_price: int = 0
    pair: str = ""

    @property
    def observation_period(self) -> int:
        return self.config.observation_period

    @property
    def max_observation_age(self) -> int:
        return self.config.max_observation_age

    def to_dict(self) -> dict:
        """Convert to a plain dictionary for persistence by the caller."""
        return dataclasses.asdict(self)


# ============================================================================
# State transitions
# ============================================================================


def _check_time(state: TWAPState, timestamp: int) -> int:
    check_uint256(timestamp, "timestamp")
    if timestamp < state.last_update_time:
        raise InvalidTimestamp(
            f"Timestamp {timestamp} precedes last update {state.last_update_time}",
            timestamp=timestamp,
            last_timestamp=state.last_update_time,
        )
    return timestamp - state.last_update_time


def initialize(
    config: TWAPConfig, initial_price: int, timestamp: int, pair: str = ""
) -> TWAPState:
    """Create a tracking state seeded with one observation."""
    check_uint256(initial_price, "initialize")
    check_uint256(timestamp, "timestamp")
    return TWAPState(
        config=config,
        start_time=timestamp,
        last_update_time=timestamp,
        last_price=initial_price,
        cumulative_price=0,
        observation_count=1,
        time_weighted_average_price=initial_price,
        pair=pair,
    )


def update(state: TWAPState, price: int, timestamp: int) -> TWAPState:
    """
    Fold a new observation into the state.

    A second observation at the same timestamp is ignored. All new values are
    computed before any field is written, so a failure leaves the state
    untouched.

    Raises:
        InvalidTimestamp: If timestamp is earlier than the last update
    """
    check_uint256(price, "update")
    elapsed = _check_time(state, timestamp)
    if elapsed == 0:
        return state

    cumulative = add(state.cumulative_price, mul(state.last_price, elapsed))
    total_elapsed = timestamp - state.start_time
    average = cumulative // total_elapsed

    state.cumulative_price = cumulative
    state.time_weighted_average_price = average
    state.last_update_time = timestamp
    state.last_price = price
    state.observation_count += 1
    return state


def reset(state: TWAPState, price: int, timestamp: int) -> TWAPState:
    """Discard history and reseed the state with a single observation."""
    fresh = initialize(state.config, price, timestamp, state.pair)
    for field in dataclasses.fields(TWAPState):
        setattr(state, field.name, getattr(fresh, field.name))
    return state


# ============================================================================
# Reads
# ============================================================================


def get_twap(state: TWAPState, timestamp: int) -> int:
    """
    TWAP projected to timestamp, extrapolating last_price over the gap.

    Raises:
        InvalidTimestamp: If timestamp is earlier than the last update
    """
    elapsed = _check_time(state, timestamp)
    total_elapsed = timestamp - state.start_time
    if total_elapsed == 0:
        return state.last_price
    projected = add(state.cumulative_price, mul(state.last_price, elapsed))
    return projected // total_elapsed


def validate_against_twap(
    state: TWAPState,
    current_price: int,
    timestamp: int,
    max_deviation_bps: Optional[int] = None,
) -> bool:
    """
    Check a spot price against the TWAP.

    Deviation is |current - twap| / max(current, twap) in bps. Returns True
    when it is within max_deviation_bps (defaults to the state's config).
    """
    if max_deviation_bps is None:
        max_deviation_bps = state.config.max_deviation_bps
    twap = get_twap(state, timestamp)
    return price_deviation_bps(current_price, twap) <= max_deviation_bps


def is_stale(state: TWAPState, timestamp: int) -> bool:
    """True when more than max_observation_age has passed since the last update."""
    return _check_time(state, timestamp) > state.config.max_observation_age


def confidence_interval(
    state: TWAPState, timestamp: int, recent_prices: Sequence[int]
) -> Tuple[int, int]:
    """
    Symmetric band of two sample standard deviations around the TWAP.

    Returns (0, 0) with fewer than two recent prices. The lower bound floors
    at zero.
    """
    if len(recent_prices) < 2:
        return 0, 0
    twap = get_twap(state, timestamp)
    band = 2 * standard_deviation(recent_prices)
    lower = twap - band if twap > band else 0
    return lower, add(twap, band)


def merge(state_a: TWAPState, state_b: TWAPState, timestamp: int) -> int:
    """
    Observation-count weighted average of two independent TWAPs.

    A state without observations contributes nothing; two empty states
    merge to 0.
    """
    count_a = state_a.observation_count
    count_b = state_b.observation_count
    if count_a == 0 and count_b == 0:
        return 0
    if count_a == 0:
        return get_twap(state_b, timestamp)
    if count_b == 0:
        return get_twap(state_a, timestamp)

    twap_a = get_twap(state_a, timestamp)
    twap_b = get_twap(state_b, timestamp)
    return (twap_a * count_a + twap_b * count_b) // (count_a + count_b)


def health_score(
    state: TWAPState, timestamp: int, config: Optional[TWAPConfig] = None
) -> int:
    """
    Blend freshness and observation sufficiency into a 0-10000 score.

    freshness = 10000 - elapsed / max_age * 10000, floored at 0, weighted 70%.
    The remaining 30% is granted once the observed history spans at least one
    observation_period. Fewer than min_observations scores 0.
    """
    config = config or state.config
    if state.observation_count < config.min_observations:
        return 0

    elapsed = _check_time(state, timestamp)
    staleness = mul_div(elapsed, MAX_SCORE, config.max_observation_age)
    freshness = MAX_SCORE - staleness if staleness < MAX_SCORE else 0

    covered = state.last_update_time - state.start_time
    sufficient = covered >= config.observation_period

    score = freshness * FRESHNESS_WEIGHT_BPS // MAX_SCORE
    if sufficient:
        score += SUFFICIENCY_SCORE
    return score


# ============================================================================
# Per-pair registry
# ============================================================================


class TWAPOracle:
    """
    Registry of TWAP states keyed by pair.

    Each pair owns one lock: updates to a pair are serialized in arrival order
    and reads take the same lock, so a read observes either the state before
    an update or after it. Different pairs never contend.
    """

    def __init__(
        self,
        config: Optional[TWAPConfig] = None,
        metrics: Optional[EngineMetrics] = None,
    ):
        """
        Initialize the oracle.

        Args:
            config: Parameters for newly tracked pairs
            metrics: Optional metrics sink
        """
        self.config = config if config is not None else TWAPConfig()
        self.metrics = metrics
        self._states: Dict[str, TWAPState] = {}
        self._locks: Dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def __contains__(self, pair: str) -> bool:
        return pair in self._states

    def __len__(self) -> int:
        return len(self._states)

    def pairs(self) -> List[str]:
        """Tracked pair labels."""
        with self._registry_lock:
            return sorted(self._states)

    def _lock_for(self, pair: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(pair)
            if lock is None:
                lock = threading.RLock()
                self._locks[pair] = lock
            return lock

    def _require_state(self, pair: str) -> TWAPState:
        state = self._states.get(pair)
        if state is None:
            raise ValidationError(f"No TWAP state for pair {pair}", {"pair": pair})
        return state

    def observe(self, pair: str, price: int, timestamp: int) -> TWAPState:
        """
        Record a price for pair, creating its state on first sight.

        Returns:
            Snapshot of the state after the observation
        """
        with self._lock_for(pair):
            state = self._states.get(pair)
            if state is None:
                state = initialize(self.config, price, timestamp, pair)
                with self._registry_lock:
                    self._states[pair] = state
                    tracked = len(self._states)
                logger.info(f"Tracking TWAP for {pair} from t={timestamp}")
                if self.metrics:
                    self.metrics.set_tracked_pairs(tracked)
                    self.metrics.record_observation(pair)
                return dataclasses.replace(state)

            previous_count = state.observation_count
            update(state, price, timestamp)
            if self.metrics:
                if state.observation_count == previous_count:
                    self.metrics.record_duplicate_observation(pair)
                else:
                    self.metrics.record_observation(pair)
            return dataclasses.replace(state)

    def check_time(self, pair: str, timestamp: int) -> None:
        """
        Raise InvalidTimestamp if observing pair at timestamp would be rejected.

        Untracked pairs accept any timestamp.
        """
        with self._lock_for(pair):
            state = self._states.get(pair)
            if state is None:
                check_uint256(timestamp, "timestamp")
            else:
                _check_time(state, timestamp)

    def snapshot(self, pair: str) -> Optional[TWAPState]:
        """Copy of the pair's state, or None if untracked."""
        with self._lock_for(pair):
            state = self._states.get(pair)
            return dataclasses.replace(state) if state is not None else None

    def twap(self, pair: str, timestamp: int) -> int:
        """TWAP for pair projected to timestamp."""
        with self._lock_for(pair):
            return get_twap(self._require_state(pair), timestamp)

    def validate(
        self,
        pair: str,
        spot: int,
        timestamp: int,
        max_deviation_bps: Optional[int] = None,
    ) -> bool:
        """Manipulation check of a spot price against the pair's TWAP."""
        with self._lock_for(pair):
            state = self._require_state(pair)
            limit = (
                max_deviation_bps
                if max_deviation_bps is not None
                else state.config.max_deviation_bps
            )
            twap = get_twap(state, timestamp)

        deviation = price_deviation_bps(spot, twap)
        accepted = deviation <= limit
        if self.metrics:
            self.metrics.record_deviation_check(pair, deviation, accepted)
        if not accepted:
            logger.warning(
                f"Spot price for {pair} deviates {deviation} bps from TWAP "
                f"(limit {limit} bps)"
            )
        return accepted

    def is_stale(self, pair: str, timestamp: int) -> bool:
        """Staleness of the pair's TWAP at timestamp."""
        with self._lock_for(pair):
            stale = is_stale(self._require_state(pair), timestamp)
        if stale:
            if self.metrics:
                self.metrics.record_stale_read(pair)
            logger.debug(f"TWAP for {pair} is stale at t={timestamp}")
        return stale

    def health(self, pair: str, timestamp: int) -> int:
        """Health score of the pair's TWAP."""
        with self._lock_for(pair):
            return health_score(self._require_state(pair), timestamp)

    def confidence_interval(
        self, pair: str, timestamp: int, recent_prices: Sequence[int]
    ) -> Tuple[int, int]:
        """Confidence band around the pair's TWAP."""
        with self._lock_for(pair):
            return confidence_interval(
                self._require_state(pair), timestamp, recent_prices
            )

    def merge_with(self, pair: str, other: TWAPState, timestamp: int) -> int:
        """Merge the pair's TWAP with a state from another source."""
        with self._lock_for(pair):
            return merge(self._require_state(pair), other, timestamp)

    def reset(self, pair: str, price: int, timestamp: int) -> TWAPState:
        """Reseed the pair's state with one observation."""
        with self._lock_for(pair):
            state = reset(self._require_state(pair), price, timestamp)
            logger.info(f"Reset TWAP for {pair} at t={timestamp}")
            return dataclasses.replace(state)

    def remove(self, pair: str) -> None:
        """
        Stop tracking a pair.

        The pair's lock is kept so writers already waiting on it and writers
        arriving later still serialize on the same lock.
        """
        with self._lock_for(pair):
            with self._registry_lock:
                self._states.pop(pair, None)
                tracked = len(self._states)
        if self.metrics:
            self.metrics.set_tracked_pairs(tracked)
