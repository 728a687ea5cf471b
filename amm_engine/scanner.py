"""
Arbitrage scanning over a snapshot of pools.

ArbitrageScanner ties the stateless pieces together: it searches the pool
set for the best two-pool trade (and optionally three-pool cycles through a
start token), sizes it, checks both pools' spot prices against their TWAPs,
scores execution risk and prices the fees. Every scan also feeds the spot
prices it saw into the TWAP oracle, so history builds up scan by scan.
"""

import threading
from collections import deque
from dataclasses import dataclass
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from .arbitrage import (
    ArbitrageOpportunity,
    ArbitragePath,
    DEXPool,
    candidate_pairs,
    find_triangular_paths,
    flash_arbitrage_profit,
    optimal_amount,
    risk_score,
    simple_arbitrage,
    success_probability,
)
from .config_loader import EngineConfig, get_default_config
from .constants import BPS_DENOMINATOR, WAD, RejectionReason, SearchMode
from .fees import FeeBreakdown, total_fee_breakdown
from .fixed_point import mul_div
from .metrics import EngineMetrics
from .price_math import volatility
from .twap import TWAPOracle
from .utils import get_logger, timing_decorator

logger = get_logger(__name__)

DEFAULT_HISTORY_SIZE = 32


def pool_label(pool: DEXPool) -> str:
    """Oracle key for a pool, e.g. "uniswap:WETH/USDC"."""
    return f"{pool.dex}:{pool.pair_name}"


@dataclass(frozen=True)
class ScanResult:
    """Outcome of one scan; actionable only when nothing rejected it."""

    timestamp: int
    opportunity: Optional[ArbitrageOpportunity] = None
    paths: Tuple[ArbitragePath, ...] = ()
    fees: Optional[FeeBreakdown] = None
    volatility: int = 0
    risk_score: int = 0
    success_probability_bps: int = 0
    flash_profit: int = 0
    search_mode: SearchMode = SearchMode.GRID
    rejections: Tuple[RejectionReason, ...] = ()

    @property
    def actionable(self) -> bool:
        return (
            self.opportunity is not None
            and self.opportunity.is_profitable
            and not self.rejections
        )

    @property
    def best_path(self) -> Optional[ArbitragePath]:
        if self.paths and self.paths[0].is_profitable:
            return self.paths[0]
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "timestamp": self.timestamp,
            "actionable": self.actionable,
            "opportunity": self.opportunity.to_dict() if self.opportunity else None,
            "paths": [path.to_dict() for path in self.paths],
            "fees": self.fees.to_dict() if self.fees else None,
            "volatility": self.volatility,
            "risk_score": self.risk_score,
            "success_probability_bps": self.success_probability_bps,
            "flash_profit": self.flash_profit,
            "search_mode": self.search_mode.value,
            "rejections": [reason.value for reason in self.rejections],
        }

    def format_log(self) -> str:
        """Format for consistent logging."""
        if self.opportunity is None:
            return f"t={self.timestamp}: no candidates"
        status = "ACTIONABLE" if self.actionable else "rejected"
        reasons = ",".join(reason.value for reason in self.rejections)
        return (
            f"t={self.timestamp} [{status}{' ' + reasons if reasons else ''}] "
            f"{self.opportunity.format_log()} | risk {self.risk_score} "
            f"success {self.success_probability_bps} bps"
        )


class ArbitrageScanner:
    """
    Stateful arbitrage scanner.

    The scanner owns the TWAP oracle it validates against (or shares one
    passed in) and a short spot-price history per pool used for volatility.
    Scans may run from several threads; the oracle serializes per pool and
    the history is guarded by its own lock.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        oracle: Optional[TWAPOracle] = None,
        metrics: Optional[EngineMetrics] = None,
        history_size: int = DEFAULT_HISTORY_SIZE,
    ):
        """
        Initialize the scanner.

        Args:
            config: Engine configuration; defaults to get_default_config()
            oracle: TWAP oracle to validate against; one is created from
                config.twap when omitted
            metrics: Optional metrics sink, shared with a created oracle
            history_size: Spot prices kept per pool for volatility
        """
        self.config = config if config is not None else get_default_config()
        self.metrics = metrics
        # an empty TWAPOracle is falsy
        self.oracle = (
            oracle if oracle is not None else TWAPOracle(self.config.twap, metrics)
        )
        self._history_size = history_size
        self._history: Dict[str, Deque[int]] = {}
        self._history_lock = threading.Lock()

    def price_history(self, pool: DEXPool) -> List[int]:
        """Recent spot prices recorded for pool, oldest first."""
        with self._history_lock:
            return list(self._history.get(pool_label(pool), ()))

    @timing_decorator
    def scan(
        self,
        pools: Sequence[DEXPool],
        amount_in: int,
        gas_price: int,
        now: int,
        start_token: Optional[str] = None,
    ) -> ScanResult:
        """
        Scan pools for the best actionable opportunity at time now.

        Args:
            pools: Pool snapshot
            amount_in: Trade size in the pair's token1 (capped by
                max_trade_amount when configured)
            gas_price: Gas price
            now: Unix timestamp of the snapshot; must not precede earlier scans
            start_token: When given, also evaluate triangular cycles through it

        Returns:
            ScanResult with the best two-pool opportunity and any cycles

        Raises:
            InvalidTimestamp: If now precedes the last observation of any
                pool; no oracle state or history is touched in that case
        """
        for pool in pools:
            self.oracle.check_time(pool_label(pool), now)

        arb_config = self.config.arbitrage
        if arb_config.max_trade_amount and amount_in > arb_config.max_trade_amount:
            amount_in = arb_config.max_trade_amount

        best, best_pools = self._best_pair(pools, amount_in, gas_price)

        paths: Tuple[ArbitragePath, ...] = ()
        if start_token is not None:
            paths = tuple(
                find_triangular_paths(
                    pools, start_token, amount_in, gas_price, arb_config.gas_limit
                )
            )
            if self.metrics:
                self.metrics.record_candidate("triangular", len(paths))
                for path in paths:
                    if path.is_profitable:
                        self.metrics.record_opportunity("triangular", path.efficiency_bps)

        if best is None:
            self._observe(pools, now)
            logger.debug(f"No candidate pool pairs among {len(pools)} pools")
            return ScanResult(
                timestamp=now,
                paths=paths,
                search_mode=arb_config.search_mode,
                rejections=(RejectionReason.NO_CANDIDATES,),
            )

        rejections: List[RejectionReason] = []
        if not best.is_profitable:
            rejections.append(RejectionReason.NOT_PROFITABLE)
        elif best.net_profit < arb_config.min_net_profit:
            rejections.append(RejectionReason.BELOW_MIN_PROFIT)

        for pool in best_pools:
            for reason in self._check_twap(pool, now):
                if reason not in rejections:
                    rejections.append(reason)

        buy_pool = best_pools[0] if best_pools[0].dex == best.buy_dex else best_pools[1]
        vol = volatility(self.price_history(buy_pool))
        liquidity = min(pool.reserve1 for pool in best_pools)

        risk_config = self.config.risk
        risk = risk_score(
            vol, liquidity, best.amount_in, risk_config.size_risk_threshold_bps
        )
        if risk > risk_config.max_risk_score:
            rejections.append(RejectionReason.RISK_TOO_HIGH)
        success = success_probability(
            risk_config.base_success_rate_bps,
            vol,
            liquidity,
            best.amount_in,
            risk_config.size_risk_threshold_bps,
        )

        fees = total_fee_breakdown(
            best.amount_in,
            self.config.fees,
            vol,
            self._liquidity_ratio(liquidity, best.amount_in),
            arb_config.gas_limit,
            gas_price,
        )
        flash_profit = 0
        if self.config.fees.flash_enabled:
            flash_profit = flash_arbitrage_profit(
                best.amount_in, self.config.fees.flash_fee_bps, best
            )

        self._observe(pools, now)

        result = ScanResult(
            timestamp=now,
            opportunity=best,
            paths=paths,
            fees=fees,
            volatility=vol,
            risk_score=risk,
            success_probability_bps=success,
            flash_profit=flash_profit,
            search_mode=arb_config.search_mode,
            rejections=tuple(rejections),
        )

        if result.actionable:
            if self.metrics:
                self.metrics.record_opportunity("pair", best.profit_bps)
            logger.info(f"Opportunity {result.format_log()}")
        else:
            logger.debug(result.format_log())
        return result

    def _best_pair(
        self, pools: Sequence[DEXPool], amount_in: int, gas_price: int
    ) -> Tuple[Optional[ArbitrageOpportunity], Tuple[DEXPool, ...]]:
        arb_config = self.config.arbitrage
        candidates = candidate_pairs(pools)
        if self.metrics:
            self.metrics.record_candidate("pair", len(candidates))

        best: Optional[ArbitrageOpportunity] = None
        best_pools: Tuple[DEXPool, ...] = ()
        for pool_a, pool_b in candidates:
            opportunity = simple_arbitrage(
                pool_a, pool_b, amount_in, gas_price, arb_config.gas_limit
            )
            if arb_config.refine_search:
                _, sized = optimal_amount(
                    pool_a,
                    pool_b,
                    amount_in,
                    gas_price,
                    arb_config.gas_limit,
                    steps=arb_config.search_steps,
                    refine=True,
                )
                if sized is not None and sized.net_profit > opportunity.net_profit:
                    opportunity = sized
            logger.debug(f"Candidate {opportunity.format_log()}")
            if best is None or opportunity.net_profit > best.net_profit:
                best, best_pools = opportunity, (pool_a, pool_b)
        return best, best_pools

    def _check_twap(self, pool: DEXPool, now: int) -> List[RejectionReason]:
        pair = pool_label(pool)
        if pair not in self.oracle:
            return []
        if self.oracle.is_stale(pair, now):
            logger.warning(f"TWAP for {pair} is stale at t={now}")
            return [RejectionReason.STALE_TWAP]
        if not self.oracle.validate(pair, pool.spot_price(), now):
            return [RejectionReason.TWAP_DEVIATION]
        return []

    def _observe(self, pools: Sequence[DEXPool], now: int) -> None:
        for pool in pools:
            spot = pool.spot_price()
            if spot == 0:
                continue
            pair = pool_label(pool)
            self.oracle.observe(pair, spot, now)
            with self._history_lock:
                history = self._history.get(pair)
                if history is None:
                    history = deque(maxlen=self._history_size)
                    self._history[pair] = history
                history.append(spot)

    def _liquidity_ratio(self, liquidity: int, trade_size: int) -> int:
        """
        Available liquidity over the liquidity that keeps trade_size under the
        size risk threshold, as WAD.
        """
        threshold_bps = self.config.risk.size_risk_threshold_bps
        required = mul_div(trade_size, BPS_DENOMINATOR, threshold_bps)
        if required == 0:
            return WAD
        return mul_div(liquidity, WAD, required)
