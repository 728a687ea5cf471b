"""
Cross-pool arbitrage detection, sizing and scoring.

Pools are read-only constant-product snapshots supplied by the caller. A
two-pool trade starts in token1, buys token0 on the pool where token0 is
cheaper and sells it back on the other. Multi-hop cycles chain amount_out
around pools that share tokens and must return to the starting token.

Profit figures are unsigned: a losing trade reports zero profit rather than a
negative one, and is_profitable is net_profit > 0.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import networkx as nx

from .constants import (
    BPS_DENOMINATOR,
    DEFAULT_SEARCH_STEPS,
    FLASH_ARBITRAGE_PREMIUM_BPS,
    MAX_SCORE,
    SIZE_RISK_PENALTY,
    SIZE_RISK_THRESHOLD_BPS,
    WAD,
)
from .exceptions import ValidationError
from .fees import flash_fee
from .fixed_point import check_uint256, mul, mul_div
from .price_math import price_impact_bps, spot_price
from .utils import get_logger

logger = get_logger(__name__)

VOLATILITY_RISK_CAP = 5_000
DEPTH_RISK_CAP = 3_000


# ============================================================================
# Value objects
# ============================================================================


@dataclass(frozen=True)
class DEXPool:
    """
    Read-only constant-product pool snapshot.

    Attributes:
        dex: Name of the DEX (e.g., "uniswap", "sushi")
        token0: Identifier of token0
        token1: Identifier of token1
        reserve0: Reserve of token0 in raw units
        reserve1: Reserve of token1 in raw units
        fee_bps: Swap fee in basis points (e.g., 30 for 0.30%)
    """

    dex: str
    token0: str
    token1: str
    reserve0: int
    reserve1: int
    fee_bps: int = 30

    def __post_init__(self):
        if self.token0 == self.token1:
            raise ValidationError(f"Pool {self.dex} pairs {self.token0} with itself")
        check_uint256(self.reserve0, "reserve0")
        check_uint256(self.reserve1, "reserve1")
        if not 0 <= self.fee_bps < BPS_DENOMINATOR:
            raise ValidationError(
                f"fee_bps must be within [0, {BPS_DENOMINATOR}), got {self.fee_bps}"
            )

    @property
    def pair_key(self) -> Tuple[str, str]:
        return self.token0, self.token1

    @property
    def pair_name(self) -> str:
        return f"{self.token0}/{self.token1}"

    def has_token(self, token: str) -> bool:
        return token == self.token0 or token == self.token1

    def other_token(self, token: str) -> str:
        if token == self.token0:
            return self.token1
        if token == self.token1:
            return self.token0
        raise ValidationError(f"Token {token} is not in pool {self.pair_name}")

    def reserves_for(self, token_in: str) -> Tuple[int, int]:
        """(reserve_in, reserve_out) for a swap starting from token_in."""
        if token_in == self.token0:
            return self.reserve0, self.reserve1
        if token_in == self.token1:
            return self.reserve1, self.reserve0
        raise ValidationError(f"Token {token_in} is not in pool {self.pair_name}")

    def spot_price(self) -> int:
        """WAD price of token0 in token1; 0 for an empty pool."""
        return spot_price(self.reserve0, self.reserve1)

    def flipped(self) -> "DEXPool":
        """Same pool with token order swapped."""
        return DEXPool(
            dex=self.dex,
            token0=self.token1,
            token1=self.token0,
            reserve0=self.reserve1,
            reserve1=self.reserve0,
            fee_bps=self.fee_bps,
        )


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """
    Result of a two-pool arbitrage evaluation.

    token_in is what the trade starts and ends in; token_out is the
    intermediate token bought on buy_dex and sold on sell_dex.
    """

    token_in: str
    token_out: str
    amount_in: int
    expected_profit: int
    net_profit: int
    gas_cost: int
    price_impact_bps: int
    is_profitable: bool
    buy_dex: str = ""
    sell_dex: str = ""
    amount_out: int = 0

    @property
    def profit_bps(self) -> int:
        if self.amount_in == 0:
            return 0
        return self.net_profit * BPS_DENOMINATOR // self.amount_in

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount_in": self.amount_in,
            "amount_out": self.amount_out,
            "expected_profit": self.expected_profit,
            "net_profit": self.net_profit,
            "gas_cost": self.gas_cost,
            "price_impact_bps": self.price_impact_bps,
            "is_profitable": self.is_profitable,
            "buy_dex": self.buy_dex,
            "sell_dex": self.sell_dex,
        }

    def format_log(self) -> str:
        """Format for consistent logging."""
        return (
            f"{self.token_in} -> {self.token_out} -> {self.token_in} "
            f"buy@{self.buy_dex} sell@{self.sell_dex}: "
            f"Net {self.net_profit} (Gross {self.expected_profit} - Gas {self.gas_cost}) "
            f"impact {self.price_impact_bps} bps @ {self.amount_in}"
        )


@dataclass(frozen=True)
class ArbitragePath:
    """
    Multi-hop cycle with per-hop amounts.

    amounts[0] is the input, amounts[i + 1] is the output of pools[i].
    efficiency_bps is net profit per unit of input in basis points.
    """

    pools: Tuple[DEXPool, ...]
    tokens: Tuple[str, ...]
    amounts: Tuple[int, ...]
    expected_profit: int
    net_profit: int
    gas_cost: int
    efficiency_bps: int
    is_profitable: bool = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "is_profitable", self.net_profit > 0)

    @property
    def amount_in(self) -> int:
        return self.amounts[0]

    @property
    def amount_out(self) -> int:
        return self.amounts[-1]

    @property
    def hop_count(self) -> int:
        return len(self.pools)

    @property
    def cycle(self) -> str:
        return " -> ".join(self.tokens)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "cycle": self.cycle,
            "dexes": [pool.dex for pool in self.pools],
            "amounts": list(self.amounts),
            "expected_profit": self.expected_profit,
            "net_profit": self.net_profit,
            "gas_cost": self.gas_cost,
            "efficiency_bps": self.efficiency_bps,
            "is_profitable": self.is_profitable,
        }

    def format_log(self) -> str:
        """Format for consistent logging."""
        return (
            f"{self.cycle} via {'/'.join(pool.dex for pool in self.pools)}: "
            f"Net {self.net_profit} (Gross {self.expected_profit} - Gas {self.gas_cost}) "
            f"= {self.efficiency_bps} bps"
        )


# ============================================================================
# Swap math
# ============================================================================


def amount_out(amount_in: int, reserve_in: int, reserve_out: int, fee_bps: int) -> int:
    """
    Constant-product output for an exact input.

    amount_in * (10000 - fee) * reserve_out / (reserve_in * 10000 + amount_in * (10000 - fee))

    Returns 0 if any of amount_in, reserve_in or reserve_out is zero.
    """
    if not 0 <= fee_bps < BPS_DENOMINATOR:
        raise ValidationError(
            f"fee_bps must be within [0, {BPS_DENOMINATOR}), got {fee_bps}"
        )
    check_uint256(amount_in, "amount_out")
    check_uint256(reserve_in, "amount_out")
    check_uint256(reserve_out, "amount_out")
    if amount_in == 0 or reserve_in == 0 or reserve_out == 0:
        return 0

    amount_in_with_fee = mul(amount_in, BPS_DENOMINATOR - fee_bps)
    denominator = mul(reserve_in, BPS_DENOMINATOR) + amount_in_with_fee
    return mul_div(amount_in_with_fee, reserve_out, denominator)


def _net_of_gas(expected_profit: int, gas_cost: int) -> int:
    return expected_profit - gas_cost if expected_profit > gas_cost else 0


def _align(pool_a: DEXPool, pool_b: DEXPool) -> DEXPool:
    """Return pool_b in pool_a's token order."""
    if pool_b.pair_key == pool_a.pair_key:
        return pool_b
    if pool_b.pair_key == (pool_a.token1, pool_a.token0):
        return pool_b.flipped()
    raise ValidationError(
        f"Pools {pool_a.pair_name} and {pool_b.pair_name} do not share a pair",
        {"pool_a": pool_a.dex, "pool_b": pool_b.dex},
    )


def _order_by_price(pool_a: DEXPool, pool_b: DEXPool) -> Optional[Tuple[DEXPool, DEXPool]]:
    """(buy, sell) pools, or None when there is no price gap to trade."""
    price_a = pool_a.spot_price()
    price_b = pool_b.spot_price()
    if price_a == 0 or price_b == 0 or price_a == price_b:
        return None
    return (pool_a, pool_b) if price_a < price_b else (pool_b, pool_a)


def _round_trip(buy: DEXPool, sell: DEXPool, amount_in: int) -> Tuple[int, int]:
    """(token0 bought, token1 returned) for a token1 -> token0 -> token1 trade."""
    bought = amount_out(amount_in, buy.reserve1, buy.reserve0, buy.fee_bps)
    proceeds = amount_out(bought, sell.reserve0, sell.reserve1, sell.fee_bps)
    return bought, proceeds


# ============================================================================
# Two-pool arbitrage
# ============================================================================


def simple_arbitrage(
    pool_a: DEXPool,
    pool_b: DEXPool,
    amount_in: int,
    gas_price: int,
    gas_limit: int,
) -> ArbitrageOpportunity:
    """
    Evaluate buying token0 on the cheaper pool and selling on the dearer one.

    Args:
        pool_a: First pool
        pool_b: Second pool over the same pair (either token order)
        amount_in: token1 amount to start with
        gas_price: Gas price
        gas_limit: Gas units for the whole trade

    Returns:
        ArbitrageOpportunity; pools at the same price yield zero profit
    """
    pool_b = _align(pool_a, pool_b)
    gas_cost = mul(gas_price, gas_limit)

    ordered = _order_by_price(pool_a, pool_b)
    if ordered is None:
        return ArbitrageOpportunity(
            token_in=pool_a.token1,
            token_out=pool_a.token0,
            amount_in=amount_in,
            expected_profit=0,
            net_profit=0,
            gas_cost=gas_cost,
            price_impact_bps=price_impact_bps(
                amount_in, pool_a.reserve1, pool_a.reserve0
            ),
            is_profitable=False,
            buy_dex=pool_a.dex,
            sell_dex=pool_b.dex,
            amount_out=0,
        )

    buy, sell = ordered
    bought, proceeds = _round_trip(buy, sell, amount_in)
    expected_profit = proceeds - amount_in if proceeds > amount_in else 0
    net_profit = _net_of_gas(expected_profit, gas_cost)

    impact = max(
        price_impact_bps(amount_in, buy.reserve1, buy.reserve0),
        price_impact_bps(bought, sell.reserve0, sell.reserve1),
    )

    return ArbitrageOpportunity(
        token_in=pool_a.token1,
        token_out=pool_a.token0,
        amount_in=amount_in,
        expected_profit=expected_profit,
        net_profit=net_profit,
        gas_cost=gas_cost,
        price_impact_bps=impact,
        is_profitable=net_profit > 0,
        buy_dex=buy.dex,
        sell_dex=sell.dex,
        amount_out=proceeds,
    )


def find_best_path(
    pools: Sequence[DEXPool],
    amount_in: int,
    gas_price: int,
    gas_limit: int,
) -> Optional[ArbitrageOpportunity]:
    """
    Highest net-profit two-pool opportunity across all pools with the same
    token ordering.

    O(n^2) in the number of pools. Returns None when no two pools share an
    ordering.
    """
    best: Optional[ArbitrageOpportunity] = None
    candidates = candidate_pairs(pools)
    for pool_a, pool_b in candidates:
        opportunity = simple_arbitrage(pool_a, pool_b, amount_in, gas_price, gas_limit)
        logger.debug(f"Candidate {opportunity.format_log()}")
        if best is None or opportunity.net_profit > best.net_profit:
            best = opportunity

    logger.debug(f"Evaluated {len(candidates)} pool pairs across {len(pools)} pools")
    return best


def candidate_pairs(pools: Sequence[DEXPool]) -> List[Tuple[DEXPool, DEXPool]]:
    """Every (i < j) pool pair with the same token ordering."""
    return [
        (pools[i], pools[j])
        for i in range(len(pools))
        for j in range(i + 1, len(pools))
        if pools[i].pair_key == pools[j].pair_key
    ]


def optimal_amount(
    pool_a: DEXPool,
    pool_b: DEXPool,
    max_amount: int,
    gas_price: int,
    gas_limit: int,
    steps: int = DEFAULT_SEARCH_STEPS,
    refine: bool = False,
) -> Tuple[int, Optional[ArbitrageOpportunity]]:
    """
    Grid search for the trade size with the highest net profit.

    Evaluates max_amount / steps, 2 * max_amount / steps, ... max_amount. This
    is coarse; with refine=True the best grid cell's neighbourhood is searched
    again with refine_optimal_amount.

    Returns:
        (best amount, its opportunity); (0, None) when the step rounds to zero
    """
    if steps <= 0:
        raise ValidationError(f"steps must be positive, got {steps}")
    step = max_amount // steps
    if step == 0:
        return 0, None

    best_amount = 0
    best: Optional[ArbitrageOpportunity] = None
    for k in range(1, steps + 1):
        candidate = step * k
        opportunity = simple_arbitrage(pool_a, pool_b, candidate, gas_price, gas_limit)
        if best is None or opportunity.net_profit > best.net_profit:
            best_amount, best = candidate, opportunity

    if refine:
        low = best_amount - step if best_amount > step else 0
        high = min(best_amount + step, max_amount)
        refined_amount, refined = refine_optimal_amount(
            pool_a, pool_b, low, high, gas_price, gas_limit
        )
        if refined.net_profit > best.net_profit:
            best_amount, best = refined_amount, refined

    return best_amount, best


def refine_optimal_amount(
    pool_a: DEXPool,
    pool_b: DEXPool,
    low: int,
    high: int,
    gas_price: int,
    gas_limit: int,
) -> Tuple[int, ArbitrageOpportunity]:
    """
    Ternary search for the input maximizing round-trip profit in [low, high].

    Round-trip output minus input is concave in the input for two
    constant-product pools, so the search converges on the optimum up to
    integer rounding. Gas is a constant and does not move the optimum.
    """
    if low > high:
        raise ValidationError(f"Empty search range [{low}, {high}]")
    pool_b = _align(pool_a, pool_b)
    ordered = _order_by_price(pool_a, pool_b)
    if ordered is None:
        return low, simple_arbitrage(pool_a, pool_b, low, gas_price, gas_limit)
    buy, sell = ordered

    def profit(amount: int) -> int:
        return _round_trip(buy, sell, amount)[1] - amount

    while high - low > 2:
        third = (high - low) // 3
        m1 = low + third
        m2 = high - third
        if profit(m1) < profit(m2):
            low = m1
        else:
            high = m2

    best_amount = max(range(low, high + 1), key=profit)
    return best_amount, simple_arbitrage(
        pool_a, pool_b, best_amount, gas_price, gas_limit
    )


# ============================================================================
# Multi-hop arbitrage
# ============================================================================


def path_gas_cost(hops: int, gas_price: int, gas_limit: int) -> int:
    """Gas for an n-hop cycle: gas_price * gas_limit scaled by hops / 2."""
    return mul(mul(gas_price, gas_limit), hops) // 2


def evaluate_path(
    pools: Sequence[DEXPool],
    token_in: str,
    amount_in: int,
    gas_price: int,
    gas_limit: int,
) -> ArbitragePath:
    """
    Chain amount_out through pools starting and ending in token_in.

    Raises:
        ValidationError: If the path has fewer than two hops, a pool does not
            hold the current token, or the path does not close the cycle
    """
    if len(pools) < 2:
        raise ValidationError(f"A cycle needs at least two pools, got {len(pools)}")

    tokens = [token_in]
    amounts = [amount_in]
    for pool in pools:
        reserve_in, reserve_out = pool.reserves_for(tokens[-1])
        amounts.append(amount_out(amounts[-1], reserve_in, reserve_out, pool.fee_bps))
        tokens.append(pool.other_token(tokens[-1]))

    if tokens[-1] != token_in:
        raise ValidationError(
            f"Path {' -> '.join(tokens)} does not return to {token_in}"
        )

    final = amounts[-1]
    expected_profit = final - amount_in if final > amount_in else 0
    gas_cost = path_gas_cost(len(pools), gas_price, gas_limit)
    net_profit = _net_of_gas(expected_profit, gas_cost)
    efficiency = net_profit * BPS_DENOMINATOR // amount_in if amount_in else 0

    return ArbitragePath(
        pools=tuple(pools),
        tokens=tuple(tokens),
        amounts=tuple(amounts),
        expected_profit=expected_profit,
        net_profit=net_profit,
        gas_cost=gas_cost,
        efficiency_bps=efficiency,
    )


def triangular_arbitrage(
    pool_ab: DEXPool,
    pool_bc: DEXPool,
    pool_ca: DEXPool,
    amount_in: int,
    gas_price: int,
    gas_limit: int,
) -> ArbitragePath:
    """
    Evaluate the A -> B -> C -> A cycle; gas is scaled 1.5x for the extra hop.

    A is the token pool_ab shares with pool_ca.
    """
    shared = [t for t in (pool_ab.token0, pool_ab.token1) if pool_ca.has_token(t)]
    if not shared:
        raise ValidationError(
            f"Pools {pool_ab.pair_name} and {pool_ca.pair_name} share no token"
        )
    start = shared[0]
    if len(shared) > 1 and pool_bc.has_token(start):
        start = shared[1]
    return evaluate_path(
        (pool_ab, pool_bc, pool_ca), start, amount_in, gas_price, gas_limit
    )


def find_triangular_paths(
    pools: Sequence[DEXPool],
    start_token: str,
    amount_in: int,
    gas_price: int,
    gas_limit: int,
    profitable_only: bool = False,
) -> List[ArbitragePath]:
    """
    Every three-pool cycle through start_token, best net profit first.

    Pools are edges of a token multigraph; both directions of each triangle
    are evaluated since they are different trades.
    """
    graph = nx.MultiGraph()
    for index, pool in enumerate(pools):
        graph.add_edge(pool.token0, pool.token1, key=index, pool=pool)

    if start_token not in graph:
        return []

    paths: List[ArbitragePath] = []
    for token_b in graph.neighbors(start_token):
        for token_c in graph.neighbors(token_b):
            if token_c == start_token or not graph.has_edge(token_c, start_token):
                continue
            for ab in graph.get_edge_data(start_token, token_b).values():
                for bc in graph.get_edge_data(token_b, token_c).values():
                    for ca in graph.get_edge_data(token_c, start_token).values():
                        path = evaluate_path(
                            (ab["pool"], bc["pool"], ca["pool"]),
                            start_token,
                            amount_in,
                            gas_price,
                            gas_limit,
                        )
                        if profitable_only and not path.is_profitable:
                            continue
                        paths.append(path)

    paths.sort(key=lambda p: p.net_profit, reverse=True)
    logger.debug(f"Found {len(paths)} triangular paths through {start_token}")
    return paths


# ============================================================================
# Risk scoring
# ============================================================================


def risk_score(
    volatility: int,
    liquidity: int,
    trade_size: int,
    size_threshold_bps: int = SIZE_RISK_THRESHOLD_BPS,
) -> int:
    """
    Execution risk in [0, 10000].

    Sums a volatility component (WAD volatility, up to 5000), a depth
    component (trade size over liquidity in bps, up to 3000) and a flat
    2000 penalty when the trade exceeds size_threshold_bps of liquidity (10%
    by default). Zero liquidity is maximal risk.
    """
    check_uint256(volatility, "risk_score")
    check_uint256(trade_size, "risk_score")
    if liquidity == 0:
        return MAX_SCORE

    volatility_risk = min(mul_div(volatility, VOLATILITY_RISK_CAP, WAD), VOLATILITY_RISK_CAP)
    depth_risk = min(mul_div(trade_size, MAX_SCORE, liquidity), DEPTH_RISK_CAP)
    size_risk = 0
    if trade_size * BPS_DENOMINATOR > liquidity * size_threshold_bps:
        size_risk = SIZE_RISK_PENALTY

    return min(volatility_risk + depth_risk + size_risk, MAX_SCORE)


def success_probability(
    base_rate_bps: int,
    volatility: int,
    liquidity: int,
    trade_size: int,
    size_threshold_bps: int = SIZE_RISK_THRESHOLD_BPS,
) -> int:
    """Historical base rate minus half the risk score, floored at 0."""
    base = min(base_rate_bps, MAX_SCORE)
    risk = risk_score(volatility, liquidity, trade_size, size_threshold_bps)
    penalty = risk // 2
    return base - penalty if base > penalty else 0


def flash_arbitrage_profit(
    loan_amount: int, flash_fee_bps: int, opportunity: ArbitrageOpportunity
) -> int:
    """
    Profit left after the flash-loan fee (base + 5 bps premium) and gas.

    Accepts anything exposing expected_profit and gas_cost, so ArbitragePath
    works too.
    """
    loan_fee = flash_fee(loan_amount, flash_fee_bps, FLASH_ARBITRAGE_PREMIUM_BPS)
    costs = loan_fee + opportunity.gas_cost
    return _net_of_gas(opportunity.expected_profit, costs)
