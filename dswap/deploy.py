"""
Composition root: wires one pair token, its AMM and its staking engine.

Mirrors a contract deployment: the supply is minted once, the deployer keeps
the dev allocation, the AMM custodies the rest as its token reserve, and the
native reserve starts at the (virtual) floor value.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .clock import Clock
from .config import DswapConfig
from .constants import (
    AMM_ADDRESS,
    CLAIM_COOLDOWN,
    DEFAULT_DEV_SUPPLY_PERCENT,
    DEFAULT_FLOOR_VALUE,
    DEFAULT_INITIAL_SUPPLY,
    FEE_BPS,
    FEE_DRAIN_COOLDOWN,
    REWARD_PERIOD,
    STAKING_ADDRESS,
)
from .exceptions import InvalidInputError
from .exchange import PricingEngine, ReservePair
from .logger import get_logger
from .staking import RewardEngine
from .tokens import FungibleToken, NativeLedger

logger = get_logger(__name__)


@dataclass
class Deployment:
    """Everything a deployment creates."""
    token: FungibleToken
    native: NativeLedger
    amm: PricingEngine
    staking: RewardEngine
    deployer: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "deployer": self.deployer,
            "token": self.token.to_dict(),
            "amm": self.amm.to_dict(),
            "staking": self.staking.to_dict(),
        }


def deploy_pair(
    deployer: str,
    name: str = "DSwap Token",
    symbol: str = "DSWP",
    *,
    initial_supply: int = DEFAULT_INITIAL_SUPPLY,
    dev_supply_percent: int = DEFAULT_DEV_SUPPLY_PERCENT,
    floor_value: int = DEFAULT_FLOOR_VALUE,
    icon_uri: Optional[str] = None,
    fee_bps: int = FEE_BPS,
    drain_cooldown: int = FEE_DRAIN_COOLDOWN,
    claim_cooldown: int = CLAIM_COOLDOWN,
    reward_period: int = REWARD_PERIOD,
    native: Optional[NativeLedger] = None,
    clock: Optional[Clock] = None,
) -> Deployment:
    """
    Deploy a pair token with its AMM and staking engine.

    Args:
        deployer: Account receiving the dev allocation
        initial_supply: Total tokens minted, smallest units
        dev_supply_percent: Share of the supply kept by the deployer (0-99)
        floor_value: Initial (virtual) native reserve, smallest units
        native: Existing native ledger to settle in (a fresh one otherwise)
        clock: Time source shared by both engines
    """
    if initial_supply <= 0:
        raise InvalidInputError("Initial supply must be positive")
    if not (0 <= dev_supply_percent < 100):
        raise InvalidInputError(f"Dev supply percent must be in [0, 100): {dev_supply_percent}")
    if floor_value <= 0:
        raise InvalidInputError("Floor value must be positive")

    dev_allocation = initial_supply * dev_supply_percent // 100
    native = native if native is not None else NativeLedger()

    token = FungibleToken(name, symbol, icon_uri=icon_uri, clock=clock)
    token.add_operator(AMM_ADDRESS)
    if dev_allocation > 0:
        token.mint(AMM_ADDRESS, deployer, dev_allocation)
    token.mint(AMM_ADDRESS, AMM_ADDRESS, initial_supply - dev_allocation)

    reserves = ReservePair.initial(initial_supply, dev_allocation, floor_value)
    staking = RewardEngine(
        token,
        token,
        native,
        claim_cooldown=claim_cooldown,
        reward_period=reward_period,
        address=STAKING_ADDRESS,
        clock=clock,
    )
    amm = PricingEngine(
        token,
        native,
        reserves,
        fee_bps=fee_bps,
        drain_cooldown=drain_cooldown,
        address=AMM_ADDRESS,
        clock=clock,
        reward_destination=staking,
    )

    logger.info(
        f"Deployed {symbol}: supply {initial_supply}, dev {dev_allocation} to {deployer}, "
        f"reserves {reserves.as_tuple()}"
    )
    return Deployment(token=token, native=native, amm=amm, staking=staking, deployer=deployer)


def deploy_from_config(
    config: DswapConfig,
    deployer: str,
    *,
    native: Optional[NativeLedger] = None,
    clock: Optional[Clock] = None,
) -> Deployment:
    """``deploy_pair`` with parameters taken from a loaded config."""
    units = config.amm.to_units()
    return deploy_pair(
        deployer,
        config.amm.token_name,
        config.amm.token_symbol,
        initial_supply=units["initial_supply"],
        dev_supply_percent=config.amm.dev_supply_percent,
        floor_value=units["floor_value"],
        icon_uri=config.amm.token_icon or None,
        fee_bps=config.amm.fee_bps,
        drain_cooldown=config.amm.drain_cooldown,
        claim_cooldown=config.staking.claim_cooldown,
        reward_period=config.staking.reward_period,
        native=native,
        clock=clock,
    )
