"""
Facilitator components
"""

from x402_exact.facilitator.cashback import (
    CashbackEngine,
    CashbackPolicy,
    PercentageCashbackPolicy,
    StaticCashbackPolicy,
)
from x402_exact.facilitator.facilitator_client import FacilitatorClient
from x402_exact.facilitator.replay import (
    InMemoryReplayLedger,
    RedisReplayLedger,
    ReplayKey,
    ReplayLedger,
)
from x402_exact.facilitator.x402_facilitator import X402Facilitator

__all__ = [
    "CashbackEngine",
    "CashbackPolicy",
    "FacilitatorClient",
    "InMemoryReplayLedger",
    "PercentageCashbackPolicy",
    "RedisReplayLedger",
    "ReplayKey",
    "ReplayLedger",
    "StaticCashbackPolicy",
    "X402Facilitator",
]
