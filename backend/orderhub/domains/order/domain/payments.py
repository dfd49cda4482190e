"""Payment gateway port used by the order handlers."""
from __future__ import annotations

import random
import time
from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class PaymentResult:
    success: bool
    transaction_id: Optional[str] = None
    failure_reason: Optional[str] = None


class PaymentGateway(Protocol):
    async def attempt_payment(self, amount: float, method: Optional[str]) -> PaymentResult:
        ...


class SimulatedPaymentGateway:
    """Weighted coin flip standing in for a real processor."""

    def __init__(self, success_rate: float = 0.8, rng: Optional[random.Random] = None) -> None:
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be between 0 and 1")
        self.success_rate = success_rate
        self._rng = rng or random.Random()

    async def attempt_payment(self, amount: float, method: Optional[str]) -> PaymentResult:
        if self._rng.random() < self.success_rate:
            return PaymentResult(success=True, transaction_id=f"txn_{time.time_ns() // 1_000_000}")
        return PaymentResult(success=False, failure_reason="Insufficient funds")
