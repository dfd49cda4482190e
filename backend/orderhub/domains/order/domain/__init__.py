"""Order domain ports."""

from .payments import PaymentGateway, PaymentResult, SimulatedPaymentGateway

__all__ = ["PaymentGateway", "PaymentResult", "SimulatedPaymentGateway"]
