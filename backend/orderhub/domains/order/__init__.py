"""Order bounded context."""

from .application.event_handlers import OrderEventHandlers
from .domain.payments import PaymentGateway, PaymentResult, SimulatedPaymentGateway

__all__ = ["OrderEventHandlers", "PaymentGateway", "PaymentResult", "SimulatedPaymentGateway"]
