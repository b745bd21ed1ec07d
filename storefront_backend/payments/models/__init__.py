from .payment import Payment
from .payment_event import PaymentEvent

__all__ = ["Payment", "PaymentEvent"]
