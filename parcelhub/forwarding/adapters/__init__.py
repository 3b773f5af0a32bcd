"""
External collaborators of the forwarding engine.
"""

from .payment_adapter import (
    PaymentIntent, PaymentAdapterInterface, MockPaymentAdapter,
    get_payment_adapter, switch_to_mock_adapter, switch_to_real_adapter,
)

__all__ = [
    'PaymentIntent', 'PaymentAdapterInterface', 'MockPaymentAdapter',
    'get_payment_adapter', 'switch_to_mock_adapter', 'switch_to_real_adapter',
]
