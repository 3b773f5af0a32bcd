"""
Payment Adapter for the forwarding engine.

Provides interface to the payment processor with deterministic mock implementation.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Union

from ..conf import forwarding_setting
from ..exceptions import ValidationException

PAYMENT_SUCCEEDED = 'succeeded'
EVENT_PAYMENT_SUCCEEDED = 'payment.succeeded'


@dataclass
class PaymentIntent:
    """Processor-side record of a payment attempt."""
    reference: str
    amount_minor: int
    currency: str
    status: str
    metadata: Dict[str, str] = field(default_factory=dict)
    client_secret: str = ''

    @property
    def succeeded(self) -> bool:
        return self.status == PAYMENT_SUCCEEDED


class PaymentAdapterInterface(ABC):
    """
    Interface for payment processor integration.

    This abstract base class defines the contract for payment operations
    that the billing service needs.
    """

    @abstractmethod
    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        """
        Create a payment intent the customer can pay against.

        Args:
            amount_minor: Amount in the currency's minor unit
            currency: ISO currency code
            metadata: Must carry ``shipment_id``

        Returns:
            PaymentIntent
        """
        pass

    @abstractmethod
    def retrieve(self, reference: str) -> Optional[PaymentIntent]:
        """
        Fetch the current state of a payment intent.

        Returns:
            PaymentIntent, or None if the processor does not know the reference
        """
        pass

    @abstractmethod
    def verify_webhook(self, payload: Union[bytes, str], signature: str) -> Dict[str, Any]:
        """
        Check a webhook signature and decode the event.

        Returns:
            Event dict with ``type`` and ``data``

        Raises:
            ValidationException: If the signature or payload is invalid
        """
        pass


class MockPaymentAdapter(PaymentAdapterInterface):
    """
    Deterministic mock implementation for testing and development.

    Intents are kept in memory; tests move them to ``succeeded`` with
    ``confirm`` or register arbitrary intents with ``register_intent``.
    """

    def __init__(self):
        self.intents = {}  # reference -> PaymentIntent
        self._counter = 0

    def create_intent(self, amount_minor: int, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        self._counter += 1
        reference = f"pi_mock_{self._counter:06d}"
        intent = PaymentIntent(
            reference=reference,
            amount_minor=int(amount_minor),
            currency=currency.upper(),
            status='requires_payment_method',
            metadata={key: str(value) for key, value in metadata.items()},
            client_secret=f"{reference}_secret",
        )
        self.intents[reference] = intent
        return intent

    def retrieve(self, reference: str) -> Optional[PaymentIntent]:
        return self.intents.get(reference)

    def verify_webhook(self, payload: Union[bytes, str], signature: str) -> Dict[str, Any]:
        secret = forwarding_setting('PAYMENT_WEBHOOK_SECRET')
        if not secret or signature != secret:
            raise ValidationException("Invalid webhook signature", {'signature': 'invalid'})

        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')
        try:
            event = json.loads(payload)
        except ValueError:
            raise ValidationException("Webhook payload is not valid JSON", {'payload': 'invalid'})

        if not isinstance(event, dict) or 'type' not in event:
            raise ValidationException("Webhook payload has no event type", {'payload': 'invalid'})
        return event

    def confirm(self, reference: str) -> PaymentIntent:
        """Mark an intent as paid, as if the customer completed checkout."""
        intent = self.intents[reference]
        intent.status = PAYMENT_SUCCEEDED
        return intent

    def register_intent(self, reference: str, amount_minor: int, currency: str,
                        status: str = PAYMENT_SUCCEEDED, metadata: Dict[str, str] = None) -> PaymentIntent:
        intent = PaymentIntent(
            reference=reference,
            amount_minor=int(amount_minor),
            currency=currency.upper(),
            status=status,
            metadata=metadata or {},
        )
        self.intents[reference] = intent
        return intent


# Global adapter instance - in production, this would be configured differently
payment_adapter = MockPaymentAdapter()


def get_payment_adapter() -> PaymentAdapterInterface:
    """
    Factory function to get the current payment adapter.

    In production, this returns the processor client installed with
    ``switch_to_real_adapter``.
    """
    return payment_adapter


def switch_to_mock_adapter() -> MockPaymentAdapter:
    """Switch to a fresh mock adapter for testing."""
    global payment_adapter
    payment_adapter = MockPaymentAdapter()
    return payment_adapter


def switch_to_real_adapter(real_adapter: PaymentAdapterInterface):
    """
    Switch to real payment processor implementation.

    Args:
        real_adapter: Real implementation of PaymentAdapterInterface
    """
    global payment_adapter
    payment_adapter = real_adapter
