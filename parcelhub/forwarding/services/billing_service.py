"""
Billing Service for the forwarding engine.

Reconciles payments captured by the payment processor with shipments:
marks the shipment paid, ships its packages and issues the invoice.

Once the processor reports a captured payment the customer has been charged,
so failures after that point are never reported as hard errors. They are
logged, written to the audit log for an operator and surfaced as
``ReconciliationPendingException``.
"""

import logging
from decimal import Decimal
from typing import Dict, Any, Union
from django.db import IntegrityError, transaction
from django.utils import timezone

from ..adapters import payment_adapter as payments
from ..models import (
    Shipment, ShipmentStatus, PackageStatus, Invoice, InvoiceType,
    InvoicePaymentStatus, InvoiceLine, LineReferenceType, AuditLog
)
from ..exceptions import (
    BusinessException, AmountMismatchException, InvalidStateException,
    PaymentNotSucceededException, QuoteExpiredException,
    ReconciliationPendingException, ValidationException
)
from .history import apply_transition
from .shipment_service import ShipmentService
from .weights import quantize_money, to_minor_units
from .workflow import validate_shipment_workflow

logger = logging.getLogger(__name__)

PAYMENT_METHOD = 'card'


class BillingService:
    """Service class for payment reconciliation and invoicing."""

    @staticmethod
    def create_payment_intent(shipment_id: str, customer_id: str = None) -> payments.PaymentIntent:
        """
        Ask the payment processor for an intent covering a quoted shipment.

        Args:
            shipment_id: Shipment UUID
            customer_id: Restrict to this customer's shipments

        Returns:
            PaymentIntent for the shipment total in minor units

        Raises:
            NotFoundException: If the shipment does not exist
            InvalidStateException: If the shipment is not quoted
            QuoteExpiredException: If the quote has expired
        """
        shipment = ShipmentService.get_shipment(shipment_id, customer_id)
        BillingService._ensure_payable(shipment)

        intent = payments.get_payment_adapter().create_intent(
            amount_minor=to_minor_units(shipment.total_cost, shipment.cost_currency),
            currency=shipment.cost_currency,
            metadata={
                'shipment_id': str(shipment.id),
                'shipment_number': shipment.shipment_number,
                'customer_id': shipment.customer_id,
            },
        )

        with transaction.atomic():
            shipment = ShipmentService.get_shipment(shipment.id, lock=True)
            shipment.payment_intent_reference = intent.reference
            shipment.save(update_fields=['payment_intent_reference', 'updated_at'])

        logger.info(
            f"Payment intent {intent.reference} created for shipment {shipment.shipment_number} "
            f"({intent.amount_minor} {intent.currency})"
        )
        return intent

    @staticmethod
    def _ensure_payable(shipment: Shipment) -> None:
        if shipment.status != ShipmentStatus.QUOTED:
            raise InvalidStateException(
                f"Shipment {shipment.shipment_number} is not awaiting payment (status: {shipment.status})",
                {'shipment_id': str(shipment.id), 'status': shipment.status}
            )
        if shipment.is_quote_expired:
            raise QuoteExpiredException(shipment.shipment_number, shipment.quote_expires_at)

    @staticmethod
    def _verify_payment(shipment: Shipment, payment_reference: str) -> payments.PaymentIntent:
        intent = payments.get_payment_adapter().retrieve(payment_reference)
        if intent is None:
            raise PaymentNotSucceededException(
                payment_reference, 'not_found', f"Payment {payment_reference} not found"
            )
        if str(intent.metadata.get('shipment_id', '')) != str(shipment.id):
            raise PaymentNotSucceededException(
                payment_reference, intent.status,
                f"Payment {payment_reference} does not belong to shipment {shipment.shipment_number}"
            )
        if not intent.succeeded:
            raise PaymentNotSucceededException(payment_reference, intent.status)

        expected_minor = to_minor_units(shipment.total_cost, shipment.cost_currency)
        if intent.amount_minor != expected_minor or intent.currency.upper() != shipment.cost_currency.upper():
            raise AmountMismatchException(
                expected_minor, intent.amount_minor, shipment.cost_currency, intent.currency
            )
        return intent

    @staticmethod
    def _replay(invoice: Invoice, payment_reference: str) -> Dict[str, Any]:
        logger.warning(
            f"Payment {payment_reference} already processed as invoice {invoice.invoice_number}"
        )
        return {
            'shipment': Shipment.objects.get(id=invoice.shipment_id),
            'invoice': invoice,
            'already_processed': True,
        }

    @staticmethod
    def complete_payment(shipment_id: str, payment_reference: str, customer_id: str = None) -> Dict[str, Any]:
        """
        Reconcile a captured payment with its shipment.

        Repeating the call with the same reference returns the original
        invoice with ``already_processed`` set. Another captured payment for a
        shipment that is already paid returns the same invoice and is written
        to the audit log for an operator.

        Args:
            shipment_id: Shipment UUID
            payment_reference: Processor reference of the payment intent
            customer_id: Restrict to this customer's shipments

        Returns:
            Dict with ``shipment``, ``invoice`` and ``already_processed``

        Raises:
            ValidationException: If no payment reference was given
            NotFoundException: If the shipment does not exist
            PaymentNotSucceededException: If the processor does not report a
                completed payment for this shipment
            AmountMismatchException: If the captured amount differs from the total
            InvalidStateException: If the shipment is not quoted
            QuoteExpiredException: If the quote has expired
            ReconciliationPendingException: If the captured payment could not
                be recorded and was queued for an operator
        """
        if not payment_reference:
            raise ValidationException("payment_reference is required", {'payment_reference': 'required'})

        shipment = ShipmentService.get_shipment(shipment_id, customer_id)

        # Processor round-trip happens before any row is locked
        intent = BillingService._verify_payment(shipment, payment_reference)

        try:
            with transaction.atomic():
                return BillingService._record_payment(shipment.id, intent)
        except BusinessException:
            raise
        except IntegrityError:
            existing = (
                Invoice.objects.filter(payment_reference=payment_reference).first()
                or Invoice.objects.filter(shipment_id=shipment.id, invoice_type=InvoiceType.SHIPPING).first()
            )
            if existing is not None:
                return BillingService._replay(existing, payment_reference)
            BillingService._queue_for_reconciliation(shipment, payment_reference)
        except Exception:
            BillingService._queue_for_reconciliation(shipment, payment_reference)

    @staticmethod
    def _record_payment(shipment_id, intent: payments.PaymentIntent) -> Dict[str, Any]:
        payment_reference = intent.reference
        shipment = ShipmentService.get_shipment(shipment_id, lock=True)

        existing = Invoice.objects.filter(payment_reference=payment_reference).first()
        if existing is not None:
            if existing.shipment_id != shipment.id:
                raise InvalidStateException(
                    f"Payment {payment_reference} was already applied to another shipment",
                    {'payment_reference': payment_reference}
                )
            return BillingService._replay(existing, payment_reference)

        if shipment.status != ShipmentStatus.QUOTED:
            invoice = Invoice.objects.filter(shipment=shipment, invoice_type=InvoiceType.SHIPPING).first()
            if invoice is not None:
                # A second captured intent for a shipment that was already paid
                logger.error(
                    f"Payment {payment_reference} captured for shipment {shipment.shipment_number} "
                    f"already paid by {invoice.payment_reference}; manual reconciliation required"
                )
                AuditLog.log_change(
                    entity=shipment,
                    action='manual_reconciliation_required',
                    actor='system',
                    new_values={
                        'payment_reference': payment_reference,
                        'invoice_number': invoice.invoice_number,
                    },
                    notes="Additional payment captured for an already paid shipment",
                )
                return BillingService._replay(invoice, payment_reference)

        BillingService._ensure_payable(shipment)
        validate_shipment_workflow(shipment, ShipmentStatus.PAID)

        # The total may have been re-quoted since verification
        expected_minor = to_minor_units(shipment.total_cost, shipment.cost_currency)
        if intent.amount_minor != expected_minor:
            raise AmountMismatchException(
                expected_minor, intent.amount_minor, shipment.cost_currency, intent.currency
            )

        now = timezone.now()
        apply_transition(
            shipment, ShipmentStatus.PAID, shipment.customer_id,
            f"Payment {payment_reference} received",
            paid_at=now,
            payment_intent_reference=payment_reference,
        )
        packages = ShipmentService.move_linked_packages(
            shipment, PackageStatus.SHIPPED, shipment.customer_id,
            f"Shipment {shipment.shipment_number} paid"
        )
        invoice = BillingService._issue_invoice(shipment, payment_reference, len(packages), now)

        logger.info(
            f"Payment {payment_reference} reconciled: shipment {shipment.shipment_number} paid, "
            f"invoice {invoice.invoice_number} issued for {invoice.total} {invoice.currency}"
        )
        return {'shipment': shipment, 'invoice': invoice, 'already_processed': False}

    @staticmethod
    def _issue_invoice(shipment: Shipment, payment_reference: str, package_count: int, paid_at) -> Invoice:
        currency = shipment.cost_currency
        invoice = Invoice.objects.create(
            invoice_type=InvoiceType.SHIPPING,
            customer_id=shipment.customer_id,
            shipment=shipment,
            subtotal=shipment.total_cost,
            total=shipment.total_cost,
            currency=currency,
            payment_status=InvoicePaymentStatus.PAID,
            payment_method=PAYMENT_METHOD,
            payment_reference=payment_reference,
            issued_at=paid_at,
            paid_at=paid_at,
            notes=f"Payment {payment_reference} for shipment {shipment.shipment_number}",
        )

        lines = []
        for description, amount in [
            ('Shipping Cost', shipment.shipping_cost),
            ('Insurance', shipment.insurance_cost),
            ('Handling Fee', shipment.handling_fee),
        ]:
            if amount > 0:
                lines.append(dict(
                    description=description,
                    quantity=1,
                    unit_price=amount,
                    line_total=amount,
                    reference_type=LineReferenceType.SHIPMENT,
                ))

        if shipment.storage_fee > 0:
            count = max(package_count, 1)
            lines.append(dict(
                description=f"Storage Fee ({count} package{'s' if count > 1 else ''})",
                quantity=count,
                unit_price=quantize_money(shipment.storage_fee / Decimal(count), currency),
                line_total=shipment.storage_fee,
                reference_type=LineReferenceType.STORAGE,
            ))

        for line_number, line in enumerate(lines, 1):
            InvoiceLine.objects.create(
                invoice=invoice,
                line_number=line_number,
                reference_id=str(shipment.id),
                **line
            )
        return invoice

    @staticmethod
    def _queue_for_reconciliation(shipment: Shipment, payment_reference: str) -> None:
        logger.exception(
            f"Payment {payment_reference} captured for shipment {shipment.shipment_number} "
            f"but could not be recorded; manual reconciliation required"
        )
        AuditLog.log_change(
            entity=shipment,
            action='manual_reconciliation_required',
            actor='system',
            new_values={'payment_reference': payment_reference},
            notes="Captured payment could not be reconciled automatically",
        )
        raise ReconciliationPendingException(shipment.id, payment_reference)

    @staticmethod
    def handle_webhook(payload: Union[bytes, str], signature: str) -> Dict[str, Any]:
        """
        Process a signed notification from the payment processor.

        Successful payment events are reconciled without customer scoping;
        other events are acknowledged and ignored.

        Returns:
            Dict with ``event_type``, ``handled`` and, when handled,
            ``already_processed`` and ``invoice_id``

        Raises:
            ValidationException: If the signature or payload is invalid
        """
        event = payments.get_payment_adapter().verify_webhook(payload, signature)
        event_type = event.get('type')

        if event_type != payments.EVENT_PAYMENT_SUCCEEDED:
            logger.info(f"Ignoring payment webhook event {event_type}")
            return {'event_type': event_type, 'handled': False}

        payment = (event.get('data') or {}).get('object') or {}
        payment_reference = payment.get('id')
        shipment_id = (payment.get('metadata') or {}).get('shipment_id')
        if not payment_reference or not shipment_id:
            raise ValidationException(
                "Payment event does not identify a payment and shipment",
                {'payment_reference': payment_reference, 'shipment_id': shipment_id}
            )

        result = BillingService.complete_payment(shipment_id, payment_reference)
        return {
            'event_type': event_type,
            'handled': True,
            'already_processed': result['already_processed'],
            'invoice_id': str(result['invoice'].id),
        }
