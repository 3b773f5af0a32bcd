"""
Shipment views for the forwarding engine.
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action

from ..models import Shipment
from ..services import ShipmentService, BillingService
from ..exceptions import BusinessException, ValidationException
from ..serializers.shipment_serializers import (
    ShipmentListSerializer, ShipmentDetailSerializer, ShipmentStatusHistorySerializer,
    ShipmentCreateSerializer, QuoteRequestSerializer, ShipmentCancelSerializer,
    ShipmentRefundSerializer, ShipmentStatusUpdateSerializer
)
from ..serializers.billing_serializers import (
    InvoiceSerializer, CompletePaymentSerializer, PaymentIntentSerializer
)
from ..permissions import IsWarehouseStaff, IsOwnerOrWarehouseStaff, customer_scope, actor_name
from .responses import success_response, error_response

STAFF_ACTIONS = ['update_status', 'refund']


class ShipmentViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for shipments.

    Customers request, quote, pay and cancel their own shipments; warehouse
    staff drive processing and delivery and record refunds.
    """

    filterset_fields = ['status', 'service_type', 'warehouse_id', 'customer_id']

    def get_queryset(self):
        queryset = Shipment.objects.all()
        customer_id = customer_scope(self.request)
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        return queryset

    def get_permissions(self):
        if self.action in STAFF_ACTIONS:
            return [IsWarehouseStaff()]
        return [IsOwnerOrWarehouseStaff()]

    def get_serializer_class(self):
        """Return appropriate serializer based on action."""
        if self.action == 'list':
            return ShipmentListSerializer
        return ShipmentDetailSerializer

    def create(self, request):
        """Consolidate ready packages into a shipment."""
        serializer = ShipmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer_id = customer_scope(request)
        if customer_id is None:
            customer_id = data.get('customer_id')
            if not customer_id:
                return error_response(
                    ValidationException("customer_id is required", {'customer_id': 'required'})
                )

        try:
            shipment = ShipmentService.create_shipment(
                customer_id,
                [str(package_id) for package_id in data['package_ids']],
                str(data['destination_zone_id']),
                actor_name(request),
                {
                    'service_type': data['service_type'],
                    'shipping_address_id': data['shipping_address_id'],
                },
            )
            return success_response(ShipmentDetailSerializer(shipment).data, status.HTTP_201_CREATED)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def quote(self, request, pk=None):
        """Price the shipment and fix the quote."""
        serializer = QuoteRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            shipment = ShipmentService.quote(
                pk, actor_name(request),
                service_type=serializer.validated_data.get('service_type'),
                customer_id=customer_scope(request),
            )
            return success_response(ShipmentDetailSerializer(shipment).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['get'])
    def available_services(self, request, pk=None):
        """Every service that can carry the shipment, cheapest first."""
        try:
            quotes = ShipmentService.available_services(pk, customer_scope(request))
            return success_response([rate_quote.as_dict() for rate_quote in quotes])
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def cancel(self, request, pk=None):
        serializer = ShipmentCancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            shipment = ShipmentService.cancel(
                pk, actor_name(request), serializer.validated_data['reason'],
                customer_id=customer_scope(request),
            )
            return success_response(ShipmentDetailSerializer(shipment).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def update_status(self, request, pk=None):
        """Move a paid shipment through processing and delivery."""
        serializer = ShipmentStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            shipment = ShipmentService.update_status(
                pk,
                serializer.validated_data['status'],
                actor_name(request),
                serializer.validated_data['reason'],
                tracking_number=serializer.validated_data.get('tracking_number'),
            )
            return success_response(ShipmentDetailSerializer(shipment).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def refund(self, request, pk=None):
        serializer = ShipmentRefundSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            shipment = ShipmentService.refund(
                pk, actor_name(request),
                serializer.validated_data['reason'],
                serializer.validated_data['refund_reference'],
            )
            return success_response(ShipmentDetailSerializer(shipment).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def payment_intent(self, request, pk=None):
        """Create a payment intent for the quoted total."""
        try:
            intent = BillingService.create_payment_intent(pk, customer_scope(request))
            return success_response(PaymentIntentSerializer(intent).data, status.HTTP_201_CREATED)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def complete_payment(self, request, pk=None):
        """Reconcile a completed payment and issue the invoice."""
        serializer = CompletePaymentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            result = BillingService.complete_payment(
                pk, serializer.validated_data['payment_reference'], customer_scope(request)
            )
            return success_response({
                'shipment': ShipmentDetailSerializer(result['shipment']).data,
                'invoice': InvoiceSerializer(result['invoice']).data,
                'already_processed': result['already_processed'],
            })
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        shipment = self.get_object()
        serializer = ShipmentStatusHistorySerializer(shipment.status_history.all(), many=True)
        return success_response(serializer.data)
