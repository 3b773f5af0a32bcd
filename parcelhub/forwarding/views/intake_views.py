"""
Intake views for the forwarding engine.
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action

from ..models import IncomingBatch, ScannedItem
from ..services import IntakeService
from ..exceptions import BusinessException
from ..serializers.intake_serializers import (
    IncomingBatchSerializer, BatchStartSerializer, ScanSerializer,
    ScannedItemSerializer, DuplicateScanSerializer, AssignItemsSerializer,
    UnassignItemSerializer, CreatePackageFromItemSerializer
)
from ..serializers.package_serializers import PackageSerializer
from ..permissions import IsWarehouseStaff, actor_name
from .responses import success_response, error_response


class IncomingBatchViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for courier batches.

    Staff start a batch, scan tracking numbers into it and mark it complete.
    """

    queryset = IncomingBatch.objects.all()
    serializer_class = IncomingBatchSerializer
    permission_classes = [IsWarehouseStaff]
    filterset_fields = ['status', 'warehouse_id', 'courier_id', 'arrival_date']

    def create(self, request):
        """Start a scan session."""
        serializer = BatchStartSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        try:
            batch = IntakeService.start_batch(
                str(data.pop('warehouse_id')), str(data.pop('courier_id')), actor_name(request), data
            )
            return success_response(IncomingBatchSerializer(batch).data, status.HTTP_201_CREATED)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def scan(self, request, pk=None):
        """Scan one tracking number, or a list of them."""
        serializer = ScanSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            if serializer.validated_data.get('tracking_numbers'):
                result = IntakeService.scan_many(
                    pk, serializer.validated_data['tracking_numbers'], actor_name(request)
                )
                return success_response({
                    'items': ScannedItemSerializer(result['items'], many=True).data,
                    'duplicates': DuplicateScanSerializer(result['duplicates'], many=True).data,
                }, status.HTTP_201_CREATED)

            result = IntakeService.scan(pk, serializer.validated_data['tracking_number'], actor_name(request))
            return success_response({
                'item': ScannedItemSerializer(result['item']).data,
                'duplicate': result['duplicate'],
            }, status.HTTP_200_OK if result['duplicate'] else status.HTTP_201_CREATED)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def complete(self, request, pk=None):
        """Mark scanning of a batch as complete."""
        try:
            batch = IntakeService.complete_batch(pk, actor_name(request))
            return success_response(IncomingBatchSerializer(batch).data)
        except BusinessException as e:
            return error_response(e)


class ScannedItemViewSet(viewsets.ReadOnlyModelViewSet):
    """ViewSet for scanned items and their assignment to customers."""

    queryset = ScannedItem.objects.select_related('batch').all()
    serializer_class = ScannedItemSerializer
    permission_classes = [IsWarehouseStaff]
    filterset_fields = ['assignment_status', 'batch', 'customer_id', 'tracking_number']

    @action(detail=False, methods=['post'])
    def assign(self, request):
        """Assign a group of items to one customer, all or nothing."""
        serializer = AssignItemsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            items = IntakeService.assign(
                [str(item_id) for item_id in serializer.validated_data['item_ids']],
                serializer.validated_data['customer_id'],
                actor_name(request),
                serializer.validated_data['notes'],
            )
            return success_response(ScannedItemSerializer(items, many=True).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def unassign(self, request, pk=None):
        serializer = UnassignItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            item = IntakeService.unassign(pk, actor_name(request), serializer.validated_data['reason'])
            return success_response(ScannedItemSerializer(item).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def create_package(self, request, pk=None):
        """Turn an assigned item into a received package."""
        serializer = CreatePackageFromItemSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            package = IntakeService.create_package_from_item(
                pk, dict(serializer.validated_data), actor_name(request)
            )
            return success_response(PackageSerializer(package).data, status.HTTP_201_CREATED)
        except BusinessException as e:
            return error_response(e)
