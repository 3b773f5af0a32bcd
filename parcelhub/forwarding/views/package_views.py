"""
Package views for the forwarding engine.
"""

from rest_framework import viewsets, status
from rest_framework.decorators import action

from ..models import Package
from ..services import PackageService
from ..exceptions import BusinessException
from ..serializers.package_serializers import (
    PackageSerializer, PackageStatusHistorySerializer, MeasurementSerializer,
    PackageTransitionSerializer, BulkPackageTransitionSerializer, AttachDocumentSerializer
)
from ..permissions import IsWarehouseStaff, IsOwnerOrWarehouseStaff, customer_scope, actor_name
from .responses import success_response, error_response

STAFF_ACTIONS = ['receive', 'measure', 'transition', 'bulk_transition', 'attach_document']


class PackageViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for packages.

    Customers see their own packages; warehouse staff see and move all of them.
    """

    serializer_class = PackageSerializer
    filterset_fields = ['status', 'warehouse_id', 'customer_id', 'inbound_tracking_number']

    def get_queryset(self):
        queryset = Package.objects.all()
        customer_id = customer_scope(self.request)
        if customer_id is not None:
            queryset = queryset.filter(customer_id=customer_id)
        return queryset

    def get_permissions(self):
        if self.action in STAFF_ACTIONS:
            return [IsWarehouseStaff()]
        return [IsOwnerOrWarehouseStaff()]

    @action(detail=True, methods=['post'])
    def receive(self, request, pk=None):
        """Record arrival of an expected package with its measurements."""
        serializer = MeasurementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            package = PackageService.receive(pk, dict(serializer.validated_data), actor_name(request))
            return success_response(PackageSerializer(package).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def measure(self, request, pk=None):
        serializer = MeasurementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            package = PackageService.record_measurements(pk, dict(serializer.validated_data), actor_name(request))
            return success_response(PackageSerializer(package).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def transition(self, request, pk=None):
        """Manually change a package status."""
        serializer = PackageTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            package = PackageService.transition(
                pk, serializer.validated_data['status'], actor_name(request),
                serializer.validated_data['reason']
            )
            return success_response(PackageSerializer(package).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=False, methods=['post'])
    def bulk_transition(self, request):
        """Change the status of several packages, all or nothing."""
        serializer = BulkPackageTransitionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            packages = PackageService.bulk_transition(
                [str(package_id) for package_id in serializer.validated_data['package_ids']],
                serializer.validated_data['status'],
                actor_name(request),
                serializer.validated_data['reason'],
            )
            return success_response(PackageSerializer(packages, many=True).data)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['post'])
    def attach_document(self, request, pk=None):
        serializer = AttachDocumentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            package = PackageService.attach_document(
                pk, serializer.validated_data['document_id'], actor_name(request)
            )
            return success_response(PackageSerializer(package).data, status.HTTP_200_OK)
        except BusinessException as e:
            return error_response(e)

    @action(detail=True, methods=['get'])
    def history(self, request, pk=None):
        """Status log of a package, oldest first."""
        package = self.get_object()
        serializer = PackageStatusHistorySerializer(package.status_history.all(), many=True)
        return success_response(serializer.data)
