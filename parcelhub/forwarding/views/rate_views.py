"""
Rate calculation views for the forwarding engine.
"""

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated

from ..services import RateCalculator
from ..services.weights import compute_package_weights
from ..exceptions import BusinessException
from ..models import ServiceType
from ..serializers.shipment_serializers import RateCalculationSerializer
from .responses import success_response, error_response


class RateViewSet(viewsets.ViewSet):
    """Standalone price lookups, without creating a shipment."""

    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=['post'])
    def calculate(self, request):
        """
        Price a parcel for one service, or for every available service.

        Without ``chargeable_weight_kg`` the chargeable weight is derived from
        the measurements.
        """
        serializer = RateCalculationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            chargeable = data.get('chargeable_weight_kg')
            volumetric = None
            if chargeable is None:
                volumetric, chargeable = compute_package_weights(
                    data.get('weight_kg'), data.get('length_cm'), data.get('width_cm'), data.get('height_cm'),
                    warehouse_id=data['warehouse_id'], service_type=data.get('service_type'),
                )

            if data.get('service_type'):
                quotes = [RateCalculator.quote(
                    data['warehouse_id'], data['zone_id'], data['service_type'], chargeable
                )]
            else:
                service_weights = {}
                if volumetric is not None:
                    for service_type in ServiceType.values:
                        service_weights[service_type] = compute_package_weights(
                            data.get('weight_kg'), data.get('length_cm'), data.get('width_cm'),
                            data.get('height_cm'), warehouse_id=data['warehouse_id'], service_type=service_type,
                        )[1]
                quotes = RateCalculator.available_services(
                    data['warehouse_id'], data['zone_id'], chargeable, service_weights=service_weights
                )

            return success_response({
                'chargeable_weight_kg': str(chargeable),
                'volumetric_weight_kg': str(volumetric) if volumetric is not None else None,
                'quotes': [rate_quote.as_dict() for rate_quote in quotes],
            })
        except BusinessException as e:
            return error_response(e)
