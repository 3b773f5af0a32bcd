"""
Payment processor webhook endpoint.
"""

import logging

from rest_framework.permissions import AllowAny
from rest_framework.views import APIView

from ..services import BillingService
from ..exceptions import BusinessException
from .responses import success_response, error_response

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = 'HTTP_X_PAYMENT_SIGNATURE'


class PaymentWebhookView(APIView):
    """
    Receives payment notifications from the processor.

    Requests are authenticated by their signature, not by a user session.
    """

    authentication_classes = []
    permission_classes = [AllowAny]

    def post(self, request):
        signature = request.META.get(SIGNATURE_HEADER, '')

        try:
            result = BillingService.handle_webhook(request.body, signature)
            return success_response(result)
        except BusinessException as e:
            logger.warning(f"Payment webhook rejected: {e.code} {e.message}")
            return error_response(e)
