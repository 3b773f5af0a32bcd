"""
Response envelopes shared by the forwarding views.
"""

from rest_framework import status
from rest_framework.response import Response

from ..exceptions import BusinessException

ERROR_STATUS = {
    'NOT_FOUND': status.HTTP_404_NOT_FOUND,
    'INVALID_TRANSITION': status.HTTP_409_CONFLICT,
    'ALREADY_ASSIGNED': status.HTTP_409_CONFLICT,
    'INVALID_STATE': status.HTTP_409_CONFLICT,
    'PAYMENT_NOT_SUCCEEDED': status.HTTP_402_PAYMENT_REQUIRED,
}


def success_response(data, http_status=status.HTTP_200_OK) -> Response:
    return Response({'success': True, 'data': data}, status=http_status)


def error_response(exc: BusinessException) -> Response:
    """
    Translate a business exception into the error envelope.

    A pending reconciliation is not an error for the caller: the payment was
    taken and an operator will finish the bookkeeping.
    """
    if exc.code == 'RECONCILIATION_PENDING':
        return Response({
            'success': True,
            'data': {
                'status': 'pending_reconciliation',
                'message': exc.message,
                'details': exc.details,
            }
        }, status=status.HTTP_202_ACCEPTED)

    return Response({
        'success': False,
        'error': {
            'code': exc.code,
            'message': exc.message,
            'details': exc.details,
        }
    }, status=ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST))
