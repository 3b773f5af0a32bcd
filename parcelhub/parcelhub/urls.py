"""
URL configuration for parcelhub project.
"""
from django.http import JsonResponse
from django.urls import path, include
from django.views.decorators.http import require_http_methods


@require_http_methods(["GET"])
def api_root(request):
    """API root view with available endpoints."""
    return JsonResponse({
        'message': 'ParcelHub Forwarding API',
        'version': '1.0.0',
        'endpoints': {
            'intake': {
                'batches': '/api/forwarding/batches/',
                'scanned_items': '/api/forwarding/scanned-items/',
            },
            'packages': '/api/forwarding/packages/',
            'shipments': '/api/forwarding/shipments/',
            'rates': '/api/forwarding/rates/',
            'invoices': '/api/forwarding/invoices/',
            'payment_webhook': '/api/forwarding/payments/webhook/',
        }
    })


urlpatterns = [
    path('api/', api_root, name='api-root'),
    path('api/forwarding/', include('forwarding.urls')),
]
