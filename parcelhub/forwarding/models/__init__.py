"""
Forwarding Engine Models
"""

from .rate import Rate, ServiceType
from .intake import IncomingBatch, BatchStatus, ScannedItem, AssignmentStatus, DuplicateScan
from .package import Package, PackageStatus, PackageStatusHistory
from .shipment import Shipment, ShipmentStatus, ShipmentPackage, ShipmentStatusHistory
from .billing import Invoice, InvoiceType, InvoicePaymentStatus, InvoiceLine, LineReferenceType
from .audit import AuditLog

__all__ = [
    # Rates
    'Rate', 'ServiceType',

    # Intake
    'IncomingBatch', 'BatchStatus',
    'ScannedItem', 'AssignmentStatus',
    'DuplicateScan',

    # Packages
    'Package', 'PackageStatus', 'PackageStatusHistory',

    # Shipments
    'Shipment', 'ShipmentStatus', 'ShipmentPackage', 'ShipmentStatusHistory',

    # Billing
    'Invoice', 'InvoiceType', 'InvoicePaymentStatus', 'InvoiceLine', 'LineReferenceType',

    # Audit
    'AuditLog',
]
