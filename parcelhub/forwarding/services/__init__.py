"""
Forwarding Engine Services
"""

from .workflow import (
    PackageWorkflow, ShipmentWorkflow,
    validate_package_workflow, validate_shipment_workflow
)
from .rate_calculator import RateCalculator, RateQuote
from .intake_service import IntakeService
from .package_service import PackageService
from .shipment_service import ShipmentService
from .billing_service import BillingService

__all__ = [
    # Workflow validators
    'PackageWorkflow', 'ShipmentWorkflow',
    'validate_package_workflow', 'validate_shipment_workflow',

    # Pricing
    'RateCalculator', 'RateQuote',

    # Services
    'IntakeService', 'PackageService', 'ShipmentService', 'BillingService',
]
