import re
from typing import List

from app.core.exceptions import RecordValidationError
from app.models.dpp import DigitalProductPassport, DPPCreate, QualitySpecification
from app.models.status import RecordStatus
from app.services.events import TraceabilityEventLog
from app.services.status import apply_reconciliation


# Simplified GS1 EPC URN check. Example: 'urn:epc:id:sgtin:4012345.011111.1001'
GS1_URN_PATTERN = re.compile(
    r"^urn:epc:id:([a-zA-Z0-9_]+):([a-zA-Z0-9.\-]+)(\.[\w.\-]+)*$")


def validate_product_identifier(product_identifier: str) -> None:
    if not GS1_URN_PATTERN.match(product_identifier or ""):
        raise RecordValidationError(
            f"Invalid GS1 EPC URN '{product_identifier}'. "
            f"Expected a key like 'urn:epc:id:sgtin:...'."
        )


def validate_specifications(specifications: List[QualitySpecification]) -> None:
    seen = set()
    for spec in specifications:
        if not spec.test_name:
            raise RecordValidationError("Specification without test name.")
        if spec.test_name in seen:
            raise RecordValidationError(
                f"Duplicate specification for test '{spec.test_name}'.")
        seen.add(spec.test_name)

        if spec.is_numeric:
            if spec.expected_value is not None:
                raise RecordValidationError(
                    f"Numeric test '{spec.test_name}' cannot define an expected value.")
            if (spec.lower_limit is not None and spec.upper_limit is not None
                    and spec.lower_limit > spec.upper_limit):
                raise RecordValidationError(
                    f"Lower limit above upper limit for test '{spec.test_name}'.")
        elif spec.lower_limit is not None or spec.upper_limit is not None:
            raise RecordValidationError(
                f"Non-numeric test '{spec.test_name}' cannot define limits.")


def commission(
    data: DPPCreate,
    owner_org: str,
    event_log: TraceabilityEventLog,
    reconcile: bool = True
) -> DigitalProductPassport:
    """
    Builds a new passport in Draft status with its commissioning event.
    Mandatory specifications start out as open checks.
    """
    validate_product_identifier(data.product_identifier)
    validate_specifications(data.specifications)

    dpp = DigitalProductPassport(
        id=data.id,
        product_identifier=data.product_identifier,
        product_type_id=data.product_type_id,
        manufacturer_site_id=data.manufacturer_site_id,
        batch=data.batch,
        production_date=data.production_date,
        owner_org=owner_org,
        status=RecordStatus.draft(),
        specifications=list(data.specifications),
        open_mandatory_checks=[
            s.test_name for s in data.specifications if s.is_mandatory
        ],
    )
    event_log.commissioned(dpp, data.manufacturer_site_id)

    if reconcile:
        apply_reconciliation(dpp)
    return dpp
