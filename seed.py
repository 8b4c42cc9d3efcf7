from loguru import logger
from sqlmodel import Session, SQLModel

from app.core.notifications import OutboxNotificationSink
from app.db import schema  # noqa: F401
from app.db.core import engine
from app.models.dpp import (
    DPPCreate, QualityEntryCreate, QualityRecordRequest, QualitySpecification,
    ReceiptAcknowledgement, TransferRequest, TransformationCreate,
    TransportConditionLogEntry, TransportUpdateRequest
)
from app.services.dpp import DPPService
from app.services.identity import CallerIdentity, IdentityService


# 1. Supply chain participants and their sites (GLN)
SUPPLIER_A = CallerIdentity(organization="Org1MSP")
SUPPLIER_B = CallerIdentity(organization="Org2MSP")
COMPOUNDER = CallerIdentity(organization="Org3MSP")
CUSTOMER = CallerIdentity(organization="Org4MSP")

SITES = {
    "Org1MSP": "4012345000002",
    "Org2MSP": "4012345000003",
    "Org3MSP": "4012345000004",
    "Org4MSP": "4012345000005",
}

# 2. Specifications shared by the polymer granulate batches
GRANULATE_SPECS = [
    QualitySpecification(
        test_name="Melt Flow Index", is_numeric=True,
        lower_limit=10.0, upper_limit=20.0, unit="g/10min", is_mandatory=True
    ),
    QualitySpecification(
        test_name="Visual Inspection", expected_value="OK", is_mandatory=True
    ),
]

COMPOUND_SPECS = [
    QualitySpecification(
        test_name="Density", is_numeric=True,
        lower_limit=0.90, upper_limit=0.96, unit="g/cm3", is_mandatory=True
    ),
]


def seed_granulate(service: DPPService, caller: CallerIdentity, dpp_id: str,
                   serial: str, mfi: str):
    """Creates a supplier batch, records its release tests and ships it to the compounder."""
    site = SITES[caller.organization]

    if service.repository.exists(dpp_id):
        logger.info(f"Existing DPP: {dpp_id}")
        return

    service.create_record(caller, DPPCreate(
        id=dpp_id,
        product_identifier=f"urn:epc:id:sgtin:4012345.000001.{serial}",
        product_type_id="PP-GRANULATE",
        manufacturer_site_id=site,
        batch=f"CH-{serial}",
        production_date="2026-10-01",
        specifications=GRANULATE_SPECS,
    ))
    for test_name, result, unit in [
        ("Melt Flow Index", mfi, "g/10min"),
        ("Visual Inspection", "OK", None),
    ]:
        service.record_quality_data(caller, dpp_id, QualityRecordRequest(
            entry=QualityEntryCreate(
                test_name=test_name, result=result, unit=unit, system_id="LIMS-01"),
            recording_site_id=site
        ))

    service.transfer_record(caller, dpp_id, TransferRequest(
        new_owner=COMPOUNDER.organization, shipper_site_id=site))
    service.acknowledge_receipt(COMPOUNDER, dpp_id, ReceiptAcknowledgement(
        recipient_site_id=SITES[COMPOUNDER.organization]))
    logger.info(f"Created DPP: {dpp_id}")


def seed_compound(service: DPPService):
    """Compounds both batches and ships the result to the customer."""
    dpp_id = "DPP-COMPOUND-001"
    site = SITES[COMPOUNDER.organization]

    if service.repository.exists(dpp_id):
        logger.info(f"Existing DPP: {dpp_id}")
        return

    service.record_transformation(COMPOUNDER, TransformationCreate(
        output=DPPCreate(
            id=dpp_id,
            product_identifier="urn:epc:id:sgtin:4012345.000002.000001",
            product_type_id="PP-COMPOUND",
            manufacturer_site_id=site,
            batch="CMP-001",
            production_date="2026-10-05",
            specifications=COMPOUND_SPECS,
        ),
        input_record_ids=["DPP-GRANULATE-A", "DPP-GRANULATE-B"],
        initial_quality=QualityEntryCreate(
            test_name="Density", result="0.93", unit="g/cm3", system_id="LIMS-03"),
    ))

    service.transfer_record(COMPOUNDER, dpp_id, TransferRequest(
        new_owner=CUSTOMER.organization, shipper_site_id=site))
    service.add_transport_update(COMPOUNDER, dpp_id, TransportUpdateRequest(
        entry=TransportConditionLogEntry(
            log_type="Temperature", value="41.5", unit="C",
            status="ALERT_HIGH", responsible_system="TRUCK-17"),
        site_id=site
    ))
    service.acknowledge_receipt(CUSTOMER, dpp_id, ReceiptAcknowledgement(
        recipient_site_id=SITES[CUSTOMER.organization],
        inspection=QualityEntryCreate(
            test_name="Visual Inspection", result="Surface discoloured",
            evaluation_outcome="DEVIATION_COLOR"),
    ))
    logger.info(f"Created DPP: {dpp_id}")


def print_tokens():
    """Bearer tokens for trying the API as each participant."""
    identity = IdentityService()
    for caller in (SUPPLIER_A, SUPPLIER_B, COMPOUNDER, CUSTOMER):
        logger.info(
            f"{caller.organization}: {identity.create_access_token(caller.organization)}")


def main():
    # Ensure tables exist (if not using Alembic)
    SQLModel.metadata.create_all(engine)

    with Session(engine) as session:
        try:
            service = DPPService(session, notifier=OutboxNotificationSink(engine))

            # 1. Supplier batches
            seed_granulate(service, SUPPLIER_A, "DPP-GRANULATE-A", "000001", "14.2")
            seed_granulate(service, SUPPLIER_B, "DPP-GRANULATE-B", "000002", "21.3")

            # 2. Compound
            seed_compound(service)

            logger.info("Database seeding completed successfully.")

        except Exception as e:
            logger.error(f"Seeding failed: {e}")
            raise e

    print_tokens()


if __name__ == "__main__":
    main()
