from typing import List
from fastapi import APIRouter, Depends, Response, status

from app.core.dependencies import get_current_caller, get_dpp_service
from app.services.dpp import DPPService
from app.services.identity import CallerIdentity

from app.models.dpp import (
    AnchoredTransportLog, DigitalProductPassport, DPPCreate, DPPSummaryRead,
    QualityEntry, QualityRecordRequest, ReceiptAcknowledgement, ReceiptRejection,
    TraceabilityEvent, TransferRequest, TransformationCreate,
    TransformationResult, TransportConditionLogEntry, TransportLogAnchorRequest,
    TransportUpdateRequest
)

router = APIRouter()


@router.post(
    "/",
    response_model=DigitalProductPassport,
    status_code=status.HTTP_201_CREATED,
    summary="Create Passport",
    description="Creates a passport owned by the calling organization and logs its commissioning event.",
    tags=["Digital Passport"]
)
def create_record(
    payload: DPPCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    return service.create_record(caller=caller, data=payload)


@router.post(
    "/transformations",
    response_model=TransformationResult,
    status_code=status.HTTP_201_CREATED,
    summary="Record Transformation",
    description="Consumes the input passports and creates the compound output passport in one transaction.",
    tags=["Provenance"]
)
def record_transformation(
    payload: TransformationCreate,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    return service.record_transformation(caller=caller, data=payload)


@router.get(
    "/{dpp_id}",
    response_model=DigitalProductPassport,
    summary="Get Passport",
    description="Returns the full passport: specifications, quality history, transport log and events.",
    tags=["Digital Passport"]
)
def query_record(
    dpp_id: str,
    service: DPPService = Depends(get_dpp_service)
):
    return service.query_record(dpp_id)


@router.get(
    "/{dpp_id}/status",
    response_model=DPPSummaryRead,
    summary="Get Passport Status",
    tags=["Digital Passport"]
)
def query_record_status(
    dpp_id: str,
    service: DPPService = Depends(get_dpp_service)
):
    return service.query_record(dpp_id)


@router.get(
    "/{dpp_id}/events",
    response_model=List[TraceabilityEvent],
    summary="List Events",
    description="Traceability timeline of the passport, oldest first.",
    tags=["Digital Passport"]
)
def list_events(
    dpp_id: str,
    service: DPPService = Depends(get_dpp_service)
):
    return service.list_events(dpp_id)


@router.get(
    "/{dpp_id}/qr",
    response_class=Response,
    summary="Get QR Code",
    description="PNG QR code linking to `GET /api/v1/dpps/{dpp_id}`.",
    tags=["Digital Passport"]
)
def get_qr_code(
    dpp_id: str,
    service: DPPService = Depends(get_dpp_service)
):
    return Response(content=service.record_qr_code(dpp_id), media_type="image/png")


@router.post(
    "/{dpp_id}/quality",
    response_model=QualityEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Record Quality Data",
    description="Evaluates a test result against the passport's specification and reconciles the status.",
    tags=["Quality"]
)
def record_quality_data(
    dpp_id: str,
    payload: QualityRecordRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    return service.record_quality_data(caller=caller, dpp_id=dpp_id, data=payload)


@router.post(
    "/{dpp_id}/transport",
    response_model=TransportConditionLogEntry,
    status_code=status.HTTP_201_CREATED,
    summary="Add Transport Update",
    tags=["Transport"]
)
def add_transport_update(
    dpp_id: str,
    payload: TransportUpdateRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    """
    Appends a condition reading. A reading whose status contains 'ALERT'
    flags a passport that is in transit.
    """
    return service.add_transport_update(caller=caller, dpp_id=dpp_id, data=payload)


@router.post(
    "/{dpp_id}/transport-logs",
    response_model=AnchoredTransportLog,
    status_code=status.HTTP_201_CREATED,
    summary="Anchor Transport Log",
    description="Anchors the reference and hash of a complete off-site sensor log.",
    tags=["Transport"]
)
def anchor_transport_log(
    dpp_id: str,
    payload: TransportLogAnchorRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    return service.anchor_transport_log(caller=caller, dpp_id=dpp_id, data=payload)


@router.post(
    "/{dpp_id}/transfer",
    response_model=DigitalProductPassport,
    summary="Transfer Ownership",
    description="Ships the passport to a new owner. Only the current owner may call this.",
    tags=["Ownership"]
)
def transfer_record(
    dpp_id: str,
    payload: TransferRequest,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    return service.transfer_record(caller=caller, dpp_id=dpp_id, data=payload)


@router.post(
    "/{dpp_id}/acknowledge",
    response_model=DigitalProductPassport,
    summary="Acknowledge Receipt",
    description="The designated recipient confirms arrival, optionally with an incoming inspection.",
    tags=["Ownership"]
)
def acknowledge_receipt(
    dpp_id: str,
    payload: ReceiptAcknowledgement,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    return service.acknowledge_receipt(caller=caller, dpp_id=dpp_id, data=payload)


@router.post(
    "/{dpp_id}/reject",
    response_model=DigitalProductPassport,
    summary="Reject Receipt",
    tags=["Ownership"]
)
def reject_receipt(
    dpp_id: str,
    payload: ReceiptRejection,
    caller: CallerIdentity = Depends(get_current_caller),
    service: DPPService = Depends(get_dpp_service)
):
    return service.reject_receipt(caller=caller, dpp_id=dpp_id, data=payload)
