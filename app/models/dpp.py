from typing import Any, Dict, List, Optional
from sqlmodel import SQLModel, Field

from app.models.status import RecordStatus
from app.models.vocabulary import BizStep, Disposition, EventAction, EventType


# ==========================================================================
# QUALITY
# ==========================================================================

class QualitySpecification(SQLModel):
    """One named test contract for a product type."""
    test_name: str
    is_numeric: bool = False
    lower_limit: Optional[float] = None
    upper_limit: Optional[float] = None
    expected_value: Optional[str] = None
    unit: Optional[str] = None
    is_mandatory: bool = False


class QualityEntryBase(SQLModel):
    test_name: str
    result: str
    unit: Optional[str] = None
    system_id: Optional[str] = None
    timestamp: Optional[str] = None
    responsible: Optional[str] = None
    performing_org: Optional[str] = None
    off_chain_data_ref: Optional[str] = None


class QualityEntryCreate(QualityEntryBase):
    """
    Raw quality submission.
    A lab system or oracle may assert a final `evaluation_outcome`; when it
    does, the specification matcher is skipped.
    """
    evaluation_outcome: Optional[str] = None
    evaluation_comment: Optional[str] = None


class QualityEntry(QualityEntryBase):
    """Finalized, append-only quality record."""
    evaluation_outcome: str
    evaluation_comment: str = ""


# ==========================================================================
# TRANSPORT
# ==========================================================================

class TransportConditionLogEntry(SQLModel):
    log_type: str
    value: str
    unit: Optional[str] = None
    timestamp: Optional[str] = None
    status: str = ""
    off_chain_log_ref: Optional[str] = None
    responsible_system: Optional[str] = None


class TransportLogAnchorCreate(SQLModel):
    """Reference to a telemetry file kept off the ledger."""
    file_ref: str
    file_hash: Optional[str] = None
    alert_summary: bool = False


class AnchoredTransportLog(TransportLogAnchorCreate):
    anchored_at: str
    anchoring_site: Optional[str] = None
    anchoring_org: str


# ==========================================================================
# TRACEABILITY
# ==========================================================================

class TraceabilityEvent(SQLModel):
    event_id: str
    event_type: EventType
    event_time: str
    event_time_zone_offset: str
    biz_step: BizStep
    action: Optional[EventAction] = None
    epc_list: List[str] = Field(default_factory=list)
    input_epc_list: List[str] = Field(default_factory=list)
    output_epc_list: List[str] = Field(default_factory=list)
    disposition: Optional[Disposition] = None
    read_point: Optional[str] = None
    biz_location: Optional[str] = None
    extensions: Dict[str, Any] = Field(default_factory=dict)


# ==========================================================================
# PASSPORT
# ==========================================================================

class DigitalProductPassport(SQLModel):
    """
    The aggregate root stored in the ledger.
    Every collection is always present in the serialized form.
    """
    id: str
    product_identifier: str
    product_type_id: Optional[str] = None
    manufacturer_site_id: Optional[str] = None
    batch: Optional[str] = None
    production_date: Optional[str] = None
    owner_org: str
    status: RecordStatus
    specifications: List[QualitySpecification] = Field(default_factory=list)
    open_mandatory_checks: List[str] = Field(default_factory=list)
    quality: List[QualityEntry] = Field(default_factory=list)
    transport_log: List[TransportConditionLogEntry] = Field(default_factory=list)
    anchored_transport_logs: List[AnchoredTransportLog] = Field(
        default_factory=list)
    input_record_ids: List[str] = Field(default_factory=list)
    events: List[TraceabilityEvent] = Field(default_factory=list)

    def find_specification(self, test_name: str) -> Optional[QualitySpecification]:
        return next(
            (s for s in self.specifications if s.test_name == test_name), None)


# ==========================================================================
# REQUEST / RESPONSE PAYLOADS
# ==========================================================================

class DPPCreate(SQLModel):
    id: str
    product_identifier: str
    product_type_id: Optional[str] = None
    manufacturer_site_id: Optional[str] = None
    batch: Optional[str] = None
    production_date: Optional[str] = None
    specifications: List[QualitySpecification] = Field(default_factory=list)


class QualityRecordRequest(SQLModel):
    entry: QualityEntryCreate
    recording_site_id: Optional[str] = None


class TransportUpdateRequest(SQLModel):
    entry: TransportConditionLogEntry
    site_id: Optional[str] = None


class TransportLogAnchorRequest(SQLModel):
    log: TransportLogAnchorCreate
    site_id: Optional[str] = None


class TransformationCreate(SQLModel):
    """Parameters for consuming N input passports into one compound output."""
    output: DPPCreate
    input_record_ids: List[str]
    initial_quality: Optional[QualityEntryCreate] = None


class TransformationResult(SQLModel):
    output: DigitalProductPassport
    consumed_input_ids: List[str]


class TransferRequest(SQLModel):
    new_owner: str
    shipper_site_id: Optional[str] = None


class ReceiptAcknowledgement(SQLModel):
    recipient_site_id: Optional[str] = None
    inspection: Optional[QualityEntryCreate] = None


class ReceiptRejection(SQLModel):
    recipient_site_id: Optional[str] = None
    reason: str


class DPPSummaryRead(SQLModel):
    """Minimal passport details for list and status views."""
    id: str
    product_identifier: str
    owner_org: str
    status: RecordStatus
    open_mandatory_checks: List[str]
