from contextlib import contextmanager
from typing import List, Optional
from loguru import logger
from sqlmodel import Session

from app.core.clock import EventIdFactory, SystemClock
from app.core.config import settings
from app.core.exceptions import RecordConflictError
from app.core.notifications import NotificationSink
from app.db.store import DPPRepository, SQLModelRecordStore
from app.models.dpp import (
    AnchoredTransportLog, DigitalProductPassport, DPPCreate, QualityEntry,
    QualityRecordRequest, ReceiptAcknowledgement, ReceiptRejection,
    TraceabilityEvent, TransferRequest, TransformationCreate,
    TransformationResult, TransportConditionLogEntry, TransportLogAnchorRequest,
    TransportUpdateRequest
)
from app.services.commissioning import commission
from app.services.events import TraceabilityEventLog
from app.services.identity import CallerIdentity
from app.services.quality import QualityLedger
from app.services.status import apply_reconciliation
from app.services.transfer import CustodyManager
from app.services.transformation import TransformationManager
from app.utils.qr import render_qr_png


class DPPService:
    """
    Public operations of the quality ledger.

    Every operation loads the affected passport(s), mutates them through the
    domain components, appends events, reconciles and stores the result.
    One operation is one database transaction.
    """

    def __init__(
        self,
        session: Session,
        notifier: Optional[NotificationSink] = None,
        clock: Optional[SystemClock] = None,
        id_factory: Optional[EventIdFactory] = None
    ):
        self.session = session
        self.repository = DPPRepository(SQLModelRecordStore(session))
        self.event_log = TraceabilityEventLog(clock, id_factory)
        self.quality = QualityLedger(self.event_log, notifier)
        self.custody = CustodyManager(self.quality)
        self.transformations = TransformationManager(self.repository, self.quality)

    @contextmanager
    def _transaction(self):
        try:
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

    # ==========================================================================
    # CREATION & QUALITY
    # ==========================================================================

    def create_record(self, caller: CallerIdentity, data: DPPCreate) -> DigitalProductPassport:
        organization = caller.current_organization()

        with self._transaction():
            # 1. Ids are unique for the lifetime of the ledger
            if self.repository.exists(data.id):
                raise RecordConflictError(
                    f"Digital Product Passport '{data.id}' already exists.")

            # 2. Build, emit the commissioning event and derive the first status
            dpp = commission(data, organization, self.event_log)

            # 3. Persist
            self.repository.save(dpp)

        logger.info(
            f"DPP {dpp.id} ({dpp.product_identifier}) created by {organization}, "
            f"status {dpp.status.label}")
        return dpp

    def record_quality_data(
        self,
        caller: CallerIdentity,
        dpp_id: str,
        data: QualityRecordRequest
    ) -> QualityEntry:
        with self._transaction():
            dpp = self.repository.load(dpp_id)
            entry = self.quality.record(
                dpp, data.entry, caller.current_organization(), data.recording_site_id)
            apply_reconciliation(dpp)
            self.repository.save(dpp)

        logger.info(
            f"DPP {dpp_id}: '{entry.test_name}' recorded as {entry.evaluation_outcome}")
        return entry

    # ==========================================================================
    # TRANSPORT
    # ==========================================================================

    def add_transport_update(
        self,
        caller: CallerIdentity,
        dpp_id: str,
        data: TransportUpdateRequest
    ) -> TransportConditionLogEntry:
        with self._transaction():
            dpp = self.repository.load(dpp_id)
            entry = self.custody.add_transport_update(dpp, data.entry, data.site_id)
            self.repository.save(dpp)
        return entry

    def anchor_transport_log(
        self,
        caller: CallerIdentity,
        dpp_id: str,
        data: TransportLogAnchorRequest
    ) -> AnchoredTransportLog:
        with self._transaction():
            dpp = self.repository.load(dpp_id)
            anchor = self.custody.anchor_transport_log(
                dpp, data.log, caller.current_organization(), data.site_id)
            self.repository.save(dpp)

        logger.info(f"DPP {dpp_id}: transport log '{anchor.file_ref}' anchored")
        return anchor

    # ==========================================================================
    # PROVENANCE
    # ==========================================================================

    def record_transformation(
        self,
        caller: CallerIdentity,
        data: TransformationCreate
    ) -> TransformationResult:
        """All input consumptions and the output are committed together, or none."""
        with self._transaction():
            return self.transformations.transform(caller, data)

    # ==========================================================================
    # OWNERSHIP
    # ==========================================================================

    def transfer_record(
        self,
        caller: CallerIdentity,
        dpp_id: str,
        data: TransferRequest
    ) -> DigitalProductPassport:
        with self._transaction():
            dpp = self.repository.load(dpp_id)
            self.custody.transfer(
                dpp, caller.current_organization(), data.new_owner, data.shipper_site_id)
            self.repository.save(dpp)
        return dpp

    def acknowledge_receipt(
        self,
        caller: CallerIdentity,
        dpp_id: str,
        data: ReceiptAcknowledgement
    ) -> DigitalProductPassport:
        with self._transaction():
            dpp = self.repository.load(dpp_id)
            self.custody.acknowledge(
                dpp, caller.current_organization(), data.recipient_site_id, data.inspection)
            self.repository.save(dpp)
        return dpp

    def reject_receipt(
        self,
        caller: CallerIdentity,
        dpp_id: str,
        data: ReceiptRejection
    ) -> DigitalProductPassport:
        with self._transaction():
            dpp = self.repository.load(dpp_id)
            self.custody.reject(
                dpp, caller.current_organization(), data.reason, data.recipient_site_id)
            self.repository.save(dpp)
        return dpp

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def query_record(self, dpp_id: str) -> DigitalProductPassport:
        return self.repository.load(dpp_id)

    def list_events(self, dpp_id: str) -> List[TraceabilityEvent]:
        return self.repository.load(dpp_id).events

    def record_qr_code(self, dpp_id: str) -> bytes:
        """PNG QR code pointing at the read route of the passport."""
        dpp = self.repository.load(dpp_id)
        return render_qr_png(f"{settings.public_url}/api/v1/dpps/{dpp.id}")
