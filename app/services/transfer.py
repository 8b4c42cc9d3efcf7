from typing import Optional
from loguru import logger

from app.core.clock import format_utc
from app.core.exceptions import (
    RecordAuthorizationError, RecordConflictError, RecordValidationError
)
from app.models.dpp import (
    AnchoredTransportLog, DigitalProductPassport, QualityEntryCreate,
    TransportConditionLogEntry, TransportLogAnchorCreate
)
from app.models.status import RecordStatus, StatusKind
from app.models.vocabulary import ALERT_MARKER, Disposition
from app.services.quality import QualityLedger
from app.services.status import apply_reconciliation


class CustodyManager:
    """
    Handles the custody chain of a passport: shipping to a new owner,
    condition readings on the road, anchored sensor logs and the
    recipient's acceptance or rejection.
    """

    def __init__(self, quality_ledger: QualityLedger):
        self.quality_ledger = quality_ledger
        self.event_log = quality_ledger.event_log
        self.clock = quality_ledger.clock

    def _require_owner(self, dpp: DigitalProductPassport, caller_org: str):
        if dpp.owner_org != caller_org:
            raise RecordAuthorizationError(
                f"Organization '{caller_org}' does not own passport '{dpp.id}'.")

    def _require_incoming(self, dpp: DigitalProductPassport, caller_org: str):
        """The passport must be in transit to the caller, who is already its owner."""
        in_transit_to_caller = (
            dpp.status.kind == StatusKind.IN_TRANSIT
            and dpp.status.organization == caller_org
        )
        if not in_transit_to_caller or dpp.owner_org != caller_org:
            raise RecordAuthorizationError(
                f"Passport '{dpp.id}' is not in transit to '{caller_org}' "
                f"(status '{dpp.status.label}', owner '{dpp.owner_org}')."
            )

    # ==========================================================================
    # SHIPPING
    # ==========================================================================

    def transfer(
        self,
        dpp: DigitalProductPassport,
        caller_org: str,
        new_owner: str,
        shipper_site_id: Optional[str] = None
    ) -> DigitalProductPassport:
        self._require_owner(dpp, caller_org)

        if not new_owner:
            raise RecordValidationError("New owner must be given.")
        if new_owner == dpp.owner_org:
            raise RecordValidationError(
                f"Passport '{dpp.id}' is already owned by '{new_owner}'.")
        if not dpp.status.is_transferable:
            raise RecordConflictError(
                f"Passport '{dpp.id}' cannot be transferred in status '{dpp.status.label}'.")

        # The event captures the status before it changes
        self.event_log.shipped(dpp, new_owner, shipper_site_id)

        previous_owner = dpp.owner_org
        dpp.owner_org = new_owner
        dpp.status = RecordStatus.in_transit(new_owner, dpp.status.transport_alert)

        logger.info(
            f"DPP {dpp.id} shipped from {previous_owner} to {new_owner}")
        return dpp

    def add_transport_update(
        self,
        dpp: DigitalProductPassport,
        entry: TransportConditionLogEntry,
        site_id: Optional[str] = None
    ) -> TransportConditionLogEntry:
        """
        Appends a transport condition reading.
        An ALERT reading flags an in-transit passport; any other status is left as is.
        """
        if not entry.timestamp:
            entry = entry.model_copy(update={"timestamp": format_utc(self.clock.now())})

        dpp.transport_log.append(entry)
        self.event_log.transported(dpp, entry, site_id)

        alerting = ALERT_MARKER in entry.status
        if alerting:
            logger.warning(
                f"Transport alert on DPP {dpp.id}: {entry.log_type}={entry.value} {entry.unit or ''}")

        if (alerting and dpp.status.kind == StatusKind.IN_TRANSIT
                and not dpp.status.transport_alert):
            dpp.status = RecordStatus.in_transit(dpp.status.organization, True)
            logger.info(f"DPP {dpp.id} status -> {dpp.status.label}")
        return entry

    def anchor_transport_log(
        self,
        dpp: DigitalProductPassport,
        log: TransportLogAnchorCreate,
        caller_org: str,
        site_id: Optional[str] = None
    ) -> AnchoredTransportLog:
        """
        Anchors a reference (and hash) of a complete off-chain sensor log.
        An alert summary counts as a transport alert on reconciliation.
        """
        if not log.file_ref:
            raise RecordValidationError("Transport log reference must be given.")

        anchor = AnchoredTransportLog(
            **log.model_dump(),
            anchored_at=format_utc(self.clock.now()),
            anchoring_site=site_id,
            anchoring_org=caller_org
        )
        dpp.anchored_transport_logs.append(anchor)
        self.event_log.log_anchored(dpp, anchor, site_id)

        if anchor.alert_summary and dpp.status.kind == StatusKind.IN_TRANSIT \
                and not dpp.status.transport_alert:
            dpp.status = RecordStatus.in_transit(dpp.status.organization, True)

        apply_reconciliation(dpp)
        return anchor

    # ==========================================================================
    # RECEIVING
    # ==========================================================================

    def acknowledge(
        self,
        dpp: DigitalProductPassport,
        caller_org: str,
        recipient_site_id: Optional[str] = None,
        inspection: Optional[QualityEntryCreate] = None
    ) -> DigitalProductPassport:
        """
        Recipient confirms arrival. The status is set directly and not
        reconciled, so a transport alert stays visible on the passport.
        """
        self._require_incoming(dpp, caller_org)

        alert = dpp.status.transport_alert
        dpp.status = RecordStatus.accepted(caller_org, alert)

        disposition = Disposition.IN_POSSESSION_NON_CONFORMANT \
            if alert else Disposition.IN_POSSESSION
        self.event_log.received(dpp, recipient_site_id, disposition)

        if inspection is not None and inspection.test_name:
            self.quality_ledger.record_inspection(
                dpp, inspection, caller_org, recipient_site_id)

        logger.info(f"DPP {dpp.id} accepted by {caller_org}, status {dpp.status.label}")
        return dpp

    def reject(
        self,
        dpp: DigitalProductPassport,
        caller_org: str,
        reason: str,
        recipient_site_id: Optional[str] = None
    ) -> DigitalProductPassport:
        """Recipient refuses the goods. Rejected passports are frozen."""
        self._require_incoming(dpp, caller_org)

        if not reason:
            raise RecordValidationError("A rejection needs a reason.")

        dpp.status = RecordStatus.rejected(caller_org)
        self.event_log.received(
            dpp, recipient_site_id, Disposition.NON_CONFORMANT,
            extensions={"rejection_reason": reason}
        )

        logger.warning(f"DPP {dpp.id} rejected by {caller_org}: {reason}")
        return dpp
