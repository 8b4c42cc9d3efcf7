import json
from typing import Optional, Tuple
from loguru import logger

from app.core.clock import SystemClock, format_utc
from app.core.config import settings
from app.core.notifications import NotificationSink
from app.models.dpp import (
    DigitalProductPassport, QualityEntry, QualityEntryCreate, QualitySpecification
)
from app.models.vocabulary import EvaluationOutcome
from app.services.evaluation import (
    AssertedOutcome, EvaluationPhase, disposition_for, is_assertable,
    is_non_conformant, outcome_for_submission, resolve_outcome
)
from app.services.events import TraceabilityEventLog


class QualityLedger:
    """
    Turns raw quality submissions into finalized, append-only quality entries
    and keeps the passport's mandatory-check bookkeeping in step.
    """

    def __init__(
        self,
        event_log: TraceabilityEventLog,
        notifier: Optional[NotificationSink] = None,
        clock: Optional[SystemClock] = None
    ):
        self.event_log = event_log
        self.notifier = notifier
        self.clock = clock or event_log.clock

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def _with_defaults(self, submission: QualityEntryCreate, caller_org: str) -> QualityEntryCreate:
        updates = {}
        if not submission.timestamp:
            updates["timestamp"] = format_utc(self.clock.now())
        if not submission.performing_org:
            updates["performing_org"] = caller_org
        return submission.model_copy(update=updates)

    def _entry(self, submission: QualityEntryCreate, outcome: str, comment: str) -> QualityEntry:
        return QualityEntry(
            **submission.model_dump(exclude={"evaluation_outcome", "evaluation_comment"}),
            evaluation_outcome=outcome,
            evaluation_comment=comment
        )

    def finalize(
        self,
        dpp: DigitalProductPassport,
        submission: QualityEntryCreate,
        caller_org: str,
        phase: EvaluationPhase = EvaluationPhase.RELEASE
    ) -> Tuple[QualityEntry, Optional[QualitySpecification]]:
        """Fills defaults and evaluates the submission. Does not touch the passport."""
        submission = self._with_defaults(submission, caller_org)
        spec = dpp.find_specification(submission.test_name)

        outcome, comment = resolve_outcome(
            outcome_for_submission(submission, phase), submission, spec)
        return self._entry(submission, outcome, comment), spec

    def settle_mandatory_check(
        self,
        dpp: DigitalProductPassport,
        entry: QualityEntry,
        spec: Optional[QualitySpecification]
    ) -> bool:
        """Closes the open check for a mandatory test that passed."""
        if spec is None or not spec.is_mandatory:
            return False
        if entry.evaluation_outcome != EvaluationOutcome.PASS.value:
            return False
        if entry.test_name not in dpp.open_mandatory_checks:
            return False

        dpp.open_mandatory_checks = [
            name for name in dpp.open_mandatory_checks if name != entry.test_name
        ]
        logger.info(
            f"DPP {dpp.id}: mandatory check '{entry.test_name}' satisfied, "
            f"{len(dpp.open_mandatory_checks)} open")
        return True

    def raise_alert(self, dpp: DigitalProductPassport, entry: QualityEntry):
        """Fire-and-forget side channel for non-conformant results."""
        if self.notifier is None:
            return

        payload = {
            "dpp_id": dpp.id,
            "product_identifier": dpp.product_identifier,
            "batch": dpp.batch,
            "product_type_id": dpp.product_type_id,
            "test_name": entry.test_name,
            "result": entry.result,
            "evaluation_outcome": entry.evaluation_outcome,
            "evaluation_comment": entry.evaluation_comment,
            "timestamp": entry.timestamp,
            "system_id": entry.system_id,
            "performing_org": entry.performing_org,
        }
        logger.warning(
            f"Quality alert for DPP {dpp.id}: {entry.test_name} -> {entry.evaluation_outcome}")
        self.notifier.emit(settings.quality_alert_topic,
                           json.dumps(payload).encode("utf-8"))

    # ==========================================================================
    # OPERATIONS
    # ==========================================================================

    def record(
        self,
        dpp: DigitalProductPassport,
        submission: QualityEntryCreate,
        caller_org: str,
        site_id: Optional[str] = None
    ) -> QualityEntry:
        """
        Evaluates and appends one quality entry, logs the inspection event,
        closes a satisfied mandatory check and raises an alert if needed.
        The caller reconciles the status afterwards.
        """
        entry, spec = self.finalize(dpp, submission, caller_org)
        dpp.quality.append(entry)

        self.event_log.inspected(
            dpp, entry, site_id, disposition_for(entry.evaluation_outcome))
        self.settle_mandatory_check(dpp, entry, spec)

        if is_non_conformant(entry.evaluation_outcome):
            self.raise_alert(dpp, entry)
        return entry

    def record_initial(
        self,
        dpp: DigitalProductPassport,
        submission: QualityEntryCreate,
        caller_org: str
    ) -> QualityEntry:
        """First assessment of a freshly transformed output (`*_INITIAL` vocabulary)."""
        entry, spec = self.finalize(
            dpp, submission, caller_org, EvaluationPhase.INITIAL)
        dpp.quality.append(entry)
        self.settle_mandatory_check(dpp, entry, spec)

        if is_non_conformant(entry.evaluation_outcome):
            self.raise_alert(dpp, entry)
        return entry

    def record_inspection(
        self,
        dpp: DigitalProductPassport,
        submission: QualityEntryCreate,
        caller_org: str,
        site_id: Optional[str] = None
    ) -> QualityEntry:
        """
        Incoming inspection by the recipient. A reported outcome is kept only
        when it is assertable; anything else is tagged INCOMING_INSPECTION_DATA.
        """
        submission = self._with_defaults(submission, caller_org)

        if is_assertable(submission.evaluation_outcome):
            outcome, comment = resolve_outcome(
                AssertedOutcome(value=submission.evaluation_outcome,
                                comment=submission.evaluation_comment or ""),
                submission, None)
        else:
            outcome = EvaluationOutcome.INCOMING_INSPECTION_DATA.value
            comment = submission.evaluation_comment or ""

        entry = self._entry(submission, outcome, comment)
        dpp.quality.append(entry)
        self.event_log.inspected(
            dpp, entry, site_id, disposition_for(outcome),
            extension_key="inspection_data_by_recipient")

        if is_non_conformant(outcome):
            self.raise_alert(dpp, entry)
        return entry
