from loguru import logger

from app.models.dpp import DigitalProductPassport
from app.models.status import RecordStatus, StatusKind
from app.services.evaluation import is_alerting, is_critical_failure, is_deviation
from app.models.vocabulary import ALERT_MARKER


def has_critical_failure(dpp: DigitalProductPassport) -> bool:
    return any(is_critical_failure(qe.evaluation_outcome) for qe in dpp.quality)


def has_quality_deviation(dpp: DigitalProductPassport) -> bool:
    return any(is_deviation(qe.evaluation_outcome) for qe in dpp.quality)


def has_transport_alert(dpp: DigitalProductPassport) -> bool:
    if any(ALERT_MARKER in entry.status for entry in dpp.transport_log):
        return True
    return any(log.alert_summary for log in dpp.anchored_transport_logs)


def reconcile(dpp: DigitalProductPassport) -> RecordStatus:
    """
    Derives the aggregate status from quality history, open mandatory checks
    and transport alerts. Pure: the passport is not modified.

    Evaluation order:
      1. Frozen statuses (blocked, consumed, rejected) never change.
      2. While in flight only a hard failure (with no open checks) blocks.
      3. Otherwise: failure > open checks > deviations > released.
    """
    current = dpp.status

    if current.is_frozen:
        return current

    if current.is_in_flight:
        if not dpp.open_mandatory_checks and has_critical_failure(dpp):
            return RecordStatus.blocked()
        return current

    if has_critical_failure(dpp):
        return RecordStatus.blocked()

    if dpp.open_mandatory_checks:
        return RecordStatus.awaiting(len(dpp.open_mandatory_checks))

    quality_deviation = has_quality_deviation(dpp)
    transport_alert = has_transport_alert(dpp)
    alerting_outcome = any(is_alerting(qe.evaluation_outcome) for qe in dpp.quality)

    if quality_deviation and transport_alert:
        return RecordStatus.of(StatusKind.RELEASED_WITH_MULTIPLE_ISSUES)
    if quality_deviation:
        return RecordStatus.of(StatusKind.RELEASED_WITH_QUALITY_DEVIATIONS)
    if transport_alert:
        return RecordStatus.of(StatusKind.RELEASED_WITH_TRANSPORT_ALERT)
    if alerting_outcome:
        return RecordStatus.of(StatusKind.RELEASED_WITH_DEVIATIONS)
    return RecordStatus.of(StatusKind.RELEASED)


def apply_reconciliation(dpp: DigitalProductPassport) -> RecordStatus:
    """Recomputes and stores the status on the passport. Returns the new status."""
    previous = dpp.status
    dpp.status = reconcile(dpp)

    if dpp.status != previous:
        logger.info(
            f"DPP {dpp.id} status {previous.label} -> {dpp.status.label}")
    return dpp.status
