from typing import Any, Dict, List, Optional

from app.core.clock import EventIdFactory, SystemClock, format_offset, format_utc
from app.models.dpp import (
    AnchoredTransportLog, DigitalProductPassport, QualityEntry,
    TraceabilityEvent, TransportConditionLogEntry
)
from app.models.vocabulary import (
    ALERT_MARKER, BizStep, Disposition, EventAction, EventType
)


def sgln(site_id: Optional[str]) -> Optional[str]:
    """
    Expands a site identifier (GLN) into an SGLN URN.
    Example: '4012345000009' -> 'urn:epc:id:sgln:4012345000009.0.0'
    """
    if not site_id:
        return None
    return f"urn:epc:id:sgln:{site_id}.0.0"


class TraceabilityEventLog:
    """
    Builds EPCIS-style events and appends them to a passport's event log.
    The log is append-only: nothing here edits or removes an existing event.
    """

    def __init__(self, clock: Optional[SystemClock] = None, id_factory: Optional[EventIdFactory] = None):
        self.clock = clock or SystemClock()
        self.id_factory = id_factory or EventIdFactory()

    def _append(
        self,
        dpp: DigitalProductPassport,
        id_prefix: str,
        biz_step: BizStep,
        action: Optional[EventAction],
        disposition: Optional[Disposition],
        site_id: Optional[str],
        extensions: Optional[Dict[str, Any]] = None,
        event_type: EventType = EventType.OBJECT,
        epc_list: Optional[List[str]] = None,
        input_epc_list: Optional[List[str]] = None,
        output_epc_list: Optional[List[str]] = None,
        biz_location: Optional[str] = None,
        event_time: Optional[str] = None,
    ) -> TraceabilityEvent:
        now = self.clock.now()
        location = sgln(site_id)

        if epc_list is None and event_type == EventType.OBJECT:
            epc_list = [dpp.product_identifier]

        event = TraceabilityEvent(
            event_id=self.id_factory.new_id(id_prefix),
            event_type=event_type,
            event_time=event_time or format_utc(now),
            event_time_zone_offset=format_offset(now),
            biz_step=biz_step,
            action=action,
            epc_list=epc_list or [],
            input_epc_list=input_epc_list or [],
            output_epc_list=output_epc_list or [],
            disposition=disposition,
            read_point=location,
            biz_location=location if biz_location is None else biz_location,
            extensions=extensions or {},
        )
        dpp.events.append(event)
        return event

    # ==========================================================================
    # LIFECYCLE EVENTS
    # ==========================================================================

    def commissioned(self, dpp: DigitalProductPassport, site_id: Optional[str]) -> TraceabilityEvent:
        return self._append(
            dpp, "create", BizStep.COMMISSIONING, EventAction.ADD,
            Disposition.ACTIVE, site_id
        )

    def inspected(
        self,
        dpp: DigitalProductPassport,
        entry: QualityEntry,
        site_id: Optional[str],
        disposition: Disposition,
        extension_key: str = "recorded_quality_data"
    ) -> TraceabilityEvent:
        return self._append(
            dpp, "qc", BizStep.INSPECTING, EventAction.OBSERVE,
            disposition, site_id,
            extensions={extension_key: entry.model_dump()}
        )

    def transported(
        self,
        dpp: DigitalProductPassport,
        entry: TransportConditionLogEntry,
        site_id: Optional[str]
    ) -> TraceabilityEvent:
        disposition = Disposition.NON_CONFORMANT_IN_TRANSIT \
            if ALERT_MARKER in entry.status else Disposition.IN_TRANSIT
        return self._append(
            dpp, "transport", BizStep.TRANSPORTING, EventAction.OBSERVE,
            disposition, site_id,
            extensions={"transport_condition_update": entry.model_dump()},
            event_time=entry.timestamp
        )

    def log_anchored(
        self,
        dpp: DigitalProductPassport,
        anchor: AnchoredTransportLog,
        site_id: Optional[str]
    ) -> TraceabilityEvent:
        disposition = Disposition.NON_CONFORMANT_IN_TRANSIT \
            if anchor.alert_summary else Disposition.IN_TRANSIT
        return self._append(
            dpp, "log", BizStep.STORING, EventAction.ADD,
            disposition, site_id,
            extensions={"anchored_transport_log": anchor.model_dump()},
            event_time=anchor.anchored_at
        )

    def transformed(
        self,
        dpp: DigitalProductPassport,
        input_epcs: List[str],
        site_id: Optional[str],
        extensions: Optional[Dict[str, Any]] = None
    ) -> TraceabilityEvent:
        return self._append(
            dpp, "tf", BizStep.TRANSFORMING, None, None, site_id,
            extensions=extensions,
            event_type=EventType.TRANSFORMATION,
            input_epc_list=list(input_epcs),
            output_epc_list=[dpp.product_identifier],
        )

    def shipped(
        self,
        dpp: DigitalProductPassport,
        new_owner: str,
        site_id: Optional[str]
    ) -> TraceabilityEvent:
        # No business location while the goods are on the road
        return self._append(
            dpp, "ship", BizStep.SHIPPING, EventAction.OBSERVE,
            Disposition.IN_TRANSIT, site_id,
            extensions={
                "intended_recipient": new_owner,
                "original_status": dpp.status.label,
            },
            biz_location=""
        )

    def received(
        self,
        dpp: DigitalProductPassport,
        site_id: Optional[str],
        disposition: Disposition,
        extensions: Optional[Dict[str, Any]] = None
    ) -> TraceabilityEvent:
        return self._append(
            dpp, "recv", BizStep.RECEIVING, EventAction.ADD,
            disposition, site_id, extensions=extensions
        )
