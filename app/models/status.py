from enum import Enum
from typing import Optional
from pydantic import computed_field
from sqlmodel import SQLModel


class StatusKind(str, Enum):
    DRAFT = "draft"
    AWAITING_MANDATORY_CHECKS = "awaiting_mandatory_checks"
    RELEASED = "released"
    RELEASED_WITH_DEVIATIONS = "released_with_deviations"
    RELEASED_WITH_QUALITY_DEVIATIONS = "released_with_quality_deviations"
    RELEASED_WITH_TRANSPORT_ALERT = "released_with_transport_alert"
    RELEASED_WITH_MULTIPLE_ISSUES = "released_with_multiple_issues"
    BLOCKED = "blocked"
    IN_TRANSIT = "in_transit"
    ACCEPTED_AT_RECIPIENT = "accepted_at_recipient"
    CONSUMED_IN_TRANSFORMATION = "consumed_in_transformation"
    REJECTED = "rejected"


RELEASED_FAMILY = {
    StatusKind.RELEASED,
    StatusKind.RELEASED_WITH_DEVIATIONS,
    StatusKind.RELEASED_WITH_QUALITY_DEVIATIONS,
    StatusKind.RELEASED_WITH_TRANSPORT_ALERT,
    StatusKind.RELEASED_WITH_MULTIPLE_ISSUES,
}

FROZEN_KINDS = {
    StatusKind.BLOCKED,
    StatusKind.CONSUMED_IN_TRANSFORMATION,
    StatusKind.REJECTED,
}

_FIXED_LABELS = {
    StatusKind.DRAFT: "Draft",
    StatusKind.RELEASED: "Released",
    StatusKind.RELEASED_WITH_DEVIATIONS: "ReleasedWithDeviations",
    StatusKind.RELEASED_WITH_QUALITY_DEVIATIONS: "ReleasedWithQualityDeviations",
    StatusKind.RELEASED_WITH_TRANSPORT_ALERT: "ReleasedWithTransportAlert",
    StatusKind.RELEASED_WITH_MULTIPLE_ISSUES: "ReleasedWithMultipleIssues",
    StatusKind.BLOCKED: "Blocked",
}

TRANSPORT_ALERT_SUFFIX = "_TransportAlert"


class RecordStatus(SQLModel):
    """
    Tagged status of a passport.

    `kind` selects the variant; the remaining fields carry the data that
    belongs to it (target organization while in transit, the consuming
    transformation, the transport alert flag, number of open checks).
    The `label` is the human readable rendering used on timelines and in
    legacy integrations, e.g. 'InTransitTo_Org4MSP_TransportAlert'.
    """
    kind: StatusKind
    organization: Optional[str] = None
    transformation_id: Optional[str] = None
    transport_alert: bool = False
    open_checks: int = 0

    # --- Constructors -----------------------------------------------------

    @classmethod
    def draft(cls) -> "RecordStatus":
        return cls(kind=StatusKind.DRAFT)

    @classmethod
    def awaiting(cls, open_checks: int) -> "RecordStatus":
        return cls(kind=StatusKind.AWAITING_MANDATORY_CHECKS, open_checks=open_checks)

    @classmethod
    def of(cls, kind: StatusKind) -> "RecordStatus":
        return cls(kind=kind)

    @classmethod
    def blocked(cls) -> "RecordStatus":
        return cls(kind=StatusKind.BLOCKED)

    @classmethod
    def in_transit(cls, organization: str, transport_alert: bool = False) -> "RecordStatus":
        return cls(kind=StatusKind.IN_TRANSIT, organization=organization,
                   transport_alert=transport_alert)

    @classmethod
    def accepted(cls, organization: str, transport_alert: bool = False) -> "RecordStatus":
        return cls(kind=StatusKind.ACCEPTED_AT_RECIPIENT, organization=organization,
                   transport_alert=transport_alert)

    @classmethod
    def consumed(cls, transformation_id: str) -> "RecordStatus":
        return cls(kind=StatusKind.CONSUMED_IN_TRANSFORMATION,
                   transformation_id=transformation_id)

    @classmethod
    def rejected(cls, organization: str) -> "RecordStatus":
        return cls(kind=StatusKind.REJECTED, organization=organization)

    # --- Classification ---------------------------------------------------

    @property
    def is_frozen(self) -> bool:
        return self.kind in FROZEN_KINDS

    @property
    def is_in_flight(self) -> bool:
        """
        In transit, or accepted while still carrying a transport alert.
        Only a hard failure may move the status during this window.
        """
        if self.kind == StatusKind.IN_TRANSIT:
            return True
        return self.kind == StatusKind.ACCEPTED_AT_RECIPIENT and self.transport_alert

    @property
    def is_released(self) -> bool:
        return self.kind in RELEASED_FAMILY

    @property
    def is_transferable(self) -> bool:
        if self.kind == StatusKind.BLOCKED:
            return False
        return (
            self.is_released
            or self.transport_alert
            or self.kind == StatusKind.ACCEPTED_AT_RECIPIENT
        )

    @property
    def is_transformation_input(self) -> bool:
        return self.is_released or self.kind == StatusKind.ACCEPTED_AT_RECIPIENT

    @computed_field
    @property
    def label(self) -> str:
        suffix = TRANSPORT_ALERT_SUFFIX if self.transport_alert else ""

        if self.kind in _FIXED_LABELS:
            return _FIXED_LABELS[self.kind]
        if self.kind == StatusKind.AWAITING_MANDATORY_CHECKS:
            return f"AwaitingMandatoryChecks ({self.open_checks} open)"
        if self.kind == StatusKind.IN_TRANSIT:
            return f"InTransitTo_{self.organization}{suffix}"
        if self.kind == StatusKind.ACCEPTED_AT_RECIPIENT:
            return f"AcceptedAtRecipient{suffix}"
        if self.kind == StatusKind.CONSUMED_IN_TRANSFORMATION:
            return f"ConsumedInTransformation_{self.transformation_id}"
        return f"RejectedBy_{self.organization}"

    def __str__(self) -> str:
        return self.label
