"""
Specification matcher.

Classifies one reported result against the test specification attached to a
passport, or accepts an outcome asserted by an external lab system / oracle.
All outcome vocabulary checks live here so the rest of the ledger never
inspects outcome strings directly.
"""
import math
import re
from enum import Enum
from typing import Optional, Tuple, Union
from sqlmodel import SQLModel

from app.models.dpp import QualityEntryCreate, QualitySpecification
from app.models.vocabulary import (
    ALERT_MARKER, DEVIATION_PREFIX, INFO_PREFIX, Disposition, EvaluationOutcome
)


ASSERTED_DEFAULT_COMMENT = "Outcome asserted by external system."

# Plain decimal or exponent notation, nothing around it
NUMERIC_RESULT = re.compile(r"[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


class EvaluationPhase(str, Enum):
    RELEASE = "release"   # regular quality recording
    INITIAL = "initial"   # first assessment of a transformation output


class ComputedOutcome(SQLModel):
    """The outcome must be derived from the specification."""
    phase: EvaluationPhase = EvaluationPhase.RELEASE


class AssertedOutcome(SQLModel):
    """The submitter supplied an authoritative outcome."""
    value: str
    comment: str = ""


Outcome = Union[ComputedOutcome, AssertedOutcome]


# ==========================================================================
# OUTCOME CLASSIFICATION
# ==========================================================================

def is_critical_failure(outcome: str) -> bool:
    return outcome.startswith(EvaluationOutcome.FAIL.value) or \
        outcome == EvaluationOutcome.INVALID_FORMAT.value


def is_deviation(outcome: str) -> bool:
    return outcome.startswith(DEVIATION_PREFIX)


def is_alerting(outcome: str) -> bool:
    return ALERT_MARKER in outcome


def is_non_conformant(outcome: str) -> bool:
    """Failures, deviations and invalid results. These raise a quality alert."""
    return is_critical_failure(outcome) or is_deviation(outcome)


def is_assertable(outcome: Optional[str]) -> bool:
    if not outcome:
        return False
    return (
        outcome == EvaluationOutcome.PASS.value
        or is_non_conformant(outcome)
        or outcome in (EvaluationOutcome.INFO_SENSOR_DATA.value,
                       EvaluationOutcome.INFO_NO_SPEC.value)
    )


def disposition_for(outcome: str) -> Disposition:
    if outcome == EvaluationOutcome.PASS.value:
        return Disposition.CONFORMANT
    if is_non_conformant(outcome):
        return Disposition.NON_CONFORMANT
    return Disposition.ACTIVE


# ==========================================================================
# RESOLUTION
# ==========================================================================

def outcome_for_submission(
    entry: QualityEntryCreate,
    phase: EvaluationPhase = EvaluationPhase.RELEASE
) -> Outcome:
    """
    Decides whether the submission carries its own final outcome.
    Anything outside the assertable vocabulary is discarded and recomputed.
    """
    if is_assertable(entry.evaluation_outcome):
        return AssertedOutcome(
            value=entry.evaluation_outcome,
            comment=entry.evaluation_comment or ""
        )
    return ComputedOutcome(phase=phase)


def resolve_outcome(
    outcome: Outcome,
    entry: QualityEntryCreate,
    spec: Optional[QualitySpecification]
) -> Tuple[str, str]:
    """Returns the final (outcome, comment) pair for a quality entry."""
    if isinstance(outcome, AssertedOutcome):
        comment = outcome.comment
        if not comment and outcome.value != EvaluationOutcome.PASS.value \
                and not outcome.value.startswith(INFO_PREFIX):
            comment = ASSERTED_DEFAULT_COMMENT
        return outcome.value, comment

    return match_specification(entry, spec, outcome.phase)


def match_specification(
    entry: QualityEntryCreate,
    spec: Optional[QualitySpecification],
    phase: EvaluationPhase = EvaluationPhase.RELEASE
) -> Tuple[str, str]:
    if spec is None:
        return (
            EvaluationOutcome.INFO_NO_SPEC.value,
            f"No specification for test '{entry.test_name}' on this passport. "
            f"Result stored as informative."
        )

    initial = phase == EvaluationPhase.INITIAL

    if spec.is_numeric:
        outcome, comment = _match_numeric(entry, spec, initial)
    else:
        outcome, comment = _match_expected_value(entry, spec, initial)

    # Unit mismatch never changes the outcome, it only annotates it
    if (
        outcome != EvaluationOutcome.INVALID_FORMAT.value
        and spec.unit and entry.unit
        and spec.unit.lower() != entry.unit.lower()
    ):
        note = (f"Unit mismatch for '{entry.test_name}': specification "
                f"'{spec.unit}', entry '{entry.unit}'.")
        comment = f"{comment} {note}" if comment else note

    return outcome, comment


def _match_numeric(entry: QualityEntryCreate, spec: QualitySpecification, initial: bool) -> Tuple[str, str]:
    if NUMERIC_RESULT.fullmatch(entry.result):
        value = float(entry.result)
    else:
        value = math.nan

    if not math.isfinite(value):
        return (
            EvaluationOutcome.INVALID_FORMAT.value,
            f"Result '{entry.result}' for test '{entry.test_name}' is not numeric."
        )

    unit = spec.unit or ""
    if spec.lower_limit is not None and value < spec.lower_limit:
        outcome = EvaluationOutcome.DEVIATION_LOW_INITIAL if initial \
            else EvaluationOutcome.DEVIATION_LOW
        return (
            outcome.value,
            f"Value {value:.4f} below lower limit {spec.lower_limit:.4f} {unit}".rstrip() + "."
        )
    if spec.upper_limit is not None and value > spec.upper_limit:
        outcome = EvaluationOutcome.DEVIATION_HIGH_INITIAL if initial \
            else EvaluationOutcome.DEVIATION_HIGH
        return (
            outcome.value,
            f"Value {value:.4f} above upper limit {spec.upper_limit:.4f} {unit}".rstrip() + "."
        )
    return EvaluationOutcome.PASS.value, ""


def _match_expected_value(entry: QualityEntryCreate, spec: QualitySpecification, initial: bool) -> Tuple[str, str]:
    expected = spec.expected_value or ""
    if entry.result.casefold() == expected.casefold():
        return EvaluationOutcome.PASS.value, ""

    outcome = EvaluationOutcome.FAIL_INITIAL if initial else EvaluationOutcome.FAIL
    return outcome.value, f"Expected '{expected}', received '{entry.result}'."
