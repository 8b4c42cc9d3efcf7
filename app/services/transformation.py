from typing import List, Optional
from loguru import logger

from app.core.exceptions import (
    RecordAuthorizationError, RecordConflictError, RecordValidationError
)
from app.db.store import DPPRepository
from app.models.dpp import (
    DigitalProductPassport, TransformationCreate, TransformationResult
)
from app.models.status import RecordStatus, StatusKind
from app.services.commissioning import (
    commission, validate_product_identifier, validate_specifications
)
from app.services.identity import CallerIdentity
from app.services.quality import QualityLedger
from app.services.status import apply_reconciliation


class TransformationManager:
    """
    Consumes N input passports and produces one compound output passport.

    Runs in two phases. Validate-all loads every input and checks the output
    parameters without writing anything. Commit-all marks the inputs consumed,
    creates the output and persists it. The writes go through the caller's
    session, so the caller commits or rolls back all of them together.
    """

    def __init__(self, repository: DPPRepository, quality_ledger: QualityLedger):
        self.repository = repository
        self.quality_ledger = quality_ledger
        self.event_log = quality_ledger.event_log

    def _require_custody(self, dpp: DigitalProductPassport, caller_org: str, output_id: str):
        """Only the organization holding an input may consume it."""
        held_by_caller = dpp.owner_org == caller_org
        if dpp.status.kind == StatusKind.ACCEPTED_AT_RECIPIENT:
            held_by_caller = held_by_caller and dpp.status.organization == caller_org

        if not held_by_caller:
            logger.warning(
                f"Transformation {output_id}: {caller_org} may not consume input "
                f"{dpp.id} (owner '{dpp.owner_org}', status '{dpp.status.label}')")
            raise RecordAuthorizationError(
                f"Organization '{caller_org}' does not hold input passport '{dpp.id}'.")

    def _validate(self, caller_org: str, data: TransformationCreate) -> List[DigitalProductPassport]:
        output_id = data.output.id

        if self.repository.exists(output_id):
            raise RecordConflictError(f"Output passport '{output_id}' already exists.")
        validate_product_identifier(data.output.product_identifier)
        validate_specifications(data.output.specifications)

        if not data.input_record_ids:
            raise RecordValidationError("A transformation needs at least one input.")
        if len(set(data.input_record_ids)) != len(data.input_record_ids):
            raise RecordValidationError("Input passports must not repeat.")
        if output_id in data.input_record_ids:
            raise RecordValidationError("Output passport cannot be its own input.")

        inputs = []
        for input_id in data.input_record_ids:
            dpp = self.repository.load(input_id)
            if not dpp.status.is_transformation_input:
                logger.warning(
                    f"Transformation {output_id}: input {input_id} "
                    f"({dpp.product_identifier}) has status '{dpp.status.label}'")
                raise RecordConflictError(
                    f"Input passport '{input_id}' has status '{dpp.status.label}'. "
                    f"Only released or accepted passports can be transformed."
                )
            self._require_custody(dpp, caller_org, output_id)
            inputs.append(dpp)
        return inputs

    def transform(self, caller: CallerIdentity, data: TransformationCreate) -> TransformationResult:
        inputs = self._validate(caller.current_organization(), data)
        output_id = data.output.id

        consumed: List[str] = []
        input_epcs: List[str] = []
        try:
            for dpp in inputs:
                input_epcs.append(dpp.product_identifier)
                dpp.status = RecordStatus.consumed(output_id)
                self.repository.save(dpp)
                consumed.append(dpp.id)
                logger.info(f"DPP {dpp.id} consumed by transformation {output_id}")

            output = self._build_output(caller, data, input_epcs)
            self.repository.save(output)

        except Exception:
            logger.exception(
                f"Transformation {output_id} failed after consuming {consumed}")
            raise

        logger.info(
            f"Transformation {output_id} recorded from {consumed}, status {output.status.label}")
        return TransformationResult(output=output, consumed_input_ids=consumed)

    def _build_output(
        self,
        caller: CallerIdentity,
        data: TransformationCreate,
        input_epcs: List[str]
    ) -> DigitalProductPassport:
        organization = caller.current_organization()
        output = commission(data.output, organization, self.event_log, reconcile=False)
        output.input_record_ids = list(data.input_record_ids)

        extensions = {}
        initial: Optional[object] = None
        if data.initial_quality is not None and data.initial_quality.test_name:
            initial = self.quality_ledger.record_initial(
                output, data.initial_quality, organization)
            extensions["initial_compound_quality"] = initial.model_dump()

        self.event_log.transformed(
            output, input_epcs, data.output.manufacturer_site_id, extensions)

        apply_reconciliation(output)
        return output
