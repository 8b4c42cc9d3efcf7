"""
Tests for multi-input transformations (provenance).
"""

import pytest

from app.core.exceptions import (
    RecordAuthorizationError, RecordConflictError, RecordNotFoundError,
    RecordSerializationError, RecordValidationError
)
from app.db.schema import LedgerState
from app.models.dpp import (
    DPPCreate, QualityRecordRequest, ReceiptAcknowledgement, TransferRequest,
    TransformationCreate
)
from app.models.status import StatusKind
from app.models.vocabulary import BizStep, EventType

from factories import mfi_spec, quality, visual_spec


@pytest.fixture
def released_inputs(service, org3, new_dpp):
    """Two released records A and B owned by the compounder."""
    for dpp_id, serial in [("A", "1001"), ("B", "1002")]:
        service.create_record(org3, new_dpp(dpp_id, [visual_spec()], serial=serial))
    return ["A", "B"]


def compound(specifications=None, dpp_id: str = "C") -> DPPCreate:
    return DPPCreate(
        id=dpp_id,
        product_identifier="urn:epc:id:sgtin:4012345.022222.2001",
        product_type_id="PP-COMPOUND",
        manufacturer_site_id="4012345000004",
        batch="CMP-1",
        specifications=specifications if specifications is not None else [visual_spec()],
    )


class TestRecordTransformation:
    def test_two_inputs_into_compound(self, service, org3, released_inputs) -> None:
        result = service.record_transformation(org3, TransformationCreate(
            output=compound(), input_record_ids=released_inputs))

        assert result.consumed_input_ids == ["A", "B"]
        for dpp_id in released_inputs:
            assert service.query_record(dpp_id).status.label == "ConsumedInTransformation_C"

        output = service.query_record("C")
        assert output.status.kind == StatusKind.RELEASED
        assert output.owner_org == "Org3MSP"
        assert output.input_record_ids == ["A", "B"]

    def test_transformation_event(self, service, org3, released_inputs) -> None:
        service.record_transformation(org3, TransformationCreate(
            output=compound(), input_record_ids=["B", "A"]))
        events = service.list_events("C")

        assert [e.biz_step for e in events] == [BizStep.COMMISSIONING, BizStep.TRANSFORMING]
        event = events[-1]
        assert event.event_type == EventType.TRANSFORMATION
        assert event.action is None
        assert event.input_epc_list == [
            "urn:epc:id:sgtin:4012345.011111.1002",
            "urn:epc:id:sgtin:4012345.011111.1001",
        ]
        assert event.output_epc_list == ["urn:epc:id:sgtin:4012345.022222.2001"]
        assert event.epc_list == []

    def test_initial_quality_closes_check(self, service, org3, released_inputs) -> None:
        result = service.record_transformation(org3, TransformationCreate(
            output=compound([mfi_spec()]),
            input_record_ids=released_inputs,
            initial_quality=quality("MFI", "14"),
        ))

        output = result.output
        assert output.open_mandatory_checks == []
        assert output.status.kind == StatusKind.RELEASED
        initial = output.events[-1].extensions["initial_compound_quality"]
        assert initial["evaluation_outcome"] == "PASS"

    def test_initial_quality_uses_initial_vocabulary(self, service, org3, sink, released_inputs) -> None:
        result = service.record_transformation(org3, TransformationCreate(
            output=compound([mfi_spec()]),
            input_record_ids=released_inputs,
            initial_quality=quality("MFI", "25"),
        ))

        output = result.output
        assert output.quality[0].evaluation_outcome == "DEVIATION_HIGH_INITIAL"
        assert output.status.label == "AwaitingMandatoryChecks (1 open)"
        assert sink.messages[0][1]["evaluation_outcome"] == "DEVIATION_HIGH_INITIAL"

    def test_accepted_input_is_eligible(self, service, org1, org3, new_dpp) -> None:
        service.create_record(org1, new_dpp("A", [visual_spec()]))
        service.transfer_record(org1, "A", TransferRequest(new_owner="Org3MSP"))
        service.acknowledge_receipt(org3, "A", ReceiptAcknowledgement())

        result = service.record_transformation(org3, TransformationCreate(
            output=compound(), input_record_ids=["A"]))
        assert result.consumed_input_ids == ["A"]


class TestTransformationValidation:
    """Nothing is written when validation fails."""

    def assert_untouched(self, service, ids) -> None:
        for dpp_id in ids:
            assert service.query_record(dpp_id).status.kind == StatusKind.RELEASED
        with pytest.raises(RecordNotFoundError):
            service.query_record("C")

    def test_ineligible_input_rejected(self, service, org3, new_dpp, released_inputs) -> None:
        service.create_record(org3, new_dpp("D", [mfi_spec()]))

        with pytest.raises(RecordConflictError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(), input_record_ids=["A", "B", "D"]))
        self.assert_untouched(service, released_inputs)

    def test_released_input_of_other_owner_rejected(self, service, org1, org3, new_dpp, released_inputs) -> None:
        service.create_record(org1, new_dpp("D", [visual_spec()], serial="1003"))

        with pytest.raises(RecordAuthorizationError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(), input_record_ids=["A", "B", "D"]))
        self.assert_untouched(service, released_inputs + ["D"])
        assert service.query_record("D").owner_org == "Org1MSP"

    def test_input_accepted_elsewhere_rejected(self, service, org1, org3, org4, new_dpp) -> None:
        service.create_record(org1, new_dpp("A", [visual_spec()]))
        service.transfer_record(org1, "A", TransferRequest(new_owner="Org4MSP"))
        service.acknowledge_receipt(org4, "A", ReceiptAcknowledgement())

        with pytest.raises(RecordAuthorizationError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(), input_record_ids=["A"]))
        assert service.query_record("A").status.label == "AcceptedAtRecipient"
        with pytest.raises(RecordNotFoundError):
            service.query_record("C")

    def test_consumed_input_cannot_be_reused(self, service, org3, released_inputs) -> None:
        service.record_transformation(org3, TransformationCreate(
            output=compound(), input_record_ids=["A"]))

        with pytest.raises(RecordConflictError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(dpp_id="C2"), input_record_ids=["A", "B"]))
        assert service.query_record("B").status.kind == StatusKind.RELEASED

    def test_missing_input(self, service, org3, released_inputs) -> None:
        with pytest.raises(RecordNotFoundError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(), input_record_ids=["A", "nope"]))
        self.assert_untouched(service, released_inputs)

    def test_existing_output(self, service, org3, released_inputs) -> None:
        with pytest.raises(RecordConflictError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(dpp_id="A"), input_record_ids=["B"]))

    def test_invalid_output_identifier(self, service, org3, released_inputs) -> None:
        output = compound()
        output.product_identifier = "not-a-urn"
        with pytest.raises(RecordValidationError):
            service.record_transformation(org3, TransformationCreate(
                output=output, input_record_ids=released_inputs))
        self.assert_untouched(service, released_inputs)

    @pytest.mark.parametrize("input_ids", [[], ["A", "A"], ["A", "C"]])
    def test_bad_input_lists(self, service, org3, released_inputs, input_ids) -> None:
        with pytest.raises(RecordValidationError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(), input_record_ids=input_ids))
        self.assert_untouched(service, released_inputs)

    def test_corrupt_input_aborts(self, service, session, org3, released_inputs) -> None:
        row = session.get(LedgerState, "DPP-B")
        row.value = b"{not json"
        session.add(row)
        session.commit()

        with pytest.raises(RecordSerializationError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(), input_record_ids=released_inputs))
        assert service.query_record("A").status.kind == StatusKind.RELEASED


class TestTransformationAtomicity:
    def test_failure_after_consuming_rolls_back(self, service, org3, released_inputs, monkeypatch) -> None:
        original_save = service.repository.save

        def failing_save(dpp):
            if dpp.id == "C":
                raise RecordSerializationError("Passport 'C' could not be encoded.")
            original_save(dpp)

        monkeypatch.setattr(service.repository, "save", failing_save)

        with pytest.raises(RecordSerializationError):
            service.record_transformation(org3, TransformationCreate(
                output=compound(), input_record_ids=released_inputs))

        monkeypatch.undo()
        for dpp_id in released_inputs:
            assert service.query_record(dpp_id).status.kind == StatusKind.RELEASED
        with pytest.raises(RecordNotFoundError):
            service.query_record("C")

    def test_quality_on_consumed_input_keeps_status(self, service, org3, released_inputs) -> None:
        service.record_transformation(org3, TransformationCreate(
            output=compound(), input_record_ids=released_inputs))
        service.record_quality_data(org3, "A", QualityRecordRequest(entry=quality("Visual", "NOK")))

        assert service.query_record("A").status.label == "ConsumedInTransformation_C"
