"""
End-to-end tests through the HTTP surface.
"""

from fastapi import status

from app.core.config import settings
from app.services import dpp as dpp_service

from factories import mfi_spec

BASE = "/api/v1/dpps"


def create_payload(dpp_id: str, serial: str = "1001", specifications=None) -> dict:
    specs = specifications if specifications is not None else [mfi_spec()]
    return {
        "id": dpp_id,
        "product_identifier": f"urn:epc:id:sgtin:4012345.011111.{serial}",
        "product_type_id": "PP-GRANULATE",
        "manufacturer_site_id": "4012345000002",
        "batch": "B-1",
        "production_date": "2026-05-01",
        "specifications": [s.model_dump() for s in specs],
    }


class TestIndex:
    def test_index(self, client) -> None:
        response = client.get("/api/v1/")
        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"status": "API is running"}

    def test_readiness(self, client) -> None:
        response = client.get("/api/v1/readiness")
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["database"] == "online"
        assert body["records"] == 0


class TestAuthentication:
    def test_invalid_token(self, client) -> None:
        response = client.post(
            f"{BASE}/", json=create_payload("A"),
            headers={"Authorization": "Bearer not-a-token"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_missing_token(self, client) -> None:
        response = client.post(f"{BASE}/", json=create_payload("A"))
        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)


class TestPassportLifecycle:
    def test_create_and_query(self, client, auth_headers) -> None:
        response = client.post(f"{BASE}/", json=create_payload("A"), headers=auth_headers("Org1MSP"))
        assert response.status_code == status.HTTP_201_CREATED

        body = response.json()
        assert body["owner_org"] == "Org1MSP"
        assert body["status"]["kind"] == "awaiting_mandatory_checks"
        assert body["status"]["label"] == "AwaitingMandatoryChecks (1 open)"
        assert body["quality"] == []
        assert body["transport_log"] == []
        assert body["input_record_ids"] == []

        summary = client.get(f"{BASE}/A/status").json()
        assert summary["open_mandatory_checks"] == ["MFI"]

    def test_duplicate_create_conflicts(self, client, auth_headers) -> None:
        client.post(f"{BASE}/", json=create_payload("A"), headers=auth_headers("Org1MSP"))
        response = client.post(f"{BASE}/", json=create_payload("A"), headers=auth_headers("Org1MSP"))
        assert response.status_code == status.HTTP_409_CONFLICT

    def test_invalid_identifier(self, client, auth_headers) -> None:
        payload = create_payload("A")
        payload["product_identifier"] = "4012345.011111.1001"
        response = client.post(f"{BASE}/", json=payload, headers=auth_headers("Org1MSP"))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_passport(self, client) -> None:
        response = client.get(f"{BASE}/missing")
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert "missing" in response.json()["detail"]

    def test_quality_then_transfer_and_receipt(self, client, auth_headers, sink) -> None:
        supplier = auth_headers("Org1MSP")
        customer = auth_headers("Org4MSP")
        client.post(f"{BASE}/", json=create_payload("A"), headers=supplier)

        response = client.post(f"{BASE}/A/quality", json={
            "entry": {"test_name": "MFI", "result": "14.8", "unit": "g/10min"},
            "recording_site_id": "4012345000002",
        }, headers=supplier)
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["evaluation_outcome"] == "PASS"

        response = client.post(f"{BASE}/A/transfer", json={
            "new_owner": "Org4MSP", "shipper_site_id": "4012345000002"}, headers=supplier)
        assert response.json()["status"]["label"] == "InTransitTo_Org4MSP"

        response = client.post(f"{BASE}/A/transport", json={
            "entry": {"log_type": "Temperature", "value": "31", "unit": "C", "status": "TEMP_ALERT"},
        }, headers=supplier)
        assert response.status_code == status.HTTP_201_CREATED

        response = client.post(f"{BASE}/A/acknowledge", json={
            "recipient_site_id": "4012345000005"}, headers=supplier)
        assert response.status_code == status.HTTP_403_FORBIDDEN

        response = client.post(f"{BASE}/A/acknowledge", json={
            "recipient_site_id": "4012345000005"}, headers=customer)
        assert response.json()["status"]["label"] == "AcceptedAtRecipient_TransportAlert"

        events = client.get(f"{BASE}/A/events").json()
        assert [e["biz_step"].rsplit(":", 1)[-1] for e in events] == [
            "commissioning", "inspecting", "shipping", "transporting", "receiving"]
        assert sink.messages == []

    def test_transformation(self, client, auth_headers) -> None:
        compounder = auth_headers("Org3MSP")
        for dpp_id, serial in [("A", "1001"), ("B", "1002")]:
            client.post(f"{BASE}/", json=create_payload(dpp_id, serial, []), headers=compounder)

        response = client.post(f"{BASE}/transformations", json={
            "output": create_payload("C", "2001", []),
            "input_record_ids": ["A", "B"],
        }, headers=compounder)
        assert response.status_code == status.HTTP_201_CREATED

        body = response.json()
        assert body["consumed_input_ids"] == ["A", "B"]
        assert body["output"]["status"]["label"] == "Released"
        assert client.get(f"{BASE}/A").json()["status"]["label"] == "ConsumedInTransformation_C"

    def test_anchor_and_reject(self, client, auth_headers) -> None:
        supplier = auth_headers("Org1MSP")
        client.post(f"{BASE}/", json=create_payload("A", specifications=[]), headers=supplier)
        client.post(f"{BASE}/A/transfer", json={"new_owner": "Org4MSP"}, headers=supplier)

        response = client.post(f"{BASE}/A/transport-logs", json={
            "log": {"file_ref": "ipfs://QmLog", "file_hash": "sha256:00", "alert_summary": False},
        }, headers=supplier)
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["anchoring_org"] == "Org1MSP"

        response = client.post(f"{BASE}/A/reject", json={
            "reason": "Seal broken"}, headers=auth_headers("Org4MSP"))
        assert response.json()["status"]["label"] == "RejectedBy_Org4MSP"

    def test_qr_code(self, client, auth_headers) -> None:
        client.post(f"{BASE}/", json=create_payload("A"), headers=auth_headers("Org1MSP"))
        response = client.get(f"{BASE}/A/qr")

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"] == "image/png"
        assert response.content.startswith(b"\x89PNG")

    def test_qr_code_links_to_read_route(self, client, auth_headers, monkeypatch) -> None:
        encoded = []
        monkeypatch.setattr(dpp_service, "render_qr_png", lambda data: encoded.append(data) or b"")
        client.post(f"{BASE}/", json=create_payload("A"), headers=auth_headers("Org1MSP"))
        client.get(f"{BASE}/A/qr")

        assert encoded == [f"{settings.public_url}{BASE}/A"]
        response = client.get(encoded[0].removeprefix(settings.public_url))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["id"] == "A"
