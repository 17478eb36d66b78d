"""Integration tests for certificate routes."""

import pytest
from httpx import AsyncClient

from core.rasterizer import RasterizationError
from tests.factories import FAKE_PDF, certificate_design, design_document, text_node

pytestmark = pytest.mark.integration

RECIPIENT = {
    "recipient_name": "Ada Lovelace",
    "recipient_email": "ada@example.com",
    "recipient_data": {"course": "Cloud 101"},
}


async def _campaign(client: AsyncClient, design_data: dict | None = None) -> dict:
    design = await client.post(
        "/api/designs",
        json={
            "name": "Diploma",
            "status": "active",
            "design_data": design_data if design_data is not None else certificate_design(),
        },
    )
    campaign = await client.post(
        "/api/campaigns",
        json={"design_id": design.json()["id"], "name": "Spring cohort"},
    )
    await client.post(f"/api/campaigns/{campaign.json()['id']}/execute")
    return campaign.json()


async def _certificate(client: AsyncClient, design_data: dict | None = None) -> dict:
    campaign = await _campaign(client, design_data)
    response = await client.post(
        "/api/certificates", json={"campaign_id": campaign["id"], **RECIPIENT}
    )
    assert response.status_code == 201
    return response.json()


def _texts(payload: dict) -> list[str]:
    return [e["content"] for e in payload["elements"] if e["type"] == "text"]


class TestCreateCertificate:
    async def test_creates_pending_certificate(
        self, client: AsyncClient, background_renders
    ):
        certificate = await _certificate(client)

        assert certificate["status"] == "pending"
        assert certificate["has_payload"] is True
        assert certificate["has_pdf"] is False
        assert len(certificate["verification_token"]) == 64
        assert background_renders.batches == [[certificate["id"]]]

    async def test_empty_design_is_not_scheduled(
        self, client: AsyncClient, background_renders
    ):
        campaign = await _campaign(client, design_data={})

        response = await client.post(
            "/api/certificates", json={"campaign_id": campaign["id"], **RECIPIENT}
        )

        assert response.status_code == 201
        assert response.json()["has_payload"] is False
        assert background_renders.batches == []

    async def test_unknown_campaign(self, client: AsyncClient):
        response = await client.post(
            "/api/certificates", json={"campaign_id": "missing", **RECIPIENT}
        )
        assert response.status_code == 404

    async def test_invalid_email(self, client: AsyncClient):
        campaign = await _campaign(client)
        response = await client.post(
            "/api/certificates",
            json={**RECIPIENT, "campaign_id": campaign["id"], "recipient_email": "nope"},
        )
        assert response.status_code == 422


class TestBulkCreate:
    async def test_creates_all(self, client: AsyncClient, background_renders):
        campaign = await _campaign(client)
        recipients = [
            {"recipient_name": f"Recipient {i}", "recipient_email": f"r{i}@example.com"}
            for i in range(4)
        ]

        response = await client.post(
            "/api/certificates/bulk",
            json={"campaign_id": campaign["id"], "recipients": recipients},
        )

        assert response.status_code == 201
        data = response.json()
        assert data["renderable"] == 4
        ids = [c["id"] for c in data["certificates"]]
        assert len(ids) == 4
        assert background_renders.batches == [ids]

    async def test_requires_recipients(self, client: AsyncClient):
        campaign = await _campaign(client)
        response = await client.post(
            "/api/certificates/bulk",
            json={"campaign_id": campaign["id"], "recipients": []},
        )
        assert response.status_code == 422


class TestGetCertificate:
    async def test_get(self, client: AsyncClient):
        certificate = await _certificate(client)

        response = await client.get(f"/api/certificates/{certificate['id']}")

        assert response.status_code == 200
        assert response.json()["recipient_name"] == "Ada Lovelace"

    async def test_not_found(self, client: AsyncClient):
        response = await client.get("/api/certificates/missing")
        assert response.status_code == 404

    async def test_payload(self, client: AsyncClient):
        certificate = await _certificate(client)

        response = await client.get(f"/api/certificates/{certificate['id']}/payload")

        assert response.status_code == 200
        payload = response.json()["payload"]
        assert _texts(payload) == ["Certificate for Ada Lovelace", "Completed Cloud 101"]
        assert payload["layout"]["orientation"] == "landscape"

    async def test_payload_not_ready(self, client: AsyncClient):
        certificate = await _certificate(client, design_data={})

        response = await client.get(f"/api/certificates/{certificate['id']}/payload")

        assert response.status_code == 409

    async def test_html(self, client: AsyncClient):
        certificate = await _certificate(client)

        response = await client.get(f"/api/certificates/{certificate['id']}/html")

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert response.headers["cache-control"] == "no-store"
        assert "Certificate for Ada Lovelace" in response.text

    async def test_html_not_ready(self, client: AsyncClient):
        certificate = await _certificate(client, design_data={})
        response = await client.get(f"/api/certificates/{certificate['id']}/html")
        assert response.status_code == 409


class TestGeneratePdf:
    async def test_generate_issue_download_verify(
        self, client: AsyncClient, route_rasterizer
    ):
        certificate = await _certificate(client)

        response = await client.post(f"/api/certificates/{certificate['id']}/pdf")

        assert response.status_code == 200
        assert response.json() == {
            "certificate_id": certificate["id"],
            "status": "issued",
            "size_bytes": len(FAKE_PDF),
            "attempts": 1,
        }
        assert len(route_rasterizer.calls) == 1

        download = await client.get(f"/api/certificates/{certificate['id']}/pdf")
        assert download.status_code == 200
        assert download.headers["content-type"] == "application/pdf"
        assert download.content == FAKE_PDF

        verified = await client.get(
            f"/api/certificates/verify/{certificate['verification_token']}"
        )
        assert verified.json()["is_valid"] is True
        assert verified.json()["certificate"]["has_pdf"] is True

    async def test_failure_returns_502_and_records_error(
        self, client: AsyncClient, route_rasterizer
    ):
        certificate = await _certificate(client)
        route_rasterizer.failures.append(RasterizationError("page crashed"))

        response = await client.post(f"/api/certificates/{certificate['id']}/pdf")

        assert response.status_code == 502
        assert response.json() == {
            "detail": "PDF generation failed",
            "reason": "page crashed",
        }

        stored = (await client.get(f"/api/certificates/{certificate['id']}")).json()
        assert stored["status"] == "pending"
        assert stored["render_error"] == "page crashed"
        assert stored["has_payload"] is True

    async def test_not_renderable(self, client: AsyncClient):
        certificate = await _certificate(client, design_data={})
        response = await client.post(f"/api/certificates/{certificate['id']}/pdf")
        assert response.status_code == 409

    async def test_download_before_generation(self, client: AsyncClient):
        certificate = await _certificate(client)
        response = await client.get(f"/api/certificates/{certificate['id']}/pdf")
        assert response.status_code == 404


class TestRegenerate:
    async def test_regenerate_uses_current_design(self, client: AsyncClient):
        certificate = await _certificate(client)
        await client.put(
            f"/api/designs/{certificate['design_id']}",
            json={"design_data": design_document(text_node("Awarded to {{recipient_name}}"))},
        )

        before = await client.get(f"/api/certificates/{certificate['id']}/payload")
        assert _texts(before.json()["payload"])[0] == "Certificate for Ada Lovelace"

        response = await client.post(f"/api/certificates/{certificate['id']}/regenerate")
        assert response.status_code == 200

        after = await client.get(f"/api/certificates/{certificate['id']}/payload")
        assert _texts(after.json()["payload"]) == ["Awarded to Ada Lovelace"]

    async def test_not_found(self, client: AsyncClient):
        response = await client.post("/api/certificates/missing/regenerate")
        assert response.status_code == 404


class TestRevokeAndVerify:
    async def test_revoked_certificate_no_longer_verifies(self, client: AsyncClient):
        certificate = await _certificate(client)
        await client.post(f"/api/certificates/{certificate['id']}/pdf")

        response = await client.post(
            f"/api/certificates/{certificate['id']}/revoke",
            json={"reason": "Issued in error"},
        )

        assert response.status_code == 200
        assert response.json()["status"] == "revoked"
        assert response.json()["revocation_reason"] == "Issued in error"

        verified = await client.get(
            f"/api/certificates/verify/{certificate['verification_token']}"
        )
        assert verified.json()["is_valid"] is False

    async def test_pending_certificate_does_not_verify(self, client: AsyncClient):
        certificate = await _certificate(client)

        response = await client.get(
            f"/api/certificates/verify/{certificate['verification_token']}"
        )

        assert response.status_code == 200
        assert response.json()["is_valid"] is False
        assert response.json()["certificate"] is None

    async def test_unknown_token(self, client: AsyncClient):
        response = await client.get("/api/certificates/verify/unknown")
        assert response.json()["is_valid"] is False
        assert "not found" in response.json()["message"]
