"""Tests for the HTTP API."""

import httpx
import pytest

from newsletter_studio.api import create_app
from newsletter_studio.models.newsletter import NewsletterStatus
from newsletter_studio.services.spreadsheet_import import SpreadsheetImporter


@pytest.fixture
async def client(service, config):
    app = create_app(service=service, importer=SpreadsheetImporter(service.database), config=config)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestNewsletterEndpoints:
    """Generation lifecycle over HTTP."""

    @pytest.mark.asyncio
    async def test_generate_runs_in_background(self, client, newsletter):
        response = await client.post(f"/newsletters/{newsletter.id}/generate")

        assert response.status_code == 202
        assert response.json()["status"] == "generating"

        record = (await client.get(f"/newsletters/{newsletter.id}")).json()
        assert record["status"] == NewsletterStatus.FINAL.value
        assert record["html_content"] == "<p>ok</p>"

    @pytest.mark.asyncio
    async def test_generate_with_invalid_inputs(self, client, database, project):
        draft = await database.create_newsletter(project.id, title="  ", links_raw="")

        response = await client.post(f"/newsletters/{draft.id}/generate")

        assert response.status_code == 400
        assert response.json()["problems"] == ["Title is required", "At least one link is required"]
        assert (await client.get(f"/newsletters/{draft.id}")).json()["status"] == "draft"

    @pytest.mark.asyncio
    async def test_get_unknown_newsletter(self, client):
        response = await client.get("/newsletters/missing")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_cancel(self, client, service, newsletter):
        await service.request_generation(newsletter.id)

        response = await client.post(f"/newsletters/{newsletter.id}/cancel")

        assert response.status_code == 200
        assert response.json()["status"] == "draft"
        assert response.json()["error_message"] == "Generation cancelled by user"

    @pytest.mark.asyncio
    async def test_cancel_draft_conflicts(self, client, newsletter):
        response = await client.post(f"/newsletters/{newsletter.id}/cancel")
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_patch_while_generating_conflicts(self, client, service, newsletter):
        await service.request_generation(newsletter.id)

        response = await client.patch(f"/newsletters/{newsletter.id}", json={"title": "New"})

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_patch_draft(self, client, newsletter):
        response = await client.patch(f"/newsletters/{newsletter.id}", json={"notes": "Lead with the launch"})

        assert response.status_code == 200
        assert response.json()["notes"] == "Lead with the launch"


class TestCallbackEndpoint:
    """POST /newsletter-callback."""

    @pytest.mark.asyncio
    async def test_missing_newsletter_id(self, client):
        response = await client.post("/newsletter-callback", json={"html_content": "<p>x</p>"})
        assert response.status_code == 400
        assert response.json() == {"error": "newsletter_id is required"}

    @pytest.mark.asyncio
    async def test_invalid_body(self, client):
        response = await client.post(
            "/newsletter-callback", content=b"not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_newsletter(self, client):
        response = await client.post("/newsletter-callback", json={"newsletter_id": "missing", "error": "x"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_not_generating_is_acknowledged_without_write(self, client, newsletter):
        response = await client.post("/newsletter-callback", json={
            "newsletter_id": newsletter.id,
            "html_content": "<p>late</p>",
            "text_content": "late",
        })

        assert response.status_code == 200
        assert response.json() == {"success": False, "message": "Newsletter is no longer generating"}
        record = (await client.get(f"/newsletters/{newsletter.id}")).json()
        assert record["status"] == "draft"
        assert record["html_content"] is None

    @pytest.mark.asyncio
    async def test_error_callback(self, client, service, newsletter):
        await service.request_generation(newsletter.id)

        response = await client.post("/newsletter-callback", json={
            "newsletter_id": newsletter.id,
            "error": "model overloaded",
        })

        assert response.status_code == 200
        assert response.json()["success"] is True
        record = (await client.get(f"/newsletters/{newsletter.id}")).json()
        assert record["status"] == "error"
        assert record["error_message"] == "Webhook error: model overloaded"

    @pytest.mark.asyncio
    async def test_success_requires_both_contents(self, client, service, newsletter):
        await service.request_generation(newsletter.id)

        response = await client.post("/newsletter-callback", json={
            "newsletter_id": newsletter.id,
            "html_content": "<p>only html</p>",
        })

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_success_callback(self, client, service, newsletter):
        await service.request_generation(newsletter.id)

        response = await client.post("/newsletter-callback", json={
            "newsletter_id": newsletter.id,
            "html_content": "<p>done</p>",
            "text_content": "done",
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Newsletter updated"}
        record = (await client.get(f"/newsletters/{newsletter.id}")).json()
        assert record["status"] == "final"
        assert record["text_content"] == "done"


class TestSpreadsheetEndpoints:
    """Upload and column type override."""

    @pytest.mark.asyncio
    async def test_import_and_override(self, client, database, project):
        sheet = await database.create_spreadsheet(project.id, "Team")

        response = await client.post(
            f"/spreadsheets/{sheet.id}/import",
            files={"file": ("team.csv", b"name,active\nAna,yes\nBruno,no\n", "text/csv")},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["row_count"] == 2
        assert [c["column_type"] for c in body["columns"]] == ["text", "boolean"]

        column = (await database.get_columns(sheet.id))[1]
        override = await client.patch(
            f"/spreadsheets/{sheet.id}/columns/{column.id}", json={"column_type": "text"}
        )
        assert override.status_code == 200
        assert (await database.get_columns(sheet.id))[1].column_type == "text"

    @pytest.mark.asyncio
    async def test_import_unsupported_file(self, client, database, project):
        sheet = await database.create_spreadsheet(project.id, "Team")

        response = await client.post(
            f"/spreadsheets/{sheet.id}/import",
            files={"file": ("team.pdf", b"%PDF", "application/pdf")},
        )

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_override_unknown_column(self, client, database, project):
        sheet = await database.create_spreadsheet(project.id, "Team")

        response = await client.patch(f"/spreadsheets/{sheet.id}/columns/missing", json={"column_type": "date"})

        assert response.status_code == 404
