"""Tests for the command-line interface."""

import asyncio

import pytest

from newsletter_studio.main import StudioCLI, create_parser
from newsletter_studio.models.newsletter import NewsletterStatus
from newsletter_studio.services.generation import GenerationService

from conftest import StubBackend


class CancellableBackend(StubBackend):
    """Held backend that records being cancelled."""

    cancelled = False

    async def run(self, context):
        try:
            return await super().run(context)
        except asyncio.CancelledError:
            self.cancelled = True
            raise


def test_parser_commands():
    parser = create_parser()

    args = parser.parse_args(["generate", "n-1", "--wait"])
    assert (args.command, args.newsletter_id, args.wait) == ("generate", "n-1", True)

    args = parser.parse_args(["import", "s-1", "people.csv"])
    assert (args.spreadsheet_id, args.file.name) == ("s-1", "people.csv")


class TestGenerateWait:
    """generate --wait runs the workflow and polls until it settles."""

    @pytest.mark.asyncio
    async def test_wait_returns_final_record(self, config, database, newsletter):
        async with StudioCLI(config) as cli:
            cli.service = GenerationService(cli.database, config, backend_factory=lambda project: StubBackend())
            succeeded = await asyncio.wait_for(cli.generate(newsletter.id, wait=True), timeout=5)

        assert succeeded
        assert (await database.get_newsletter(newsletter.id)).status == NewsletterStatus.FINAL.value

    @pytest.mark.asyncio
    async def test_run_is_reaped_when_cancelled_elsewhere(self, config, database, newsletter):
        backend = CancellableBackend(hold=True)

        async with StudioCLI(config) as cli:
            cli.service = GenerationService(cli.database, config, backend_factory=lambda project: backend)
            generation_id = await cli.service.request_generation(newsletter.id)

            async def cancel_from_another_client():
                await backend.started.wait()
                await database.cancel_generation(newsletter.id)

            canceller = asyncio.create_task(cancel_from_another_client())
            record = await asyncio.wait_for(cli._run_and_watch(newsletter.id, generation_id), timeout=5)
            await canceller

        assert record.status == NewsletterStatus.DRAFT.value
        assert backend.cancelled
