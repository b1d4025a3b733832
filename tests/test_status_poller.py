"""Tests for the newsletter status poller."""

import asyncio

import pytest

from newsletter_studio.infrastructure.error_handling import NewsletterNotFoundError
from newsletter_studio.models.newsletter import NewsletterStatus
from newsletter_studio.services.status_poller import StatusPoller


@pytest.mark.asyncio
async def test_poller_returns_settled_record(database, newsletter):
    await database.begin_generation(newsletter.id, "gen-1")
    settled = []

    async with StatusPoller(database, newsletter.id, interval=0.01, on_settled=settled.append) as poller:
        await asyncio.sleep(0.05)
        assert poller.running
        await database.complete_generation(newsletter.id, "<p>ok</p>", "ok", generation_id="gen-1")
        record = await asyncio.wait_for(poller.wait(), timeout=5)

    assert record.status == NewsletterStatus.FINAL.value
    assert record.html_content == "<p>ok</p>"
    assert settled == [record]
    assert not poller.running


@pytest.mark.asyncio
async def test_poller_stops_on_first_non_generating_status(database, newsletter):
    poller = StatusPoller(database, newsletter.id, interval=0.01)

    record = await asyncio.wait_for(poller.wait(), timeout=5)

    assert record.status == NewsletterStatus.DRAFT.value


@pytest.mark.asyncio
async def test_leaving_scope_cancels_polling(database, newsletter):
    await database.begin_generation(newsletter.id, "gen-1")

    async with StatusPoller(database, newsletter.id, interval=0.01) as poller:
        await asyncio.sleep(0.03)
        assert poller.running

    assert not poller.running
    assert poller._task.cancelled()


@pytest.mark.asyncio
async def test_poller_unknown_newsletter(database):
    with pytest.raises(NewsletterNotFoundError):
        await asyncio.wait_for(StatusPoller(database, "missing", interval=0.01).wait(), timeout=5)
