import asyncio
from typing import Optional

import pytest

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.database import init_database
from newsletter_studio.models.context import GenerationContext
from newsletter_studio.models.newsletter import GenerationResult
from newsletter_studio.services.backends import GenerationBackend
from newsletter_studio.services.generation import GenerationService

LINKS = "https://a.com\nhttps://b.com"


class StubBackend(GenerationBackend):
    """Backend returning a fixed result, optionally held until ``release()``."""

    name = "stub"

    def __init__(self, result: Optional[GenerationResult] = None, hold: bool = False):
        self.result = result or GenerationResult.success("<p>ok</p>", "ok")
        self.contexts = []
        self.started = asyncio.Event()
        self._gate = asyncio.Event()
        if not hold:
            self._gate.set()

    def release(self) -> None:
        self._gate.set()

    async def run(self, context: GenerationContext) -> GenerationResult:
        self.contexts.append(context)
        self.started.set()
        await self._gate.wait()
        return self.result


class CrashingBackend(GenerationBackend):
    name = "crashing"

    async def run(self, context: GenerationContext) -> GenerationResult:
        raise RuntimeError("backend exploded")


@pytest.fixture
def config(tmp_path):
    """Settings pointing at a throwaway SQLite file."""
    return ApplicationConfig(
        database_url=f"sqlite:///{tmp_path / 'studio.db'}",
        openai_api_key="",
        public_base_url="",
        poll_interval=0.01,
        log_format="text",
    )


@pytest.fixture
async def database(config):
    db = await init_database(config)
    yield db
    await db.close()


@pytest.fixture
async def project(database):
    return await database.create_project(
        name="Weekly Digest",
        author_name="Ana Souza",
        author_bio="Editor",
        language="pt-BR",
        tone="Friendly and concise",
    )


@pytest.fixture
async def newsletter(database, project):
    return await database.create_newsletter(
        project.id,
        title="Issue #1",
        links_raw=LINKS,
        notes="",
    )


@pytest.fixture
def backend():
    return StubBackend()


@pytest.fixture
def service(database, config, backend):
    return GenerationService(database, config, backend_factory=lambda project: backend)
