"""Tests for generation context assembly."""

import pytest

from newsletter_studio.infrastructure.error_handling import GenerationValidationError
from newsletter_studio.models.newsletter import NewsletterRecord, ProjectSettings
from newsletter_studio.services.context_builder import (
    ContextBuilder,
    parse_links,
    style_directive,
    tagged_directives,
    validate_generation_inputs,
)


def _project(**fields) -> ProjectSettings:
    defaults = {"id": "p-1", "name": "Weekly Digest", "author_name": "Ana Souza"}
    defaults.update(fields)
    return ProjectSettings(**defaults)


class TestValidation:
    """Input checks run before a generation may start."""

    def test_parse_links_strips_and_skips_blank_lines(self):
        assert parse_links("  https://a.com \n\n\thttps://b.com\n   \n") == ["https://a.com", "https://b.com"]

    def test_valid_inputs_return_links(self):
        assert validate_generation_inputs("Issue #1", "https://a.com\nnot-a-link") == [
            "https://a.com",
            "not-a-link",
        ]

    def test_blank_title_rejected(self):
        with pytest.raises(GenerationValidationError) as exc_info:
            validate_generation_inputs("   ", "https://a.com")
        assert exc_info.value.problems == ["Title is required"]

    def test_missing_links_rejected(self):
        with pytest.raises(GenerationValidationError) as exc_info:
            validate_generation_inputs("Issue #1", "\n  \n")
        assert exc_info.value.problems == ["At least one link is required"]

    def test_links_without_http_rejected(self):
        with pytest.raises(GenerationValidationError) as exc_info:
            validate_generation_inputs("Issue #1", "example.com\nftp://files.example.com")
        assert "valid link" in exc_info.value.problems[0]

    def test_all_problems_reported_together(self):
        with pytest.raises(GenerationValidationError) as exc_info:
            validate_generation_inputs("", "")
        assert len(exc_info.value.problems) == 2


class TestDirectives:
    """Voice and free-text directives derived from project settings."""

    def test_institutional_voice_with_logo(self):
        directive = style_directive(_project(newsletter_type="institutional", logo_url="https://cdn/logo.png"))
        assert "institutional" in directive
        assert "https://cdn/logo.png" in directive

    def test_institutional_voice_without_logo(self):
        directive = style_directive(_project(newsletter_type="institutional"))
        assert "logo" not in directive

    def test_personal_voice_signs_off_as_author(self):
        directive = style_directive(_project(newsletter_type="personal"))
        assert "first person" in directive
        assert "sign-off from Ana Souza" in directive

    def test_only_set_directives_are_tagged(self):
        directives = tagged_directives(_project(tone="Playful", structure="  ", html_template="<html></html>"))
        assert directives == {"TONE": "Playful", "HTML_TEMPLATE": "<html></html>"}


class TestContextBuilder:
    """Context built from stored records."""

    @pytest.fixture
    async def spreadsheet(self, database, project):
        sheet = await database.create_spreadsheet(project.id, "Events", "Upcoming events")
        await database.replace_spreadsheet_data(
            sheet.id,
            columns=[
                {"name": "event", "column_type": "text", "column_order": 0},
                {"name": "attendees", "column_type": "number", "column_order": 1},
            ],
            rows=[
                {"data": {"event": f"Meetup {i}", "attendees": i, "stale": "x"}, "row_order": i}
                for i in range(15)
            ],
        )
        return sheet

    @pytest.mark.asyncio
    async def test_build_includes_links_notes_and_directives(self, database, project, newsletter):
        builder = ContextBuilder(database)
        context = await builder.build(
            NewsletterRecord.model_validate(newsletter),
            ProjectSettings.model_validate(project),
        )

        assert context.links == ["https://a.com", "https://b.com"]
        assert context.directives == {"TONE": "Friendly and concise"}
        assert context.project_data == []

        system_prompt = context.render_system_prompt()
        assert "[STYLE]" in system_prompt
        assert "[TONE]\nFriendly and concise" in system_prompt
        assert "[PROJECT_DATA]" not in system_prompt

        user_prompt = context.render_user_prompt()
        assert "1. https://a.com" in user_prompt
        assert "2. https://b.com" in user_prompt
        assert "Notes" not in user_prompt

    @pytest.mark.asyncio
    async def test_prompt_shows_limited_rows_with_true_total(self, database, project, newsletter, spreadsheet):
        builder = ContextBuilder(database, row_limit=10)
        context = await builder.build(
            NewsletterRecord.model_validate(newsletter),
            ProjectSettings.model_validate(project),
        )

        dataset = context.project_data[0]
        assert dataset.columns == ["event", "attendees"]
        assert dataset.total_rows == 15
        assert dataset.rows[0] == {"event": "Meetup 0", "attendees": 0}

        system_prompt = context.render_system_prompt()
        assert "Spreadsheet \"Events\" - Upcoming events" in system_prompt
        assert "Rows: showing 10 of 15" in system_prompt
        assert "Meetup 9" in system_prompt
        assert "Meetup 10" not in system_prompt

    @pytest.mark.asyncio
    async def test_webhook_payload_carries_all_rows(self, database, project, newsletter, spreadsheet):
        builder = ContextBuilder(database)
        context = await builder.build(
            NewsletterRecord.model_validate(newsletter),
            ProjectSettings.model_validate(project),
        )

        payload = context.to_webhook_payload(callback_url="https://studio.example/newsletter-callback")
        assert payload["newsletter_id"] == newsletter.id
        assert payload["links"] == ["https://a.com", "https://b.com"]
        assert payload["project"]["author_name"] == "Ana Souza"
        assert "webhook_url" not in payload["project"]
        assert len(payload["project_data"][0]["rows"]) == 15
        assert payload["project_data"][0]["total_rows"] == 15
        assert payload["callback_url"] == "https://studio.example/newsletter-callback"

        assert "callback_url" not in context.to_webhook_payload()

    @pytest.mark.asyncio
    async def test_build_rejects_invalid_inputs(self, database, project):
        draft = await database.create_newsletter(project.id, title="Issue #2", links_raw="no links here")
        builder = ContextBuilder(database)
        with pytest.raises(GenerationValidationError):
            await builder.build(
                NewsletterRecord.model_validate(draft),
                ProjectSettings.model_validate(project),
            )
