"""Generation context assembly: links, notes, project directives and project data."""

import re
from typing import Dict, List

from newsletter_studio.infrastructure.database import Database
from newsletter_studio.infrastructure.error_handling import GenerationValidationError
from newsletter_studio.infrastructure.logging import LoggerMixin
from newsletter_studio.models.context import GenerationContext
from newsletter_studio.models.newsletter import NewsletterKind, NewsletterRecord, ProjectSettings
from newsletter_studio.models.spreadsheet import SpreadsheetDataset

URL_PATTERN = re.compile(r"https?://")

INSTITUTIONAL_VOICE = (
    "Write in a corporate, neutral and institutional voice. Speak on behalf of the "
    "organisation, avoid the first person singular and personal opinions."
)
INSTITUTIONAL_LOGO = (
    "Place the organisation logo at the top of the HTML header using this image: {logo_url}"
)
PERSONAL_VOICE = (
    "Write in the first person from the author's perspective ({author_name}). "
    "The voice is personal and author-centric, sharing opinions and experience."
)
PERSONAL_SIGN_OFF = "Close the newsletter with a personal sign-off from {author_name}."

# Optional free-text project fields, by directive tag.
DIRECTIVE_FIELDS = (
    ("TONE", "tone"),
    ("STRUCTURE", "structure"),
    ("DESIGN_GUIDELINES", "design_guidelines"),
    ("HTML_TEMPLATE", "html_template"),
)


def parse_links(links_raw: str) -> List[str]:
    """Non-blank lines of ``links_raw``, in order."""
    return [line.strip() for line in (links_raw or "").splitlines() if line.strip()]


def validate_generation_inputs(title: str, links_raw: str) -> List[str]:
    """Return the links list, or raise when the inputs cannot be generated.

    Raises:
        GenerationValidationError: blank title, no links, or no http(s) link
    """
    problems = []
    if not (title or "").strip():
        problems.append("Title is required")

    links = parse_links(links_raw)
    if not links:
        problems.append("At least one link is required")
    elif not any(URL_PATTERN.search(link) for link in links):
        problems.append("At least one valid link (starting with http:// or https://) is required")

    if problems:
        raise GenerationValidationError(problems)
    return links


def style_directive(project: ProjectSettings) -> str:
    """Voice instructions for the project's newsletter kind."""
    if project.newsletter_type == NewsletterKind.INSTITUTIONAL.value:
        parts = [INSTITUTIONAL_VOICE]
        if project.logo_url:
            parts.append(INSTITUTIONAL_LOGO.format(logo_url=project.logo_url))
    else:
        author_name = project.author_name or "the author"
        parts = [
            PERSONAL_VOICE.format(author_name=author_name),
            PERSONAL_SIGN_OFF.format(author_name=author_name),
        ]
    return "\n".join(parts)


def tagged_directives(project: ProjectSettings) -> Dict[str, str]:
    """Project free-text directives that are set, keyed by tag."""
    directives = {}
    for tag, field_name in DIRECTIVE_FIELDS:
        value = getattr(project, field_name)
        if value and value.strip():
            directives[tag] = value
    return directives


class ContextBuilder(LoggerMixin):
    """Builds a fresh GenerationContext for each generation attempt."""

    def __init__(self, database: Database, row_limit: int = 10):
        self.database = database
        self.row_limit = row_limit

    async def build(self, newsletter: NewsletterRecord, project: ProjectSettings) -> GenerationContext:
        links = validate_generation_inputs(newsletter.title, newsletter.links_raw)
        project_data = await self.load_project_data(project.id)

        context = GenerationContext(
            newsletter_id=newsletter.id,
            newsletter_title=newsletter.title,
            links=links,
            notes=newsletter.notes or "",
            project=project,
            project_data=project_data,
            style_directive=style_directive(project),
            directives=tagged_directives(project),
            row_limit=self.row_limit,
        )

        self.logger.debug(
            "Generation context built",
            newsletter_id=newsletter.id,
            links=len(links),
            spreadsheets=len(project_data),
            directives=sorted(context.directives),
        )
        return context

    async def load_project_data(self, project_id: str) -> List[SpreadsheetDataset]:
        """Every spreadsheet of the project, rows restricted to known columns."""
        datasets = []
        for spreadsheet in await self.database.list_spreadsheets(project_id):
            columns = await self.database.get_columns(spreadsheet.id)
            rows = await self.database.get_rows(spreadsheet.id)
            names = [column.name for column in columns]

            projected = []
            for row in rows:
                data = row.data or {}
                projected.append({name: data[name] for name in names if name in data})

            datasets.append(SpreadsheetDataset(
                spreadsheet_name=spreadsheet.name,
                description=spreadsheet.description,
                columns=names,
                rows=projected,
                total_rows=len(rows),
            ))
        return datasets
