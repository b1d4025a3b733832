"""Generation context: everything a backend needs to write one newsletter."""

import json
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from newsletter_studio.models.newsletter import ProjectSettings
from newsletter_studio.models.spreadsheet import SpreadsheetDataset

# Project fields sent to webhook backends, in payload order.
WEBHOOK_PROJECT_FIELDS = (
    "name",
    "author_name",
    "author_bio",
    "tone",
    "structure",
    "language",
    "newsletter_type",
    "logo_url",
    "design_guidelines",
    "html_template",
)


class GenerationContext(BaseModel):
    """Ephemeral, per-attempt bundle of project settings, data, links and notes.

    Built fresh for every generation attempt and never persisted. The
    ``directives`` mapping is keyed by category tag (``TONE``, ``STRUCTURE``,
    ``DESIGN_GUIDELINES``, ``HTML_TEMPLATE``) so backends can tell the
    free-text instructions apart.
    """

    newsletter_id: str
    newsletter_title: str
    links: List[str]
    notes: str = ""
    project: ProjectSettings
    project_data: List[SpreadsheetDataset] = Field(default_factory=list)
    style_directive: str = ""
    directives: Dict[str, str] = Field(default_factory=dict)
    row_limit: int = 10

    def render_system_prompt(self) -> str:
        """Directive bundle sent as the system message."""
        project = self.project
        lines = [
            "You are an assistant specialised in writing professional newsletters.",
            "Analyse the links provided and write a complete newsletter in two formats: HTML and plain text.",
            "",
            "Project settings:",
            f"- Project: {project.name}",
            f"- Language: {project.language or 'en'}",
            f"- Author name: {project.author_name}",
            f"- Author bio: {project.author_bio or ''}",
        ]
        if project.frequency:
            lines.append(f"- Publication frequency: {project.frequency}")

        lines.extend(["", "[STYLE]", self.style_directive])

        for tag, text in self.directives.items():
            lines.extend(["", f"[{tag}]", text])

        if self.project_data:
            lines.extend(["", "[PROJECT_DATA]"])
            for dataset in self.project_data:
                lines.append(self._render_dataset(dataset))

        lines.extend([
            "",
            "Rules:",
            "1. Produce a well formatted, organised newsletter.",
            "2. Include a summary or comment for every link provided.",
            "3. Keep the tone and structure described above.",
            "4. For the HTML version use email-safe markup (inline styles, tables for layout).",
            "5. Keep the plain text version clean and readable.",
        ])
        return "\n".join(lines)

    def render_user_prompt(self) -> str:
        """Links and notes bundle sent as the user message."""
        numbered = "\n".join(f"{idx}. {link}" for idx, link in enumerate(self.links, start=1))
        parts = [
            f"Write the newsletter \"{self.newsletter_title}\" from the following links:",
            "",
            numbered,
        ]
        if self.notes:
            parts.extend(["", "Notes / brief for this edition:", self.notes])
        parts.extend([
            "",
            "Return the newsletter through the format_newsletter tool with both the HTML and the plain text version.",
        ])
        return "\n".join(parts)

    def to_webhook_payload(self, callback_url: Optional[str] = None) -> Dict[str, Any]:
        """JSON body posted to a webhook backend."""
        project = self.project.model_dump(mode="json")
        payload: Dict[str, Any] = {
            "newsletter_id": self.newsletter_id,
            "newsletter_title": self.newsletter_title,
            "links": list(self.links),
            "notes": self.notes,
            "project": {name: project.get(name) for name in WEBHOOK_PROJECT_FIELDS},
            "project_data": [
                {
                    "spreadsheet_name": dataset.spreadsheet_name,
                    "description": dataset.description,
                    "columns": list(dataset.columns),
                    "rows": dataset.rows,
                    "total_rows": dataset.total_rows,
                }
                for dataset in self.project_data
            ],
        }
        if callback_url:
            payload["callback_url"] = callback_url
        return payload

    def _render_dataset(self, dataset: SpreadsheetDataset) -> str:
        shown = dataset.prompt_rows(self.row_limit)
        header = f"Spreadsheet \"{dataset.spreadsheet_name}\""
        if dataset.description:
            header += f" - {dataset.description}"
        lines = [
            header,
            f"Columns: {', '.join(dataset.columns)}",
            f"Rows: showing {len(shown)} of {dataset.total_rows}",
        ]
        lines.extend(json.dumps(row, ensure_ascii=False, default=str) for row in shown)
        return "\n".join(lines)
