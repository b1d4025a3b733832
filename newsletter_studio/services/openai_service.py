"""OpenAI service for newsletter generation through a forced function call."""

import json
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError

from newsletter_studio.infrastructure.config import ApplicationConfig
from newsletter_studio.infrastructure.error_handling import BackendError
from newsletter_studio.infrastructure.logging import get_logger

logger = get_logger(__name__)

FORMAT_TOOL_NAME = "format_newsletter"

FORMAT_NEWSLETTER_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": FORMAT_TOOL_NAME,
        "description": "Return the newsletter in HTML and plain text formats",
        "parameters": {
            "type": "object",
            "properties": {
                "html_content": {
                    "type": "string",
                    "description": "Newsletter HTML with inline styles",
                },
                "text_content": {
                    "type": "string",
                    "description": "Newsletter as plain text",
                },
            },
            "required": ["html_content", "text_content"],
            "additionalProperties": False,
        },
    },
}


class OpenAIService:
    """Service for OpenAI LLM interactions."""

    def __init__(self, config: Optional[ApplicationConfig] = None, client: Optional[Any] = None):
        self.config = config or ApplicationConfig()
        if client is None and self.config.openai_api_key:
            client = AsyncOpenAI(
                api_key=self.config.openai_api_key,
                base_url=self.config.openai_base_url,
            )
        self.client = client
        self.available = self.client is not None

    async def generate_newsletter(self, system_prompt: str, user_prompt: str) -> Dict[str, str]:
        """Ask the model for the newsletter through the format_newsletter tool.

        Returns:
            Mapping with ``html_content`` and ``text_content``

        Raises:
            BackendError: backend not configured, API failure, or malformed reply
        """
        if not self.available:
            raise BackendError("Builtin AI backend is not configured (missing API key)")

        logger.info(
            "Calling AI model",
            model=self.config.openai_model,
            system_chars=len(system_prompt),
            user_chars=len(user_prompt),
        )

        try:
            response = await self.client.chat.completions.create(
                model=self.config.openai_model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                tools=[FORMAT_NEWSLETTER_TOOL],
                tool_choice={"type": "function", "function": {"name": FORMAT_TOOL_NAME}},
                max_tokens=self.config.openai_max_tokens,
                temperature=self.config.openai_temperature,
            )
        except OpenAIError as e:
            logger.error("AI API call failed", error=str(e))
            status = getattr(e, "status_code", None)
            message = f"AI API error: {status}" if status else f"AI API error: {e}"
            raise BackendError(message, status_code=status) from e

        content = parse_tool_response(response)
        logger.info(
            "AI response received",
            html_chars=len(content["html_content"]),
            text_chars=len(content["text_content"]),
            tokens_used=getattr(getattr(response, "usage", None), "total_tokens", 0),
        )
        return content


def parse_tool_response(response: Any) -> Dict[str, str]:
    """Extract the two content fields from a forced tool-call response.

    Raises:
        BackendError: when the response lacks the structured call
    """
    try:
        tool_call = response.choices[0].message.tool_calls[0]
        arguments = json.loads(tool_call.function.arguments)
    except (AttributeError, IndexError, TypeError, json.JSONDecodeError) as e:
        raise BackendError("AI did not return data in the expected format") from e

    if not isinstance(arguments, dict):
        raise BackendError("AI did not return data in the expected format")

    html_content = arguments.get("html_content")
    text_content = arguments.get("text_content")
    if not isinstance(html_content, str) or not isinstance(text_content, str) \
            or not html_content or not text_content:
        raise BackendError("AI response is missing html_content or text_content")

    return {"html_content": html_content, "text_content": text_content}
