"""HTTP client for user-configured generation webhooks."""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

import aiohttp
import structlog

from newsletter_studio.infrastructure.error_handling import BackendError

DEFAULT_WEBHOOK_TIMEOUT = 60.0


@dataclass
class WebhookResponse:
    """Status and decoded JSON body of a webhook reply."""

    status: int
    data: Optional[Dict[str, Any]]
    text: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class WebhookClient:
    """Posts generation requests to an external webhook under a hard timeout."""

    def __init__(self, timeout: float = DEFAULT_WEBHOOK_TIMEOUT):
        """Initialize webhook client.

        Args:
            timeout: Total seconds allowed for connect, send and response
        """
        self.timeout = timeout
        self.logger = structlog.get_logger(__name__)
        self.headers = {
            "Content-Type": "application/json",
            "User-Agent": "Newsletter-Studio/1.0",
        }

    async def post(self, url: str, payload: Dict[str, Any]) -> WebhookResponse:
        """POST ``payload`` as JSON to ``url``.

        Raises:
            BackendError: timeout or transport failure
        """
        self.logger.info(
            "Calling generation webhook",
            url=url,
            newsletter_id=payload.get("newsletter_id"),
            timeout=self.timeout,
        )
        try:
            async with aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as session:
                async with session.post(url, headers=self.headers, json=payload) as response:
                    text = await response.text()
                    result = WebhookResponse(status=response.status, data=_decode_json(text), text=text)
        except asyncio.TimeoutError as e:
            self.logger.warning("Generation webhook timed out", url=url, timeout=self.timeout)
            raise BackendError(
                f"Webhook timed out after {self.timeout:g} seconds",
                timed_out=True,
            ) from e
        except aiohttp.ClientError as e:
            self.logger.warning("Generation webhook request failed", url=url, error=str(e))
            raise BackendError(f"Webhook request failed: {e}") from e

        self.logger.info("Generation webhook responded", url=url, status=result.status)
        return result


def _decode_json(text: str) -> Optional[Dict[str, Any]]:
    if not text:
        return None
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, dict) else None
