"""Incoming-webhook messaging handlers (Discord, Microsoft Teams)."""

from typing import Any, Dict, Optional

import httpx
import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from handlers.implementations.http_handler import open_client
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.retry_strategies import RetryPolicy, with_retry
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

TEAMS_THEME_COLOR = "0078D4"


def _status_error(service: str, response: httpx.Response) -> WorkflowExecutionError:
    """Classify a non-2xx webhook response."""
    message = f"{service} API error ({response.status_code}): {response.text}"
    if response.status_code == 429:
        return WorkflowExecutionError(message, ErrorType.RATE_LIMIT_ERROR)
    if response.status_code in (401, 403):
        return WorkflowExecutionError(message, ErrorType.AUTHENTICATION_ERROR)
    if response.status_code >= 500:
        return WorkflowExecutionError(message, ErrorType.NETWORK_ERROR)
    return WorkflowExecutionError(message, ErrorType.INTEGRATION_ERROR)


class WebhookMessageHandler(BaseHandler):
    """Shared POST-with-retry logic for incoming-webhook services."""

    service_name: str = "Webhook"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()

    async def _post(self, node: WorkflowNode, webhook_url: str, payload: Dict[str, Any]) -> httpx.Response:
        async def send() -> httpx.Response:
            async with open_client(self.client) as client:
                response = await client.post(webhook_url, json=payload)
            if not response.is_success:
                raise _status_error(self.service_name, response)
            return response

        return await with_retry(
            send,
            self.retry_policy,
            context={"node_id": node.id, "handler_type": self.handler_type},
        )


class DiscordWebhookHandler(WebhookMessageHandler):
    """Post a message through a Discord webhook.

    Config:
        webhookUrl: Discord webhook URL (required)
        content: Message text
        embeds: List of embed objects (either content or embeds is required)
        username: Override the webhook's display name
        avatarUrl: Override the webhook's avatar
        tts: Text-to-speech flag (default: false)
    """

    handler_type = "discord:webhook"
    display_name = "Discord: Send Message"
    description = "Send a message to a Discord channel webhook"
    service_name = "Discord"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        webhook_url = config.get("webhookUrl")
        content = config.get("content")
        embeds = config.get("embeds") or []

        if not webhook_url:
            return self.failure(
                WorkflowExecutionError("Webhook URL is required", ErrorType.VALIDATION_ERROR), started_at
            )
        if not content and not embeds:
            return self.failure(
                WorkflowExecutionError("Content or embeds are required", ErrorType.VALIDATION_ERROR), started_at
            )

        payload: Dict[str, Any] = {
            "content": content,
            "username": config.get("username"),
            "avatar_url": config.get("avatarUrl"),
            "tts": bool(config.get("tts", False)),
        }
        if embeds:
            payload["embeds"] = embeds

        try:
            response = await self._post(node, webhook_url, payload)
        except (WorkflowExecutionError, httpx.HTTPError) as e:
            logger.error("Discord webhook send failed", node_id=node.id)
            return self.failure(e, started_at)

        return self.success(
            {
                "statusCode": response.status_code,
                "content": content or "Embed sent",
                "username": config.get("username"),
            },
            started_at,
        )


class TeamsWebhookHandler(WebhookMessageHandler):
    """Post a MessageCard through a Microsoft Teams incoming webhook.

    Config:
        webhookUrl: Teams webhook URL (required)
        title / text: Card title and body (at least one is required)
        summary: Card summary (defaults to title or text)
        themeColor: Hex accent color (default: 0078D4)
        sections / potentialAction: Passed through to the card
    """

    handler_type = "teams:webhook"
    display_name = "Teams: Send Message"
    description = "Send a card to a Microsoft Teams channel webhook"
    service_name = "Teams"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        webhook_url = config.get("webhookUrl")
        title = config.get("title")
        text = config.get("text")

        if not webhook_url:
            return self.failure(
                WorkflowExecutionError("Webhook URL is required", ErrorType.VALIDATION_ERROR), started_at
            )
        if not title and not text:
            return self.failure(
                WorkflowExecutionError("Title or text is required", ErrorType.VALIDATION_ERROR), started_at
            )

        payload: Dict[str, Any] = {
            "@type": "MessageCard",
            "@context": "https://schema.org/extensions",
            "summary": config.get("summary") or title or text,
            "themeColor": config.get("themeColor") or TEAMS_THEME_COLOR,
        }
        if title:
            payload["title"] = title
        if text:
            payload["text"] = text
        if config.get("sections"):
            payload["sections"] = config["sections"]
        if config.get("potentialAction"):
            payload["potentialAction"] = config["potentialAction"]

        try:
            response = await self._post(node, webhook_url, payload)
        except (WorkflowExecutionError, httpx.HTTPError) as e:
            logger.error("Teams webhook send failed", node_id=node.id)
            return self.failure(e, started_at)

        return self.success(
            {
                "statusCode": response.status_code,
                "title": title or "Message sent",
                "text": text,
            },
            started_at,
        )
