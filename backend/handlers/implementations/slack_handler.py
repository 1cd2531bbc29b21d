"""Slack send-message handler (chat.postMessage over the Web API)."""

from typing import Any, Dict, Optional

import httpx
import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from handlers.credentials import CredentialProvider
from handlers.implementations.http_handler import open_client
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.retry_strategies import RetryPolicy, with_retry
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

SLACK_API_URL = "https://slack.com/api/chat.postMessage"
AUTH_ERROR_CODES = ("invalid_auth", "account_inactive", "not_authed", "token_revoked")


class SlackSendMessageHandler(BaseHandler):
    """Post a message to a Slack channel.

    Config:
        integrationId: Integration whose credentials hold ``botToken`` (required)
        channel: Channel name or ID (required)
        message: Message text
        blocks: Block Kit blocks (either message or blocks is required)

    Rate-limit responses are retried with backoff; authentication errors
    fail immediately.
    """

    handler_type = "slack:send-message"
    display_name = "Slack: Send Message"
    description = "Send a message to a Slack channel"

    def __init__(
        self,
        credentials: CredentialProvider,
        client: Optional[httpx.AsyncClient] = None,
        api_url: str = SLACK_API_URL,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.credentials = credentials
        self.client = client
        self.api_url = api_url
        self.retry_policy = retry_policy or RetryPolicy()

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        integration_id = config.get("integrationId")
        channel = config.get("channel")
        message = config.get("message")
        blocks = config.get("blocks")

        if not integration_id:
            return self.failure(
                WorkflowExecutionError("Integration ID is required", ErrorType.INTEGRATION_ERROR), started_at
            )
        if not channel:
            return self.failure(
                WorkflowExecutionError("Channel is required", ErrorType.VALIDATION_ERROR), started_at
            )
        if not message and not blocks:
            return self.failure(
                WorkflowExecutionError("Message or blocks are required", ErrorType.VALIDATION_ERROR), started_at
            )

        credentials = await self.credentials.get_credentials(integration_id)
        if not credentials or not credentials.get("botToken"):
            return self.failure(
                WorkflowExecutionError("Integration credentials not found", ErrorType.INTEGRATION_ERROR),
                started_at,
            )

        payload: Dict[str, Any] = {"channel": channel, "text": message}
        if blocks:
            payload["blocks"] = blocks

        async def post_message() -> dict:
            async with open_client(self.client) as client:
                response = await client.post(
                    self.api_url,
                    json=payload,
                    headers={"Authorization": f"Bearer {credentials['botToken']}"},
                )
            data = response.json()
            if data.get("ok"):
                return data

            error_code = data.get("error", "unknown_error")
            if error_code == "rate_limited" or response.status_code == 429:
                raise WorkflowExecutionError("Slack rate limit exceeded", ErrorType.RATE_LIMIT_ERROR)
            if error_code in AUTH_ERROR_CODES:
                raise WorkflowExecutionError(
                    f"Slack authentication error: {error_code}", ErrorType.AUTHENTICATION_ERROR
                )
            raise WorkflowExecutionError(f"Slack API error: {error_code}", ErrorType.INTEGRATION_ERROR)

        try:
            data = await with_retry(
                post_message,
                self.retry_policy,
                context={"node_id": node.id, "handler_type": self.handler_type},
            )
        except (WorkflowExecutionError, httpx.HTTPError, ValueError) as e:
            logger.error("Slack send message failed", node_id=node.id, integration_id=integration_id)
            return self.failure(e, started_at)

        logger.info("Slack message sent", node_id=node.id, channel=data.get("channel"))
        return self.success(
            {
                "messageId": data.get("ts"),
                "channel": data.get("channel"),
                "message": message,
            },
            started_at,
        )
