"""
Handler Registry: maps handler identifiers to handler instances.

Lookup order for get(key):
1. exact registered key
2. alias (e.g. "for-each" -> "loop:foreach")
3. prefix: the first registered key starting with "<key>:" ("slack" -> "slack:send-message")

The registry is built once and is read-only while runs execute.
"""

from typing import Any, Dict, List, Optional

import httpx

from app.config import Settings, get_settings
from core.exceptions import ConfigurationError
from handlers.base_handler import BaseHandler
from handlers.credentials import CredentialProvider, InMemoryCredentialProvider
from handlers.handler_types import HANDLER_ALIASES, HandlerType, determine_handler_type
from handlers.implementations.condition_handler import ConditionHandler
from handlers.implementations.delay_handler import DelayHandler
from handlers.implementations.filter_handler import FilterHandler
from handlers.implementations.http_handler import HttpRequestHandler
from handlers.implementations.loop_handler import ForEachLoopHandler, RepeatLoopHandler
from handlers.implementations.slack_handler import SlackSendMessageHandler
from handlers.implementations.switch_handler import SwitchHandler
from handlers.implementations.transform_handler import TransformHandler
from handlers.implementations.trigger_handler import TriggerHandler
from handlers.implementations.webhook_handler import DiscordWebhookHandler, TeamsWebhookHandler
from workflow.graph import WorkflowNode
from workflow.retry_strategies import RetryPolicy

TRIGGER_HANDLER_TYPES = (
    HandlerType.TRIGGER,
    HandlerType.TRIGGER_WEBHOOK,
    HandlerType.TRIGGER_FORM,
    HandlerType.TRIGGER_SCHEDULE,
    HandlerType.TRIGGER_EVENT,
    HandlerType.TRIGGER_MANUAL,
)


class HandlerRegistry:
    """Registry of handler instances keyed by handler identifier."""

    def __init__(self):
        self._handlers: Dict[str, BaseHandler] = {}

    def register(self, key: str, handler: BaseHandler) -> None:
        """Register a handler under an identifier, replacing any previous one."""
        key = str(getattr(key, "value", key) or "")
        if not key:
            raise ConfigurationError("Handler key is required")
        if not isinstance(handler, BaseHandler):
            raise ConfigurationError(f"Handler for {key} must be a BaseHandler instance")
        self._handlers[key] = handler

    def get(self, key: str) -> Optional[BaseHandler]:
        """Get a handler by identifier, alias or prefix."""
        if not key:
            return None

        handler = self._handlers.get(key)
        if handler is not None:
            return handler

        alias = HANDLER_ALIASES.get(key)
        if alias is not None and alias.value in self._handlers:
            return self._handlers[alias.value]

        prefix = f"{key}:"
        for registered_key, candidate in self._handlers.items():
            if registered_key.startswith(prefix):
                return candidate

        return None

    def get_for_node(self, node: WorkflowNode) -> Optional[BaseHandler]:
        return self.get(determine_handler_type(node))

    def has_handler(self, key: str) -> bool:
        return self.get(key) is not None

    @property
    def supported_types(self) -> List[str]:
        return list(self._handlers.keys())

    def list_all(self) -> List[Dict[str, Any]]:
        """List all registered handlers with metadata."""
        return [
            {
                "handler_type": key,
                "display_name": handler.display_name,
                "description": handler.description,
            }
            for key, handler in self._handlers.items()
        ]


def create_default_registry(
    settings: Optional[Settings] = None,
    credentials: Optional[CredentialProvider] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> HandlerRegistry:
    """Build a registry with every built-in handler.

    Args:
        settings: Engine settings (defaults to get_settings())
        credentials: Credential source for integration handlers
        http_client: Shared httpx client for outbound calls (one per call when omitted)
        retry_policy: Policy for handlers that retry internally
    """
    settings = settings or get_settings()
    credentials = credentials or InMemoryCredentialProvider()
    retry_policy = retry_policy or RetryPolicy.from_settings(settings)

    registry = HandlerRegistry()

    trigger = TriggerHandler()
    for handler_type in TRIGGER_HANDLER_TYPES:
        registry.register(handler_type, trigger)

    registry.register(HandlerType.CONDITION, ConditionHandler())
    registry.register(HandlerType.DELAY, DelayHandler(max_delay_ms=settings.DELAY_MAX_MS))
    registry.register(HandlerType.LOOP_FOREACH, ForEachLoopHandler())
    registry.register(
        HandlerType.LOOP_REPEAT, RepeatLoopHandler(max_iterations=settings.REPEAT_MAX_ITERATIONS)
    )
    registry.register(HandlerType.FILTER, FilterHandler())
    registry.register(HandlerType.SWITCH, SwitchHandler())
    registry.register(HandlerType.TRANSFORM, TransformHandler())

    registry.register(
        HandlerType.HTTP_REQUEST,
        HttpRequestHandler(
            client=http_client,
            default_timeout_ms=settings.HTTP_DEFAULT_TIMEOUT_MS,
            allow_private_networks=settings.HTTP_ALLOW_PRIVATE_NETWORKS,
        ),
    )
    registry.register(
        HandlerType.SLACK_SEND_MESSAGE,
        SlackSendMessageHandler(
            credentials,
            client=http_client,
            api_url=settings.SLACK_API_URL,
            retry_policy=retry_policy,
        ),
    )
    registry.register(
        HandlerType.DISCORD_WEBHOOK, DiscordWebhookHandler(client=http_client, retry_policy=retry_policy)
    )
    registry.register(
        HandlerType.TEAMS_WEBHOOK, TeamsWebhookHandler(client=http_client, retry_policy=retry_policy)
    )

    return registry
