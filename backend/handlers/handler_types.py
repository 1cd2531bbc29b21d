"""Handler identifiers and node-to-handler type resolution."""

import re
from enum import Enum
from typing import Optional

from core.constants import NodeType
from workflow.graph import WorkflowNode


class HandlerType(str, Enum):
    """Canonical handler identifiers."""
    # Messaging
    SLACK_SEND_MESSAGE = "slack:send-message"
    DISCORD_WEBHOOK = "discord:webhook"
    TEAMS_WEBHOOK = "teams:webhook"

    # Email
    EMAIL_SMTP = "email:smtp"
    EMAIL_SENDGRID = "email:sendgrid"
    EMAIL_RESEND = "email:resend"

    # AI
    OPENAI_CHAT = "openai:chat"
    OPENAI_EMBEDDINGS = "openai:embeddings"
    ANTHROPIC_CLAUDE = "anthropic:claude"

    # Google Sheets
    GOOGLE_SHEETS_READ = "google-sheets:read"
    GOOGLE_SHEETS_APPEND = "google-sheets:append"
    GOOGLE_SHEETS_UPDATE = "google-sheets:update"
    GOOGLE_SHEETS_CREATE = "google-sheets:create"

    # Stripe
    STRIPE_CREATE_PAYMENT_INTENT = "stripe:create-payment-intent"
    STRIPE_CREATE_CUSTOMER = "stripe:create-customer"
    STRIPE_CREATE_SUBSCRIPTION = "stripe:create-subscription"
    STRIPE_REFUND = "stripe:refund"
    STRIPE_GET_CUSTOMER = "stripe:get-customer"

    # Twilio
    TWILIO_SEND_SMS = "twilio:send-sms"
    TWILIO_SEND_MMS = "twilio:send-mms"
    TWILIO_LOOKUP = "twilio:lookup"

    # HTTP
    HTTP_REQUEST = "http:request"

    # Control flow
    CONDITION = "condition"
    DELAY = "delay"
    LOOP_FOREACH = "loop:foreach"
    LOOP_REPEAT = "loop:repeat"
    FILTER = "filter"
    SWITCH = "switch"
    TRANSFORM = "transform"

    # Triggers
    TRIGGER = "trigger"
    TRIGGER_WEBHOOK = "trigger:webhook"
    TRIGGER_FORM = "trigger:form"
    TRIGGER_SCHEDULE = "trigger:schedule"
    TRIGGER_EVENT = "trigger:event"
    TRIGGER_MANUAL = "trigger:manual"


HANDLER_ALIASES: dict[str, HandlerType] = {
    "discord:send-message": HandlerType.DISCORD_WEBHOOK,
    "teams:send-message": HandlerType.TEAMS_WEBHOOK,
    "email:send": HandlerType.EMAIL_SMTP,
    "sendgrid:send": HandlerType.EMAIL_SENDGRID,
    "resend:send": HandlerType.EMAIL_RESEND,
    "openai:completion": HandlerType.OPENAI_CHAT,
    "claude:message": HandlerType.ANTHROPIC_CLAUDE,
    "sheets:read": HandlerType.GOOGLE_SHEETS_READ,
    "sheets:append": HandlerType.GOOGLE_SHEETS_APPEND,
    "sheets:update": HandlerType.GOOGLE_SHEETS_UPDATE,
    "sms:send": HandlerType.TWILIO_SEND_SMS,
    "webhook:send": HandlerType.HTTP_REQUEST,
    "loop": HandlerType.LOOP_FOREACH,
    "for-each": HandlerType.LOOP_FOREACH,
    "repeat": HandlerType.LOOP_REPEAT,
    "condition:filter": HandlerType.FILTER,
    "condition:switch": HandlerType.SWITCH,
    "transform:data": HandlerType.TRANSFORM,
    "data:transform": HandlerType.TRANSFORM,
}


def canonical_handler_type(handler_type: str) -> Optional[HandlerType]:
    """Map an identifier or alias onto its HandlerType, or None if unknown."""
    try:
        return HandlerType(handler_type)
    except ValueError:
        return HANDLER_ALIASES.get(handler_type)


def is_valid_handler_type(handler_type: str) -> bool:
    return canonical_handler_type(handler_type) is not None


# "api" only as a whole word; "capital" or "rapid" are not API calls
_API_WORD = re.compile(r"\bapi\b")

def _sheets_type(label: str) -> str:
    if "read" in label or "get" in label:
        return HandlerType.GOOGLE_SHEETS_READ.value
    if "append" in label or "add" in label:
        return HandlerType.GOOGLE_SHEETS_APPEND.value
    if "update" in label:
        return HandlerType.GOOGLE_SHEETS_UPDATE.value
    return HandlerType.GOOGLE_SHEETS_APPEND.value


def _stripe_type(label: str) -> str:
    if "customer" in label:
        return HandlerType.STRIPE_CREATE_CUSTOMER.value
    if "subscription" in label:
        return HandlerType.STRIPE_CREATE_SUBSCRIPTION.value
    if "refund" in label:
        return HandlerType.STRIPE_REFUND.value
    return HandlerType.STRIPE_CREATE_PAYMENT_INTENT.value


def determine_handler_type(node: WorkflowNode) -> str:
    """Resolve the handler identifier for a node.

    Non-action nodes use their declared type. Generic ``action`` nodes are
    matched on label keywords and icon names; the first rule that matches
    wins, so the order below is significant.
    """
    if node.node_type != NodeType.ACTION.value:
        return node.node_type

    label = (node.label or "").lower()
    icon = (node.icon or "").lower()

    if "email" in label or "mail" in label or icon == "mail":
        return HandlerType.EMAIL_RESEND.value
    if "slack" in label or icon == "slack":
        return HandlerType.SLACK_SEND_MESSAGE.value
    if "discord" in label or icon in ("discord", "message-square"):
        return HandlerType.DISCORD_WEBHOOK.value
    if "teams" in label or icon == "users":
        return HandlerType.TEAMS_WEBHOOK.value
    if "sms" in label or "twilio" in label or icon == "phone":
        return HandlerType.TWILIO_SEND_SMS.value
    if "openai" in label or "gpt" in label or icon == "brain":
        return HandlerType.OPENAI_CHAT.value
    if "claude" in label or "anthropic" in label:
        return HandlerType.ANTHROPIC_CLAUDE.value
    if "sheets" in label or icon == "table":
        return _sheets_type(label)
    if "stripe" in label or "payment" in label or icon == "credit-card":
        return _stripe_type(label)
    if "http" in label or "webhook" in label or _API_WORD.search(label) or icon == "globe":
        return HandlerType.HTTP_REQUEST.value
    if "transform" in label or "map" in label or "format" in label:
        return HandlerType.TRANSFORM.value
    if "filter" in label:
        return HandlerType.FILTER.value
    if "loop" in label or "for each" in label or "foreach" in label:
        return HandlerType.LOOP_FOREACH.value
    if "repeat" in label:
        return HandlerType.LOOP_REPEAT.value

    return node.node_type
