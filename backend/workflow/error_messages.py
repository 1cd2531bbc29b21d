"""Map technical step errors onto actionable guidance for workflow owners."""

import re
from dataclasses import dataclass
from typing import Callable, Union

INTEGRATIONS_ACTION = "Reconnect your integration in Settings > Integrations"


@dataclass(frozen=True)
class UserFriendlyError:
    message: str
    action: str
    recoverable: bool = True
    severity: str = "error"  # warning, error, info

    def to_dict(self) -> dict:
        return {
            "message": self.message,
            "action": self.action,
            "recoverable": self.recoverable,
            "severity": self.severity,
        }


SLACK_ERRORS: dict[str, tuple[str, str]] = {
    "channel_not_found": ("Channel not found", "Check the channel name or ID. Make sure it exists."),
    "not_in_channel": ("Bot is not in that channel", "Invite the Slack bot to the channel first."),
    "is_archived": ("Channel is archived", "The channel is archived. Use a different channel."),
    "msg_too_long": ("Message is too long", "Shorten your message (max 40,000 characters)."),
    "no_text": ("Message is empty", "Add message content."),
    "restricted_action": ("Action is restricted", "Check your Slack workspace permissions."),
    "missing_scope": ("Bot doesn't have permission", "Reconnect Slack with the required permissions."),
}


def _http_action(status: int) -> str:
    if status == 400:
        return "Check your request parameters"
    if status == 401:
        return "Check your authentication credentials"
    if status == 403:
        return "You don't have permission for this action"
    if status == 404:
        return "The endpoint or resource wasn't found. Check the URL."
    if status == 429:
        return "Too many requests. Wait a moment and try again."
    if status >= 500:
        return "The server had an error. Try again later."
    return "Check your request and try again"


def _slack_error(match: re.Match) -> UserFriendlyError:
    code = match.group(1)
    message, action = SLACK_ERRORS.get(code, (code, "Check your Slack configuration and try again."))
    return UserFriendlyError(f"Slack returned an error: {message}", action)


def _http_error(match: re.Match) -> UserFriendlyError:
    status = int(match.group(1))
    return UserFriendlyError(
        f"The server returned an error ({status})",
        _http_action(status),
        recoverable=status >= 500,
    )


def _missing(message: str, action: str) -> Callable[[re.Match], UserFriendlyError]:
    return lambda _match: UserFriendlyError(message, action, severity="warning")


def _fixed(message: str, action: str, severity: str = "error") -> Callable[[re.Match], UserFriendlyError]:
    return lambda _match: UserFriendlyError(message, action, severity=severity)


# Checked in order, first match wins
ERROR_PATTERNS: list[tuple[re.Pattern, Callable[[re.Match], UserFriendlyError]]] = [
    # Integrations
    (re.compile(r"Integration ID is required", re.I), _fixed(
        "Please connect your integration first",
        "Go to Settings > Integrations to connect the required service",
        "warning",
    )),
    (re.compile(r"Integration credentials not found", re.I), _fixed(
        "Your integration connection has expired or was removed", INTEGRATIONS_ACTION,
    )),
    (re.compile(r"Integration (\w+) not found", re.I), lambda m: UserFriendlyError(
        f"The {m.group(1)} integration isn't connected",
        f"Connect {m.group(1)} in Settings > Integrations",
        severity="warning",
    )),
    # Authentication
    (re.compile(r"invalid_auth|account_inactive|unauthorized", re.I), _fixed(
        "Your account connection has expired", INTEGRATIONS_ACTION,
    )),
    (re.compile(r"Slack authentication error", re.I), _fixed(
        "Your Slack connection needs to be refreshed", "Reconnect Slack in Settings > Integrations",
    )),
    # Missing configuration
    (re.compile(r"Channel is required", re.I), _missing(
        "Please specify which channel to post to", "Enter a channel name like #general",
    )),
    (re.compile(r"Message( or blocks)? (is|are) required", re.I), _missing(
        "Please provide a message to send", "Enter the message content",
    )),
    (re.compile(r"URL is required", re.I), _missing(
        "Please provide a URL to call", "Enter the webhook or API URL",
    )),
    (re.compile(r"left value is required|field is required", re.I), _missing(
        "Please specify what to check in the condition", "Enter a field name like $trigger.data.amount",
    )),
    (re.compile(r"Operator is required", re.I), _missing(
        "Please select a comparison operator",
        "Choose how to compare the values (equals, greater than, etc.)",
    )),
    # Rate limiting
    (re.compile(r"rate[_\s]?limit(ed)?", re.I), _fixed(
        "The service is temporarily limiting requests",
        "Wait a moment and try again. Consider adding a delay node.",
        "warning",
    )),
    # Service responses
    (re.compile(r"Slack API error: (\w+)", re.I), _slack_error),
    (re.compile(r"HTTP (\d+)", re.I), _http_error),
    # Transport
    (re.compile(r"timeout|timed out", re.I), _fixed(
        "The operation took too long",
        "Try again. If it keeps happening, the external service may be slow.",
        "warning",
    )),
    (re.compile(r"network|connection|ECONNREFUSED|ENOTFOUND", re.I), _fixed(
        "Couldn't connect to the external service", "Check your internet connection and try again",
    )),
    # Data
    (re.compile(r"Cannot resolve variable|Variable .+ not found|Step not found|Node result not found", re.I), _missing(
        "A variable couldn't be found in the data",
        "Check that the variable path matches your trigger data.",
    )),
    (re.compile(r"JSON|parse error|syntax error", re.I), _fixed(
        "The data format is invalid", "Check that your JSON is properly formatted",
    )),
]

FALLBACK_ERROR = UserFriendlyError("Something went wrong", "Try again or check your configuration")


def get_user_friendly_error(error: Union[BaseException, str, None]) -> UserFriendlyError:
    """Translate a technical error into a message and a suggested fix."""
    text = str(error) if error is not None else ""
    for pattern, build in ERROR_PATTERNS:
        match = pattern.search(text)
        if match:
            return build(match)
    return FALLBACK_ERROR


def format_error_for_display(error: Union[BaseException, str]) -> dict:
    """Title/description/action triple for surfacing a failed step."""
    text = str(error)
    friendly = get_user_friendly_error(text)
    return {
        "title": friendly.message,
        "description": f"Technical: {text}" if text != friendly.message else "",
        "action": friendly.action,
        "severity": friendly.severity,
    }
