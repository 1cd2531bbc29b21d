"""HTTP request handler.

Calls external APIs and webhooks. Non-2xx responses are still successful
steps: the status is reported in the output so later steps can branch on
it. Transport failures and timeouts are failed steps.
"""

import ipaddress
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional
from urllib.parse import urlparse

import httpx
import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

DEFAULT_TIMEOUT_MS = 30000
FORBIDDEN_PORTS = (5432, 6379, 9000)  # postgres, redis, internal services


@asynccontextmanager
async def open_client(client: Optional[httpx.AsyncClient]) -> AsyncIterator[httpx.AsyncClient]:
    """Yield the injected client, or a short-lived one closed on exit."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient() as owned:
        yield owned


def _is_private_ip(ip_str: str) -> bool:
    """Check if an IP address is private, loopback or reserved."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local


def validate_url_safety(url: str) -> None:
    """Reject URLs that could reach internal infrastructure.

    Blocks non-HTTP(S) schemes, localhost, private/loopback IP literals
    and well-known internal ports. Hostnames are not resolved.

    Raises:
        ValueError: If the URL is unsafe
    """
    parsed = urlparse(url)

    if parsed.scheme.lower() not in ("http", "https"):
        raise ValueError(f"Unsupported scheme: {parsed.scheme or '(none)'}. Only HTTP and HTTPS allowed.")

    hostname = parsed.hostname
    if not hostname:
        raise ValueError("URL must have a valid hostname")

    if hostname.lower() in ("localhost", "127.0.0.1", "::1"):
        raise ValueError("Connections to localhost are not allowed")

    if _is_private_ip(hostname):
        raise ValueError(f"Connections to private IP {hostname} are not allowed")

    try:
        port = parsed.port
    except ValueError:
        raise ValueError(f"Invalid port in URL: {url}")
    if port in FORBIDDEN_PORTS:
        raise ValueError(f"Connections to internal port {port} are not allowed")


class HttpRequestHandler(BaseHandler):
    """Execute an HTTP request.

    Config:
        url: Target URL (required; ``webhookUrl`` is accepted as an alias)
        method: HTTP method (default: GET, POST after normalization)
        headers: Dict of HTTP headers (``webhookHeaders`` is merged in)
        body: Request body. Strings are sent as-is, anything else as JSON
        timeout: Request timeout in milliseconds (default: 30000)

    Output:
        {"statusCode", "headers", "body", "success"}
    """

    handler_type = "http:request"
    display_name = "HTTP Request"
    description = "Make HTTP requests to APIs and web services"

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        default_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        allow_private_networks: bool = False,
    ):
        self.client = client
        self.default_timeout_ms = default_timeout_ms
        self.allow_private_networks = allow_private_networks

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        url = config.get("url") or config.get("webhookUrl")
        if not url:
            return self.failure(
                WorkflowExecutionError("URL is required", ErrorType.VALIDATION_ERROR), started_at
            )

        if not self.allow_private_networks:
            try:
                validate_url_safety(url)
            except ValueError as e:
                return self.failure(
                    WorkflowExecutionError(str(e), ErrorType.VALIDATION_ERROR), started_at
                )

        method = str(config.get("method") or "GET").upper()
        timeout_ms = config.get("timeout") or self.default_timeout_ms

        headers: Dict[str, Any] = {"Content-Type": "application/json"}
        for extra in (config.get("headers"), config.get("webhookHeaders")):
            if isinstance(extra, dict):
                headers.update({str(k): str(v) for k, v in extra.items()})

        kwargs: Dict[str, Any] = {
            "method": method,
            "url": url,
            "headers": headers,
            "timeout": timeout_ms / 1000,
        }
        body = config.get("body")
        if body is not None and body != "":
            if isinstance(body, str):
                kwargs["content"] = body
            else:
                kwargs["json"] = body

        logger.info("Sending HTTP request", node_id=node.id, method=method, url=url)

        try:
            async with open_client(self.client) as client:
                response = await client.request(**kwargs)
        except httpx.TimeoutException:
            return self.failure(
                WorkflowExecutionError(f"Request timeout after {timeout_ms}ms", ErrorType.TIMEOUT_ERROR),
                started_at,
            )
        except httpx.HTTPError as e:
            return self.failure(
                WorkflowExecutionError(
                    f"HTTP request failed (network): {e}", ErrorType.NETWORK_ERROR
                ),
                started_at,
            )

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            try:
                response_body = response.json()
            except ValueError:
                response_body = response.text
        else:
            response_body = response.text

        return self.success(
            {
                "statusCode": response.status_code,
                "headers": dict(response.headers),
                "body": response_body,
                "success": response.is_success,
            },
            started_at,
        )
