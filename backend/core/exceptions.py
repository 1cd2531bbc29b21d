"""Custom exceptions for the workflow execution engine."""

from typing import Optional


class EngineException(Exception):
    """Base exception for the workflow execution engine."""

    def __init__(self, message: str, status_code: int = 500):
        """Initialize exception with message and status code.

        Args:
            message: Exception message
            status_code: HTTP-style status code for callers that surface it
        """
        self.message = message
        self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(EngineException):
    """Resource not found exception."""

    def __init__(self, message: str = "Resource not found"):
        """Initialize NotFoundError with 404 status code."""
        super().__init__(message, 404)


class ValidationError(EngineException):
    """Validation error exception."""

    def __init__(self, message: str = "Validation failed"):
        """Initialize ValidationError with 422 status code."""
        super().__init__(message, 422)


class WorkflowValidationError(ValidationError):
    """A workflow graph failed structural validation.

    Carries every problem found so callers can surface them in one pass.
    """

    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__(f"Invalid workflow: {', '.join(self.errors)}")


class PlanningError(EngineException):
    """The graph cannot be ordered (cycle or disconnected node)."""

    def __init__(self, message: str, node_ids: Optional[list[str]] = None):
        self.node_ids = list(node_ids or [])
        super().__init__(message, 422)


class VariableResolutionError(EngineException):
    """A variable reference could not be resolved."""

    def __init__(self, message: str):
        super().__init__(message, 422)


class ConfigurationError(EngineException):
    """The engine or a handler is misconfigured."""

    def __init__(self, message: str = "Configuration error"):
        super().__init__(message, 500)


class StepExecutionError(EngineException):
    """A step returned an unsuccessful result, failing the whole run."""

    def __init__(
        self,
        step_label: str,
        error: Optional[str],
        error_type: Optional[str] = None,
        node_id: Optional[str] = None,
    ):
        self.step_label = step_label
        self.error = error
        self.error_type = error_type
        self.node_id = node_id
        super().__init__(f"Step failed: {step_label} - {error}", 500)
