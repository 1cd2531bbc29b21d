"""Variable resolution for step configuration.

Templates reference earlier data with double or triple braces:

    {{$trigger.data.userId}}            trigger payload
    {{$node.slack-1.output.messageId}}  result of a node, by id
    {{$steps.send_email.output.data}}   result of a node, by label slug
    {{$var.apiKey}}                     free variables
    {{$env.API_URL}}                    process environment
    {{$workflow.executionId}}           run metadata

Lookup is path-only: there are no operators or function calls.
"""

import json
import os
import re
from typing import Any, Optional

import structlog

from core.exceptions import VariableResolutionError
from core.utils import label_to_slug as _label_to_slug
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

TRIPLE_BRACE_PATTERN = re.compile(r"\{\{\{([^{}]+)\}\}\}")
DOUBLE_BRACE_PATTERN = re.compile(r"\{\{([^{}]+)\}\}")
# A double-brace reference that is not part of a triple-brace one
STRICT_DOUBLE_BRACE_PATTERN = re.compile(r"(?<!\{)\{\{([^{}]+)\}\}(?!\})")
HAS_VARIABLES_PATTERN = re.compile(r"\{\{\{?[^}]+\}\}\}?")


def label_to_slug(label: str) -> str:
    """Convert a node label to the slug used by ``$steps`` references."""
    return _label_to_slug(label)


def _render(value: Any) -> str:
    """Render a resolved value for interpolation into a string."""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, NodeExecutionResult):
        value = value.to_dict()
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


class VariableResolver:
    """Resolves ``{{...}}`` references against an ExecutionContext.

    Stateless: one instance can serve any number of concurrent runs.
    """

    def resolve_string(self, template: str, context: ExecutionContext) -> str:
        """Interpolate every reference in ``template``.

        Unresolvable references are left exactly as written.
        """
        if not template or not isinstance(template, str):
            return template

        def substitute(match: re.Match) -> str:
            path = match.group(1).strip()
            try:
                value = self.resolve_variable(path, context)
            except VariableResolutionError as e:
                logger.warning("Failed to resolve variable, using original", path=path, error=e.message)
                return match.group(0)
            if value is None:
                logger.warning("Variable resolved to nothing, using original", path=path)
                return match.group(0)
            return _render(value)

        result = TRIPLE_BRACE_PATTERN.sub(substitute, template)
        return DOUBLE_BRACE_PATTERN.sub(substitute, result)

    def resolve_value(self, value: Any, context: ExecutionContext) -> Any:
        """Return a deep copy of ``value`` with every string leaf resolved.

        A string that is exactly one reference yields the referenced value
        itself, so numbers and objects keep their type.
        """
        if isinstance(value, str):
            single = self._single_reference(value)
            if single is not None:
                try:
                    resolved = self.resolve_variable(single, context)
                except VariableResolutionError:
                    resolved = None
                if resolved is not None:
                    if isinstance(resolved, NodeExecutionResult):
                        return resolved.to_dict()
                    return resolved
            return self.resolve_string(value, context)

        if isinstance(value, list):
            return [self.resolve_value(item, context) for item in value]

        if isinstance(value, tuple):
            return tuple(self.resolve_value(item, context) for item in value)

        if isinstance(value, dict):
            return {key: self.resolve_value(val, context) for key, val in value.items()}

        return value

    def resolve_variable(self, path: str, context: ExecutionContext) -> Any:
        """Resolve a bare reference path such as ``$trigger.data.amount``.

        Returns None when the path walks off the data.

        Raises:
            VariableResolutionError: unknown scope, or a node/step reference
                that names nothing in the context.
        """
        parts = path.strip().split(".")
        scope = parts[0]

        if scope == "$trigger":
            return self._get_nested_value(context.trigger_data, parts[1:])

        if scope == "$node":
            if len(parts) < 2 or not parts[1]:
                raise VariableResolutionError("Node ID required for $node reference")
            result = context.results.get(parts[1])
            if result is None:
                raise VariableResolutionError(f"Node result not found: {parts[1]}")
            return self._read_result(result, parts[2:])

        if scope == "$steps":
            if len(parts) < 2 or not parts[1]:
                raise VariableResolutionError("Node label required for $steps reference")
            result = self._find_step(parts[1], context)
            if result is None:
                raise VariableResolutionError(f"Step not found: {parts[1]}")
            return self._read_result(result, parts[2:])

        if scope == "$var":
            return self._get_nested_value(context.variables, parts[1:])

        if scope == "$env":
            return self._get_nested_value(dict(os.environ), parts[1:])

        if scope == "$workflow":
            return self._get_workflow_metadata(parts[1:], context)

        raise VariableResolutionError(f"Unknown variable scope: {scope}")

    def extract_variables(self, template: str) -> list[str]:
        """List every reference path in ``template``, first-seen order, no repeats."""
        if not template or not isinstance(template, str):
            return []

        variables: list[str] = []
        for pattern in (TRIPLE_BRACE_PATTERN, STRICT_DOUBLE_BRACE_PATTERN):
            for match in pattern.finditer(template):
                path = match.group(1).strip()
                if path and path not in variables:
                    variables.append(path)
        return variables

    def has_variables(self, template: str) -> bool:
        if not isinstance(template, str):
            return False
        return bool(HAS_VARIABLES_PATTERN.search(template))

    def validate_variables(self, template: str, context: ExecutionContext) -> tuple[bool, list[str]]:
        """Pre-flight check: which references in ``template`` cannot be resolved."""
        missing: list[str] = []
        for variable in self.extract_variables(template):
            try:
                if self.resolve_variable(variable, context) is None:
                    missing.append(variable)
            except VariableResolutionError:
                missing.append(variable)
        return not missing, missing

    @staticmethod
    def label_to_slug(label: str) -> str:
        return label_to_slug(label)

    # ─── Internals ────────────────────────────────────────────

    @staticmethod
    def _single_reference(value: str) -> Optional[str]:
        match = TRIPLE_BRACE_PATTERN.fullmatch(value) or DOUBLE_BRACE_PATTERN.fullmatch(value)
        if match:
            return match.group(1).strip()
        return None

    @staticmethod
    def _find_step(slug: str, context: ExecutionContext) -> Optional[NodeExecutionResult]:
        result = context.steps_by_label.get(slug)
        if result is not None:
            return result
        for candidate in context.results.values():
            if candidate.node_label and _label_to_slug(candidate.node_label) == slug:
                return candidate
        return None

    def _read_result(self, result: NodeExecutionResult, path: list[str]) -> Any:
        if not path:
            return result
        if path[0] == "output":
            return self._get_nested_value(result.output, path[1:])
        if path[0] == "success" and len(path) == 1:
            return result.success
        return self._get_nested_value(result.to_dict(), path)

    @staticmethod
    def _get_nested_value(obj: Any, path: list[str]) -> Any:
        current = obj
        for key in path:
            if current is None:
                return None
            if isinstance(current, dict):
                current = current.get(key)
            elif isinstance(current, (list, tuple)):
                try:
                    current = current[int(key)]
                except (ValueError, IndexError):
                    return None
            elif isinstance(current, str):
                return None
            else:
                current = getattr(current, key, None)
        return current

    @staticmethod
    def _get_workflow_metadata(path: list[str], context: ExecutionContext) -> Any:
        field_name = path[0] if path else None
        if field_name == "id":
            return context.workflow_id
        if field_name == "executionId":
            return context.execution_id
        if field_name == "userId":
            return context.user_id
        if field_name == "currentStep":
            return context.current_step
        return None
