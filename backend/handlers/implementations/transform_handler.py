"""Transform handler: reshapes data between steps."""

import json
from typing import Any, Dict

import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from handlers.implementations.comparison import get_path
from workflow.errors import ErrorType, WorkflowExecutionError
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)


def _parse_json(value: Any, default: Any) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        return default


class TransformHandler(BaseHandler):
    """Transform input data.

    Config:
        transformType: extract | map | merge | template | json (default: extract)
        input: Data to transform (JSON strings are parsed)
        fields: extract: comma-separated dot paths, or a list of them
        mapping: map: {"old": "new"} renames (dict or JSON string)
        mergeWith: merge: object merged over the input
        template: template: already-resolved text returned as is
        jsonOperation: json: parse | stringify | pretty
    """

    handler_type = "transform"
    display_name = "Transform"
    description = "Extract, rename, merge or format data"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()
        transform_type = config.get("transformType") or "extract"
        data = _parse_json(config.get("input"), config.get("input"))

        logger.info("Executing transform", node_id=node.id, transform_type=transform_type)

        try:
            if transform_type == "extract":
                result = self._extract_fields(data, config.get("fields"))
            elif transform_type == "map":
                result = self._map_fields(data, config.get("mapping"))
            elif transform_type == "merge":
                result = self._merge(data, config.get("mergeWith"))
            elif transform_type == "template":
                result = config.get("template") or ""
            elif transform_type == "json":
                result = self._json_operation(data, config.get("jsonOperation"))
            else:
                result = data
        except WorkflowExecutionError as e:
            return self.failure(e, started_at)

        return self.success({"data": result, "transformType": transform_type}, started_at)

    @staticmethod
    def _extract_fields(data: Any, fields: Any) -> Any:
        if not fields or not isinstance(data, (dict, list)):
            return data
        if isinstance(fields, str):
            fields = [f.strip() for f in fields.split(",")]
        return {f: get_path(data, f) for f in fields if f}

    @staticmethod
    def _map_fields(data: Any, mapping: Any) -> Any:
        if not isinstance(data, dict):
            return data
        mapping = _parse_json(mapping, None)
        if not isinstance(mapping, dict):
            return data

        result = dict(data)
        for old_key, new_key in mapping.items():
            if old_key in data:
                if old_key != new_key:
                    result.pop(old_key, None)
                result[new_key] = data[old_key]
        return result

    @staticmethod
    def _merge(data: Any, merge_with: Any) -> Any:
        if not isinstance(data, dict):
            return merge_with or data
        merge_with = _parse_json(merge_with, {})
        if not isinstance(merge_with, dict):
            return data
        return {**data, **merge_with}

    @staticmethod
    def _json_operation(data: Any, operation: Any) -> Any:
        if operation == "parse":
            if isinstance(data, str):
                try:
                    return json.loads(data)
                except ValueError:
                    raise WorkflowExecutionError("Invalid JSON string", ErrorType.VALIDATION_ERROR)
            return data
        if operation == "stringify":
            return json.dumps(data, default=str)
        if operation == "pretty":
            return json.dumps(data, indent=2, default=str)
        return data
