"""Switch handler: routes on the first case matching a value."""

import re
from typing import Any, Dict, Optional

import structlog

from core.utils import utc_now
from handlers.base_handler import BaseHandler
from handlers.implementations.comparison import to_number, to_text
from workflow.graph import WorkflowNode
from workflow.types import ExecutionContext, NodeExecutionResult

logger = structlog.get_logger(__name__)

RANGE_PATTERN = re.compile(r"^\s*(-?\d+(?:\.\d+)?)\s*-\s*(-?\d+(?:\.\d+)?)\s*$")


def matches_case(value: Any, case_value: Any) -> bool:
    """Match a value against one case.

    Tried in order: exact text, numeric equality, case-insensitive text,
    ``*`` wildcards and inclusive ``min-max`` ranges.
    """
    value_text = to_text(value)
    case_text = to_text(case_value)

    if value_text == case_text:
        return True

    value_number = to_number(value)
    case_number = to_number(case_value)
    if value_number is not None and case_number is not None and value_number == case_number:
        return True

    if value_text.lower() == case_text.lower():
        return True

    if "*" in case_text:
        pattern = ".*".join(re.escape(part) for part in case_text.split("*"))
        return re.fullmatch(pattern, value_text, re.IGNORECASE) is not None

    range_match = RANGE_PATTERN.match(case_text)
    if range_match and value_number is not None:
        low, high = float(range_match.group(1)), float(range_match.group(2))
        return low <= value_number <= high

    return False


class SwitchHandler(BaseHandler):
    """Pick a branch by matching ``switchValue`` against ``cases``.

    Config:
        switchValue: Value to route on
        cases: [{"value": ..., "label": ...}], checked in order
        defaultLabel: Branch when nothing matches (default: default)
    """

    handler_type = "switch"
    display_name = "Switch"
    description = "Route to a branch based on a value"

    async def execute(
        self, node: WorkflowNode, context: ExecutionContext, config: Dict[str, Any]
    ) -> NodeExecutionResult:
        started_at = utc_now()

        switch_value = config.get("switchValue")
        cases = config.get("cases") or []
        default_label = config.get("defaultLabel") or "default"

        logger.info("Executing switch", node_id=node.id, switch_value=switch_value, case_count=len(cases))

        matched: Optional[dict] = None
        matched_index = -1
        for index, case in enumerate(cases):
            if isinstance(case, dict) and matches_case(switch_value, case.get("value")):
                matched, matched_index = case, index
                break

        if matched is not None:
            output = {
                "matched": True,
                "matchedValue": matched.get("value"),
                "matchedLabel": matched.get("label"),
                "matchedIndex": matched_index,
                "outputBranch": matched.get("label"),
                "switchValue": switch_value,
            }
        else:
            output = {
                "matched": False,
                "matchedValue": None,
                "matchedLabel": default_label,
                "matchedIndex": -1,
                "outputBranch": default_label,
                "switchValue": switch_value,
            }

        logger.info("Switch complete", matched=output["matched"], branch=output["outputBranch"])
        return self.success(output, started_at)
