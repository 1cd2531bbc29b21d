"""Tests for the built-in control-flow handlers."""

import pytest

from handlers.implementations.comparison import compare, get_path, to_number, values_equal
from handlers.implementations.condition_handler import ConditionHandler
from handlers.implementations.delay_handler import DelayHandler
from handlers.implementations.filter_handler import FilterHandler
from handlers.implementations.loop_handler import ForEachLoopHandler, RepeatLoopHandler
from handlers.implementations.switch_handler import SwitchHandler, matches_case
from handlers.implementations.transform_handler import TransformHandler
from handlers.implementations.trigger_handler import TriggerHandler
from workflow.config_normalizer import normalize_config
from workflow.errors import WorkflowExecutionError
from workflow.graph import WorkflowNode


def make_node(node_type: str, config: dict = None) -> WorkflowNode:
    return WorkflowNode(id="n1", node_type=node_type, label="Test Step", config=config or {})


# ─── Comparison helpers ───

@pytest.mark.unit
class TestComparison:
    def test_numeric_strings(self):
        assert compare("600", "greater_than", 500)
        assert compare(10, "less_than_or_equal", "10")
        assert values_equal("1.0", 1)

    def test_text_operators(self):
        assert compare("Hello World", "contains", "World")
        assert not compare("Hello World", "contains", "world")
        assert compare("Hello World", "contains", "world", case_sensitive=False)
        assert compare("invoice-22", "starts_with", "invoice")
        assert compare("report.pdf", "ends_with", ".pdf")
        assert compare("abc123", "regex", r"\d+")

    def test_emptiness(self):
        assert compare("", "is_empty", None)
        assert compare([1], "is_not_empty", None)
        assert compare(0, "exists", None)
        assert compare(None, "not_exists", None)

    def test_unknown_operator(self):
        with pytest.raises(WorkflowExecutionError) as exc_info:
            compare(1, "between", 2)
        assert exc_info.value.error_type.value == "VALIDATION_ERROR"

    def test_mixed_types_do_not_raise(self):
        assert compare("abc", "greater_than", 5) is False

    def test_booleans_are_not_numbers(self):
        assert to_number(True) is None

    def test_get_path(self):
        data = {"order": {"items": [{"sku": "A"}, {"sku": "B"}]}}
        assert get_path(data, "order.items.1.sku") == "B"
        assert get_path(data, "order.missing.sku") is None
        assert get_path(data, "") is data


# ─── Trigger ───

@pytest.mark.unit
class TestTriggerHandler:
    @pytest.mark.asyncio
    async def test_passes_trigger_data(self, context):
        result = await TriggerHandler().run(make_node("trigger"), context, {})
        assert result.success
        assert result.output["data"] == context.trigger_data
        assert result.output["message"] == "Trigger data passed through successfully"

    @pytest.mark.asyncio
    async def test_empty_trigger_data(self, context):
        context.trigger_data = None
        result = await TriggerHandler().run(make_node("trigger"), context, {})
        assert result.output["data"] == {}


# ─── Condition ───

@pytest.mark.unit
class TestConditionHandler:
    @pytest.mark.asyncio
    async def test_yes_branch(self, context):
        config = {"left": 600, "operator": "greater_than", "right": 500}
        result = await ConditionHandler().run(make_node("condition", config), context, config)
        assert result.success
        assert result.output["result"] is True
        assert result.output["branch"] == "yes"

    @pytest.mark.asyncio
    async def test_no_branch(self, context):
        config = {"left": "gold", "operator": "equals", "right": "silver"}
        result = await ConditionHandler().run(make_node("condition", config), context, config)
        assert result.output["branch"] == "no"

    @pytest.mark.asyncio
    async def test_missing_left(self, context):
        config = {"operator": "equals", "right": 1}
        result = await ConditionHandler().run(make_node("condition", config), context, config)
        assert not result.success
        assert result.error == "Left value is required"
        assert result.error_type == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_unknown_operator_fails(self, context):
        config = {"left": 1, "operator": "between", "right": 2}
        result = await ConditionHandler().run(make_node("condition", config), context, config)
        assert not result.success
        assert "Unknown operator" in result.error

    def test_validate(self):
        assert ConditionHandler().validate(make_node("condition", {"field": "x"}))
        assert not ConditionHandler().validate(make_node("condition", {}))


# ─── Delay ───

@pytest.mark.unit
class TestDelayHandler:
    @pytest.mark.asyncio
    async def test_converts_units(self, context, monkeypatch):
        slept = []

        async def fake_sleep(seconds):
            slept.append(seconds)

        monkeypatch.setattr("handlers.implementations.delay_handler.asyncio.sleep", fake_sleep)
        config = {"duration": 2, "unit": "seconds"}
        result = await DelayHandler().run(make_node("delay"), context, config)

        assert result.success
        assert result.output == {"delayMs": 2000, "unit": "seconds", "duration": 2}
        assert slept == [2.0]

    @pytest.mark.asyncio
    async def test_short_real_delay(self, context):
        result = await DelayHandler().run(make_node("delay"), context, {"duration": 5, "unit": "milliseconds"})
        assert result.success
        assert result.output["delayMs"] == 5

    @pytest.mark.asyncio
    async def test_rejects_over_maximum(self, context):
        result = await DelayHandler(max_delay_ms=60000).run(
            make_node("delay"), context, {"duration": 2, "unit": "minutes"}
        )
        assert not result.success
        assert result.error == "Maximum delay is 1 minutes"
        assert result.error_type == "VALIDATION_ERROR"

    @pytest.mark.asyncio
    async def test_rejects_non_numeric(self, context):
        result = await DelayHandler().run(make_node("delay"), context, {"duration": "soon"})
        assert not result.success

    @pytest.mark.asyncio
    @pytest.mark.parametrize("duration", ["nan", "inf", float("nan")])
    async def test_rejects_non_finite(self, context, duration):
        config = normalize_config("delay", {"duration": duration})
        result = await DelayHandler().run(make_node("delay"), context, config)
        assert not result.success
        assert result.error_type == "VALIDATION_ERROR"


# ─── Loops ───

@pytest.mark.unit
class TestLoopHandlers:
    @pytest.mark.asyncio
    async def test_foreach_list(self, context):
        result = await ForEachLoopHandler().run(make_node("loop"), context, {"array": ["a", "b"]})
        assert result.output["count"] == 2
        assert result.output["results"] == [{"item": "a", "index": 0}, {"item": "b", "index": 1}]
        assert result.output["currentItem"] == "a"
        assert result.output["itemVariable"] == "item"

    @pytest.mark.asyncio
    async def test_foreach_json_string(self, context):
        result = await ForEachLoopHandler().run(make_node("loop"), context, {"array": "[1, 2, 3]"})
        assert result.output["items"] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_foreach_plain_string_is_single_item(self, context):
        result = await ForEachLoopHandler().run(make_node("loop"), context, {"array": "solo"})
        assert result.output["items"] == ["solo"]

    @pytest.mark.asyncio
    async def test_foreach_truncates(self, context):
        config = {"array": list(range(10)), "maxIterations": 3}
        result = await ForEachLoopHandler().run(make_node("loop"), context, config)
        assert result.output["items"] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_foreach_rejects_non_array(self, context):
        result = await ForEachLoopHandler().run(make_node("loop"), context, {"array": {"a": 1}})
        assert not result.success

    @pytest.mark.asyncio
    async def test_repeat(self, context):
        result = await RepeatLoopHandler().run(make_node("loop"), context, {"count": "4"})
        assert result.output["iterations"] == [0, 1, 2, 3]
        assert result.output["indexVariable"] == "index"

    @pytest.mark.asyncio
    async def test_repeat_capped(self, context):
        result = await RepeatLoopHandler(max_iterations=5).run(make_node("loop"), context, {"count": 50})
        assert result.output["count"] == 5

    @pytest.mark.asyncio
    async def test_repeat_minimum_one(self, context):
        result = await RepeatLoopHandler().run(make_node("loop"), context, {"count": -2})
        assert result.output["count"] == 1


# ─── Filter ───

ORDERS = [
    {"id": 1, "status": "Paid", "total": 120},
    {"id": 2, "status": "pending", "total": 40},
    {"id": 3, "status": "paid", "total": 300},
]


@pytest.mark.unit
class TestFilterHandler:
    @pytest.mark.asyncio
    async def test_equals_field(self, context):
        config = {"array": ORDERS, "field": "status", "operator": "equals", "filterValue": "paid"}
        result = await FilterHandler().run(make_node("filter"), context, config)
        assert [o["id"] for o in result.output["items"]] == [3]
        assert result.output["originalCount"] == 3
        assert result.output["filtered"] == 2

    @pytest.mark.asyncio
    async def test_contains_ignores_case(self, context):
        config = {"array": ORDERS, "field": "status", "operator": "contains", "value": "PAID"}
        result = await FilterHandler().run(make_node("filter"), context, config)
        assert result.output["count"] == 2

    @pytest.mark.asyncio
    async def test_numeric_comparison(self, context):
        config = {"array": ORDERS, "field": "total", "operator": "greater_than", "filterValue": "100"}
        result = await FilterHandler().run(make_node("filter"), context, config)
        assert [o["id"] for o in result.output["items"]] == [1, 3]

    @pytest.mark.asyncio
    async def test_invalid_json(self, context):
        result = await FilterHandler().run(make_node("filter"), context, {"array": "[oops"})
        assert not result.success
        assert result.error == "Invalid array data: could not parse"

    @pytest.mark.asyncio
    async def test_not_an_array(self, context):
        result = await FilterHandler().run(make_node("filter"), context, {"array": 5})
        assert result.error == "Input is not an array"


# ─── Switch ───

@pytest.mark.unit
class TestSwitchHandler:
    @pytest.mark.parametrize("value,case_value,expected", [
        ("gold", "gold", True),
        (5, "5.0", True),
        ("GOLD", "gold", True),
        ("order-123", "order-*", True),
        (42, "10-50", True),
        (51, "10-50", False),
        ("silver", "gold", False),
    ])
    def test_matches_case(self, value, case_value, expected):
        assert matches_case(value, case_value) is expected

    @pytest.mark.asyncio
    async def test_first_match(self, context):
        config = {
            "switchValue": "premium",
            "cases": [{"value": "basic", "label": "Basic"}, {"value": "prem*", "label": "Premium"}],
        }
        result = await SwitchHandler().run(make_node("switch"), context, config)
        assert result.output["matched"] is True
        assert result.output["outputBranch"] == "Premium"
        assert result.output["matchedIndex"] == 1

    @pytest.mark.asyncio
    async def test_default_branch(self, context):
        config = {"switchValue": "x", "cases": [{"value": "y", "label": "Y"}], "defaultLabel": "fallback"}
        result = await SwitchHandler().run(make_node("switch"), context, config)
        assert result.output["matched"] is False
        assert result.output["outputBranch"] == "fallback"


# ─── Transform ───

@pytest.mark.unit
class TestTransformHandler:
    @pytest.mark.asyncio
    async def test_extract(self, context):
        config = {"transformType": "extract", "input": {"a": {"b": 1}, "c": 2}, "fields": "a.b, c"}
        result = await TransformHandler().run(make_node("transform"), context, config)
        assert result.output == {"data": {"a.b": 1, "c": 2}, "transformType": "extract"}

    @pytest.mark.asyncio
    async def test_map(self, context):
        config = {"transformType": "map", "input": '{"first": "Ada"}', "mapping": {"first": "firstName"}}
        result = await TransformHandler().run(make_node("transform"), context, config)
        assert result.output["data"] == {"firstName": "Ada"}

    @pytest.mark.asyncio
    async def test_merge(self, context):
        config = {"transformType": "merge", "input": {"a": 1}, "mergeWith": '{"b": 2}'}
        result = await TransformHandler().run(make_node("transform"), context, config)
        assert result.output["data"] == {"a": 1, "b": 2}

    @pytest.mark.asyncio
    async def test_template(self, context):
        config = {"transformType": "template", "template": "Hello Ada"}
        result = await TransformHandler().run(make_node("transform"), context, config)
        assert result.output["data"] == "Hello Ada"

    @pytest.mark.asyncio
    async def test_json_stringify(self, context):
        config = {"transformType": "json", "input": {"a": 1}, "jsonOperation": "stringify"}
        result = await TransformHandler().run(make_node("transform"), context, config)
        assert result.output["data"] == '{"a": 1}'

    @pytest.mark.asyncio
    async def test_json_parse_invalid(self, context):
        config = {"transformType": "json", "input": "{bad", "jsonOperation": "parse"}
        result = await TransformHandler().run(make_node("transform"), context, config)
        assert not result.success
        assert result.error == "Invalid JSON string"
