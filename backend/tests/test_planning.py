import pytest

from archgraph.errors import PlanningError
from archgraph.graph.mutations import AddEdge, AddNode
from archgraph.planning.planner import LLMPlanner, Plan, parse_plan
from archgraph.planning.rules import StructuralRuleEvaluator, Violation, ValidationReport


class EchoBackend:
    def __init__(self, output: str) -> None:
        self.output = output
        self.prompts = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.output


def test_parse_plan_reads_fenced_operations():
    text = (
        "Adding a requirement for the validator.\n"
        "```json\n"
        '{"operations": ['
        '{"op": "add_node", "type": "REQ", "semantic_id": "Totals.RQ.001"},'
        '{"op": "add_edge", "source": "ValidateOrder.FN.001", "target": "Totals.RQ.001", "kind": "satisfy"}'
        "]}\n"
        "```"
    )

    plan = parse_plan(text)

    assert plan.reply == "Adding a requirement for the validator."
    assert plan.has_mutations
    assert isinstance(plan.operations[0], AddNode)
    assert isinstance(plan.operations[1], AddEdge)
    assert plan.batch().shape() == "add_edge:satisfy x1 | add_node:REQ x1"


def test_parse_plan_without_operations_is_reply_only():
    plan = parse_plan("There are 3 functions in the model.")

    assert plan == Plan(reply="There are 3 functions in the model.")
    assert not plan.has_mutations


@pytest.mark.parametrize(
    "text",
    [
        '```json\n{"operations": [\n```',
        'ok {"operations": [{"op": "explode"}]}',
        '```json\n{"operations": [{"op": "remove_node"}]}\n```',
        '```json\n{"operations": [{"op": "add_node", "type": "FUNC", "semantic_id": 123}]}\n```',
        '```json\n{"operations": [{"op": "update_node", "semantic_id": "A.FN.001", "attributes": {"w": NaN}}]}\n```',
        'ok {"operations": ["add_node"]}',
    ],
)
def test_parse_plan_rejects_malformed_operations(text):
    with pytest.raises(PlanningError):
        parse_plan(text)


def test_plan_dict_round_trip():
    plan = Plan(reply="done", operations=[AddNode("FUNC", "Pay.FN.001", {"name": "Pay"})])

    assert Plan.from_dict(plan.to_dict()) == plan


def test_llm_planner_prompt_lists_graph_and_context(loaded_store):
    backend = EchoBackend("Nothing to change.")
    planner = LLMPlanner(backend)

    plan = planner.plan("what is missing?", loaded_store.view(), context="Known patterns:\n- x")

    assert plan.reply == "Nothing to change."
    prompt = backend.prompts[0]
    assert "Graph: 3 nodes, 2 edges." in prompt
    assert "ValidateOrder.FN.001 [FUNC]" in prompt
    assert "PlaceOrder.UC.001 --compose--> ValidateOrder.FN.001" in prompt
    assert "Prior experience:" in prompt
    assert prompt.endswith("what is missing?")


def test_llm_planner_requires_backend():
    with pytest.raises(ValueError):
        LLMPlanner(None)


def test_structural_rules_on_sample_model(loaded_store):
    report = StructuralRuleEvaluator().evaluate(loaded_store.view())

    rules = {(v.rule_id, v.semantic_id) for v in report.violations}
    assert ("function_requirements", "ValidateOrder.FN.001") in rules
    assert ("function_allocation", "ValidateOrder.FN.001") in rules
    assert report.hard_failures == 0
    assert report.score == pytest.approx(0.9)


def test_hierarchy_cycle_is_a_hard_failure(store):
    store.apply(
        [
            AddNode("FCHAIN", "A.FC.001"),
            AddNode("FCHAIN", "B.FC.001"),
            AddEdge("A.FC.001", "B.FC.001", "compose"),
            AddEdge("B.FC.001", "A.FC.001", "compose"),
        ]
    )

    report = StructuralRuleEvaluator().evaluate(store.view())

    assert report.hard_failures == 1
    assert report.score == 0.0
    assert report.critique().startswith("Errors:\n- hierarchy_cycle")


def test_compose_tree_and_isolation(store):
    store.apply(
        [
            AddNode("SYS", "S.SY.001"),
            AddNode("MOD", "M1.MD.001"),
            AddNode("MOD", "M2.MD.001"),
            AddNode("SCHEMA", "Lonely.SC.001"),
            AddEdge("S.SY.001", "M2.MD.001", "compose"),
            AddEdge("M1.MD.001", "M2.MD.001", "compose"),
        ]
    )

    report = StructuralRuleEvaluator().evaluate(store.view())

    by_rule = {v.rule_id: v for v in report.violations}
    assert by_rule["compose_tree"].semantic_id == "M2.MD.001"
    assert by_rule["isolation"].semantic_id == "Lonely.SC.001"
    assert report.errors == 1
    assert report.warnings == 1


def test_clean_report_has_no_critique():
    report = ValidationReport(violations=[])

    assert report.critique() is None
    assert report.score == 1.0
    assert report.to_dict()["violations"] == []


def test_critique_is_truncated():
    report = ValidationReport(
        violations=[Violation("isolation", f"N{i}.MD.001", "node has no connections") for i in range(8)]
    )

    text = report.critique(max_items=2)

    assert text.count("- isolation") == 2
    assert text.endswith("... and 6 more")
