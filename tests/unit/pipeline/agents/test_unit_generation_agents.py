# tests/unit/pipeline/agents/test_unit_generation_agents.py - v1
"""Tests for the script, flowchart, example and Q&A agents."""

from __future__ import annotations

import json

import pytest

from codexplain.core.errors import TransientServiceError
from codexplain.core.models import CodeExample, Flowchart, QAExchange
from codexplain.pipeline import prompts
from codexplain.pipeline.agents.example_generator import ExampleAgent
from codexplain.pipeline.agents.flowchart_builder import FlowchartAgent, normalize_flowchart
from codexplain.pipeline.agents.qa_responder import QAAgent, QAContext
from codexplain.pipeline.agents.script_writer import ScriptWriterAgent
from codexplain.pipeline.plugin_kit.models import AgentContext


@pytest.fixture
def branchy_context(branchy_request, branchy_analysis) -> AgentContext:
    return AgentContext(request=branchy_request, analysis=branchy_analysis, fingerprint="ab" * 32)


@pytest.fixture
def straight_context(straight_request, straight_analysis) -> AgentContext:
    return AgentContext(request=straight_request, analysis=straight_analysis)


# === SCRIPT ===


class TestScriptWriter:
    @pytest.mark.asyncio
    async def test_transcript_from_sections(self, straight_context, make_router, cloud_client):
        output = await ScriptWriterAgent().execute(straight_context, make_router(cloud=cloud_client))
        assert output.data["title"] == "Doubling values"
        assert output.data["sections"] == ["Purpose", "Details"]
        assert output.data["transcript"].startswith("This code assigns fifty variables")
        assert "\n\n" in output.data["transcript"]
        assert cloud_client.calls[0]["json_mode"] is True

    @pytest.mark.asyncio
    async def test_short_narration_warns(self, straight_context, make_router, cloud_client):
        output = await ScriptWriterAgent().execute(straight_context, make_router(cloud=cloud_client))
        assert output.confidence == 0.4
        assert output.warnings == ["Narration is much shorter than planned"]

    @pytest.mark.asyncio
    async def test_empty_narration_rejected(self, straight_context, make_router, fake_llm):
        client = fake_llm(name="anthropic", script=[json.dumps({"sections": [{"narration": " "}]})])
        with pytest.raises(TransientServiceError, match="empty narration"):
            await ScriptWriterAgent().execute(straight_context, make_router(cloud=client))

    def test_summary_mode_prompt(self, straight_request, straight_analysis):
        ctx = AgentContext(
            request=straight_request, analysis=straight_analysis,
            target_duration_s=600, summary_mode=True,
        )
        prompt = ScriptWriterAgent().build_prompt(ctx)
        assert prompts.SUMMARY_NARRATION in prompt
        assert "1500" in prompt

    @pytest.mark.asyncio
    async def test_wrong_context_type(self, make_router):
        with pytest.raises(TypeError):
            await ScriptWriterAgent().execute("nope", make_router())


# === FLOWCHART ===


class TestFlowchartAgent:
    @pytest.mark.asyncio
    async def test_no_control_flow_skips_ai(self, straight_context, make_router, cloud_client):
        output = await FlowchartAgent().execute(straight_context, make_router(cloud=cloud_client))
        chart = Flowchart(**output.data["flowchart"])
        assert chart == Flowchart.start_to_end()
        assert cloud_client.call_count == 0
        assert output.metadata.ai_calls == 0

    @pytest.mark.asyncio
    async def test_control_flow_chart(self, branchy_context, make_router, cloud_client):
        output = await FlowchartAgent().execute(branchy_context, make_router(cloud=cloud_client))
        chart = Flowchart(**output.data["flowchart"])
        assert {n.id for n in chart.nodes} == {"start", "neg", "ret_neg", "loop", "end"}
        assert len(chart.edges) == 5
        assert output.warnings == []
        assert output.confidence == 1.0

    @pytest.mark.asyncio
    async def test_unusable_output_lowers_confidence(self, branchy_context, make_router, fake_llm):
        client = fake_llm(name="anthropic", script=['{"nodes": [], "edges": []}'])
        output = await FlowchartAgent().execute(branchy_context, make_router(cloud=client))
        assert output.confidence == 0.5


class TestNormalizeFlowchart:
    def test_start_and_end_added(self):
        chart, dropped = normalize_flowchart(
            [{"id": "a", "label": "A"}, {"id": "b", "label": "B"}],
            [{"source": "a", "target": "b"}],
        )
        edges = {(e.source, e.target) for e in chart.edges}
        assert dropped == 0
        assert {("start", "a"), ("a", "b"), ("b", "end")} == edges

    def test_invalid_elements_dropped(self):
        chart, dropped = normalize_flowchart(
            [{"id": ""}, "junk", {"id": "a"}],
            ["junk", {"source": "a", "target": "ghost"}, {"source": "a", "target": "a"}],
        )
        assert dropped == 5
        assert {n.id for n in chart.nodes} == {"a", "start", "end"}

    def test_unreachable_nodes_pruned(self):
        chart, dropped = normalize_flowchart(
            [
                {"id": "s", "kind": "start"},
                {"id": "x"},
                {"id": "y"},
                {"id": "e", "kind": "end"},
            ],
            [
                {"source": "s", "target": "e"},
                {"source": "x", "target": "y"},
                {"source": "y", "target": "x"},
            ],
        )
        assert dropped == 2
        assert {n.id for n in chart.nodes} == {"s", "e"}

    def test_disconnected_start_and_end_joined(self):
        chart, _ = normalize_flowchart(
            [{"id": "s", "kind": "start"}, {"id": "e", "kind": "end"}], []
        )
        assert [(e.source, e.target) for e in chart.edges] == [("s", "e")]

    def test_kind_and_label_cleanup(self):
        chart, _ = normalize_flowchart(
            [{"id": "a", "kind": "Loop", "label": "x" * 200}, {"id": "b", "kind": "DECISION"}],
            [{"source": "a", "target": "b", "label": "yes"}],
        )
        nodes = {n.id: n for n in chart.nodes}
        assert nodes["a"].kind == "process"
        assert len(nodes["a"].label) == 80
        assert nodes["b"].kind == "decision"
        assert nodes["b"].label == "b"
        (labelled,) = [e for e in chart.edges if e.source == "a"]
        assert labelled.label == "yes"

    def test_existing_ids_not_reused(self):
        chart, _ = normalize_flowchart([{"id": "start"}, {"id": "end"}], [])
        kinds = {n.id: n.kind for n in chart.nodes}
        assert kinds["start_1"] == "start"
        assert kinds["end_1"] == "end"


# === EXAMPLES ===


class TestExampleAgent:
    @pytest.mark.asyncio
    async def test_examples(self, branchy_context, make_router, cloud_client):
        output = await ExampleAgent().execute(branchy_context, make_router(cloud=cloud_client))
        languages = [e["language"] for e in output.data["examples"]]
        assert languages == ["javascript", "go"]

    @pytest.mark.asyncio
    async def test_source_language_and_empty_code_filtered(self, branchy_context, make_router, fake_llm):
        response = json.dumps({
            "examples": [
                {"language": "Python", "code": "x = 1"},
                {"language": "rust", "code": ""},
                {"language": "go", "code": "x := 1"},
            ],
        })
        client = fake_llm(name="anthropic", script=[response])
        output = await ExampleAgent().execute(branchy_context, make_router(cloud=client))
        assert [e["language"] for e in output.data["examples"]] == ["go"]

    @pytest.mark.asyncio
    async def test_count_limits_output(self, branchy_context, make_router, cloud_client):
        output = await ExampleAgent(count=1).execute(branchy_context, make_router(cloud=cloud_client))
        assert len(output.data["examples"]) == 1

    @pytest.mark.asyncio
    async def test_nothing_usable(self, branchy_context, make_router, fake_llm):
        client = fake_llm(name="anthropic", script=['{"examples": []}'])
        with pytest.raises(TransientServiceError, match="no usable examples"):
            await ExampleAgent().execute(branchy_context, make_router(cloud=client))


# === Q&A ===


class TestQAAgent:
    def test_prompt_carries_context(self):
        ctx = QAContext(
            question="Why the loop?",
            code="for i in range(3): print(i)",
            source_language="python",
            transcript="It prints numbers.",
            flowchart=Flowchart.start_to_end(),
            examples=[CodeExample(language="go", code="fmt.Println(i)")],
            history=[QAExchange(question="What is i?", answer="A counter.")],
        )
        prompt = QAAgent().build_prompt(ctx)
        assert "Why the loop?" in prompt
        assert "It prints numbers." in prompt
        assert "Q: What is i?\nA: A counter." in prompt
        assert "EXAMPLE IN GO" in prompt
        # Trivial charts add nothing.
        assert "FLOWCHART STEPS" not in prompt

    @pytest.mark.asyncio
    async def test_answer(self, make_router, local_client):
        ctx = QAContext(question="What does it do?", code="x = 1")
        output = await QAAgent().execute(ctx, make_router(local=local_client))
        assert output.data["answer"] == "It doubles each index."
        assert output.confidence == 1.0
        assert local_client.calls[0]["system"] == prompts.QA_SYSTEM
