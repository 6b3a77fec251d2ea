# src/pipeline/agents/flowchart_builder.py - v1
"""Flowchart agent: control-flow diagram of the explained code.

Optional stage. Code without control flow gets a start -> end chart
without any AI call. AI output is normalised as a networkx DiGraph:
edges with unknown endpoints are dropped, start and end nodes are
guaranteed, and nodes unreachable from start are pruned.
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Any

import networkx as nx

from codexplain.core.models import (
    Flowchart,
    FlowchartEdge,
    FlowchartNode,
    RequestKind,
)
from codexplain.pipeline import prompts
from codexplain.pipeline.plugin_kit.base_agent import BaseAgent
from codexplain.pipeline.plugin_kit.models import AgentContext, AgentOutput

if TYPE_CHECKING:
    from codexplain.router.service_router import AIServiceRouter
    from codexplain.tracking.call_logger import CallLogger

logger = logging.getLogger(__name__)

_NODE_KINDS = {"start", "end", "process", "decision", "io"}
_MAX_LABEL = 80


class FlowchartAgent(BaseAgent):
    """Builds a flowchart for code with control flow."""

    @property
    def name(self) -> str:
        return "flowchart_builder"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def description(self) -> str:
        return "Control-flow diagram (nodes and edges) of the explained code"

    @property
    def request_kind(self) -> RequestKind:
        return RequestKind.FLOWCHART

    async def execute(
        self,
        context: object,
        router: AIServiceRouter,
        call_logger: CallLogger | None = None,
    ) -> AgentOutput:
        if not isinstance(context, AgentContext):
            raise TypeError(f"Expected AgentContext, got {type(context)}")

        started = time.monotonic()
        if not context.analysis.has_control_flow:
            chart = Flowchart.start_to_end()
            return AgentOutput(
                data={"flowchart": chart.model_dump()},
                confidence=1.0,
                metadata=self._metadata(started),
            )

        prompt = prompts.FLOWCHART_PROMPT.format(
            source_language=context.request.source_language,
            code=prompts.fence(context.request.code, context.request.source_language),
        )
        response = await self._complete(
            router, prompt, prompts.FLOWCHART_SYSTEM, call_logger, json_mode=True
        )
        parsed = self._parse_json(response.content)
        chart, dropped = normalize_flowchart(
            parsed.get("nodes", []), parsed.get("edges", [])
        )

        output = AgentOutput(
            data={"flowchart": chart.model_dump()},
            confidence=1.0,
            metadata=self._metadata(started, response, prompt),
        )
        if dropped:
            output.warnings.append(f"Dropped {dropped} invalid flowchart elements")
        output.confidence = self.validate_output(output)
        return output

    def validate_output(self, output: AgentOutput) -> float:
        chart = Flowchart(**output.data["flowchart"])
        if chart.is_trivial:
            # A trivial chart for code with control flow means the AI output was unusable.
            return 0.5
        return 1.0


def normalize_flowchart(
    raw_nodes: list[Any], raw_edges: list[Any]
) -> tuple[Flowchart, int]:
    """Turn loosely-structured AI output into a well-formed flowchart.

    Returns:
        The flowchart and the number of nodes/edges dropped.
    """
    graph = nx.DiGraph()
    dropped = 0

    for raw in raw_nodes:
        if not isinstance(raw, dict) or not str(raw.get("id", "")).strip():
            dropped += 1
            continue
        node_id = str(raw["id"]).strip()
        kind = str(raw.get("kind", "process")).lower()
        if kind not in _NODE_KINDS:
            kind = "process"
        label = str(raw.get("label") or node_id)[:_MAX_LABEL]
        graph.add_node(node_id, label=label, kind=kind)

    for raw in raw_edges:
        if not isinstance(raw, dict):
            dropped += 1
            continue
        source, target = str(raw.get("source", "")), str(raw.get("target", ""))
        if source not in graph or target not in graph or source == target:
            dropped += 1
            continue
        label = raw.get("label")
        graph.add_edge(source, target, label=str(label) if label else None)

    start = _find_kind(graph, "start")
    if start is None:
        start = _unique_id(graph, "start")
        entry_points = [n for n in graph.nodes if graph.in_degree(n) == 0]
        graph.add_node(start, label="Start", kind="start")
        for n in entry_points:
            graph.add_edge(start, n, label=None)

    end = _find_kind(graph, "end")
    if end is None:
        end = _unique_id(graph, "end")
        exits = [n for n in graph.nodes if graph.out_degree(n) == 0 and n != start]
        graph.add_node(end, label="End", kind="end")
        for n in exits:
            graph.add_edge(n, end, label=None)
    if not nx.has_path(graph, start, end):
        graph.add_edge(start, end, label=None)

    reachable = nx.descendants(graph, start) | {start}
    unreachable = [n for n in graph.nodes if n not in reachable]
    if unreachable:
        logger.debug("Pruning %d unreachable flowchart nodes", len(unreachable))
        dropped += len(unreachable)
        graph.remove_nodes_from(unreachable)

    chart = Flowchart(
        nodes=[
            FlowchartNode(id=n, label=data["label"], kind=data["kind"])
            for n, data in graph.nodes(data=True)
        ],
        edges=[
            FlowchartEdge(source=u, target=v, label=data.get("label"))
            for u, v, data in graph.edges(data=True)
        ],
    )
    return chart, dropped


def _find_kind(graph: nx.DiGraph, kind: str) -> str | None:
    for n, data in graph.nodes(data=True):
        if data["kind"] == kind:
            return n
    return None


def _unique_id(graph: nx.DiGraph, base: str) -> str:
    node_id, i = base, 1
    while node_id in graph:
        node_id = f"{base}_{i}"
        i += 1
    return node_id
