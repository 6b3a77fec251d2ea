# tests/integration/test_integration_flow.py - v1
"""End-to-end: orchestrator -> router -> persistent cache -> manifest -> Q&A."""

from __future__ import annotations

import json

import pytest

from codexplain.cache.content_cache import ContentCache
from codexplain.cache.fingerprint import compute_fingerprint
from codexplain.cache.models import artifact_size
from codexplain.core.errors import SessionNotFound
from codexplain.qa.session_store import QASessionStore


class HTTPError(Exception):
    def __init__(self, status_code: int) -> None:
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def _always_503(messages, system):
    return HTTPError(503)


@pytest.mark.asyncio
async def test_artifact_survives_restart(
    open_store, make_orchestrator, make_router, fake_llm, branchy_request, tmp_output_dir
):
    await open_store().clear()
    client = fake_llm(name="anthropic")
    first = make_orchestrator(
        make_router(cloud=client), cache=ContentCache(open_store(), max_bytes=10_000_000)
    )
    content = await first.orchestrate(branchy_request)
    assert client.call_count == 3

    restarted = make_orchestrator(
        make_router(cloud=client), cache=ContentCache(open_store(), max_bytes=10_000_000)
    )
    again = await restarted.orchestrate(branchy_request)
    assert again.id == content.id
    assert again.transcript == content.transcript
    assert client.call_count == 3

    fp = compute_fingerprint(branchy_request)
    manifest = json.loads((tmp_output_dir / fp[:2] / fp / "manifest.json").read_text())
    assert manifest["duration_seconds"] == content.duration_seconds

    (meta,) = await restarted.cache.list()
    assert meta.access_count == 1
    assert meta.snippet_preview.startswith("def classify(n):")


@pytest.mark.asyncio
async def test_budget_enforced_across_restart(
    clean_store, open_store, make_orchestrator, make_router, cloud_client,
    straight_request, branchy_request,
):
    probe = ContentCache(clean_store, max_bytes=10_000_000)
    orch = make_orchestrator(make_router(cloud=cloud_client), cache=probe)
    straight = await orch.orchestrate(straight_request)
    branchy = await orch.orchestrate(branchy_request)
    budget = max(artifact_size(straight), artifact_size(branchy)) + 10

    small = ContentCache(open_store(), max_bytes=budget)
    listed = await small.list()
    assert len(listed) == 1
    assert listed[0].fingerprint == compute_fingerprint(branchy_request)
    assert small.total_bytes <= budget


@pytest.mark.asyncio
async def test_edit_invalidates_and_closes_sessions(
    clean_store, make_orchestrator, make_router, cloud_client, local_client, branchy_request
):
    cache = ContentCache(clean_store, max_bytes=10_000_000)
    router = make_router(cloud=cloud_client, local=local_client)
    orch = make_orchestrator(router, cache=cache)
    qa = QASessionStore(router, cache=cache)

    located = branchy_request.model_copy(update={"file_path": "/proj/app.py", "selection": (1, 6)})
    content = await orch.orchestrate(located)
    session = qa.create_session(content, located.code, source_language="python")
    exchange = await qa.ask(session.id, "What happens for negative input?")
    assert exchange.answer

    edited = located.model_copy(update={"code": located.code.replace("negative", "below zero")})
    await orch.orchestrate(edited)

    assert await cache.get(compute_fingerprint(located)) is None
    with pytest.raises(SessionNotFound):
        await qa.ask(session.id, "And now?")


@pytest.mark.asyncio
async def test_cloud_outage_served_locally(
    clean_store, make_orchestrator, make_router, fake_llm, local_client, branchy_request
):
    cloud = fake_llm(name="anthropic", handler=_always_503)
    router = make_router(cloud=cloud, local=local_client)
    orch = make_orchestrator(router, cache=ContentCache(clean_store, max_bytes=10_000_000))

    content = await orch.orchestrate(branchy_request)
    assert content.partial is False
    assert cloud.call_count == 3
    assert local_client.call_count == 3
    assert router.health.get("anthropic").available is False
