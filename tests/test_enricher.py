"""Tests for background enrichment: step isolation, supervision, delta merging."""

from __future__ import annotations

import asyncio

import pytest

from fake_upstream import FakeWikiClient
from wiki_resolver.batch_metadata import BatchMetadataFetcher
from wiki_resolver.errors import UpstreamUnavailableError
from wiki_resolver.pipeline import Coordinates, KnowledgeRecord, RecordDelta, RelatedArticle, ResolutionState
from wiki_resolver.pipeline.context import ResolverContext
from wiki_resolver.pipeline.enricher import BackgroundEnricher
from wiki_resolver.pipeline.step import EnrichmentRequest, EnrichmentStep


# =============================================================================
# Helpers
# =============================================================================


def _ctx(client=None) -> ResolverContext:
    client = client or FakeWikiClient()
    return ResolverContext(client=client, metadata_fetcher=BatchMetadataFetcher(client), related_limit=3)


def _record(**kwargs) -> KnowledgeRecord:
    defaults = {
        "title": "Albert Einstein",
        "summary": "Albert Einstein was a German-born theoretical physicist.",
        "record_id": "736",
        "canonical_url": "https://en.wikipedia.org/wiki/Albert_Einstein",
        "is_exact_match": True,
    }
    defaults.update(kwargs)
    return KnowledgeRecord(**defaults)


def _step(name, delta=None, error=None, gate=None, started=None):
    calls = []

    async def fn(ctx, record, request):
        calls.append(record.record_id)
        if started is not None:
            started.set()
        if gate is not None:
            await gate.wait()
        if error is not None:
            raise error
        return delta

    step = EnrichmentStep(name=name, fn=fn)
    step.calls = calls
    return step


# =============================================================================
# KnowledgeRecord.apply
# =============================================================================


def test_apply_is_additive():
    record = _record(categories=["Existing"])
    applied = record.apply(RecordDelta(
        categories=["New"],
        coordinates=Coordinates(lat=1.0, lon=2.0),
    ))

    assert record.categories == ["Existing"]
    assert applied.categories is None
    assert record.coordinates == Coordinates(lat=1.0, lon=2.0)
    assert applied.coordinates is not None


def test_apply_caps_categories_and_related():
    record = _record()
    record.apply(
        RecordDelta(
            categories=[f"C{i}" for i in range(8)],
            related_articles=[RelatedArticle(title=f"R{i}") for i in range(6)],
        ),
        related_limit=3,
    )
    assert record.categories == ["C0", "C1", "C2", "C3", "C4"]
    assert [r.title for r in record.related_articles] == ["R0", "R1", "R2"]


def test_apply_content_recomputes_reading_time():
    record = _record(reading_time=1)
    record.apply(RecordDelta(article_content="<p>" + "word " * 500 + "</p>"))
    assert record.reading_time == 2


def test_delta_is_empty():
    assert RecordDelta().is_empty()
    assert not RecordDelta(categories=["x"]).is_empty()


# =============================================================================
# Step isolation
# =============================================================================


@pytest.mark.asyncio
async def test_failing_step_does_not_stop_siblings():
    steps = [
        _step("broken", error=RuntimeError("bug in step")),
        _step("degraded", error=UpstreamUnavailableError("HTTP 503")),
        _step("metadata", delta=RecordDelta(categories=["Physicists"])),
    ]
    enricher = BackgroundEnricher(_ctx(), steps=steps)
    record = _record()

    await enricher.launch(record)

    assert record.categories == ["Physicists"]
    assert record.enriched is True
    assert all(step.calls == ["736"] for step in steps)
    assert enricher.completed == 1


@pytest.mark.asyncio
async def test_step_predicate_controls_execution():
    ran = _step("content", delta=RecordDelta(article_content="<p>Body</p>"))
    ran.when = lambda record, request: request.include_full_content
    enricher = BackgroundEnricher(_ctx(), steps=[ran])

    await enricher.launch(_record(record_id="1"))
    assert ran.calls == []

    record = _record(record_id="2")
    await enricher.launch(record, EnrichmentRequest(include_full_content=True))
    assert ran.calls == ["2"]
    assert record.article_content == "<p>Body</p>"


@pytest.mark.asyncio
async def test_disambiguation_and_sentinel_records_are_not_enriched():
    step = _step("metadata", delta=RecordDelta(categories=["x"]))
    enricher = BackgroundEnricher(_ctx(), steps=[step])

    assert enricher.launch(_record(is_disambiguation=True)) is None
    assert enricher.launch(_record(outcome=ResolutionState.NOT_FOUND)) is None
    assert len(enricher) == 0


# =============================================================================
# Supervision
# =============================================================================


@pytest.mark.asyncio
async def test_duplicate_launch_joins_running_task():
    gate = asyncio.Event()
    step = _step("metadata", delta=RecordDelta(categories=["Physicists"]), gate=gate)
    enricher = BackgroundEnricher(_ctx(), steps=[step])
    first, second = _record(), _record()

    task_a = enricher.launch(first)
    task_b = enricher.launch(second)
    assert task_a is task_b
    assert len(enricher) == 1

    gate.set()
    await task_a

    assert step.calls == ["736"]
    assert first.categories == second.categories == ["Physicists"]
    assert first.enriched and second.enriched


@pytest.mark.asyncio
async def test_late_joiner_receives_earlier_deltas():
    started = asyncio.Event()
    gate = asyncio.Event()
    steps = [
        _step("metadata", delta=RecordDelta(categories=["Physicists"])),
        _step("related", delta=RecordDelta(related_articles=[RelatedArticle(title="Max Planck")]),
              gate=gate, started=started),
    ]
    enricher = BackgroundEnricher(_ctx(), steps=steps)
    early = _record()

    task = enricher.launch(early)
    await started.wait()

    late = _record()
    enricher.launch(late)
    assert late.categories == ["Physicists"]

    gate.set()
    await task
    assert [r.title for r in late.related_articles] == ["Max Planck"]


@pytest.mark.asyncio
async def test_subscribers_receive_deltas_then_none():
    gate = asyncio.Event()
    enricher = BackgroundEnricher(_ctx(), steps=[
        _step("metadata", delta=RecordDelta(categories=["Physicists"]), gate=gate),
    ])
    record = _record()

    enricher.launch(record)
    queue = enricher.subscribe(record.record_id)
    gate.set()

    delta = await queue.get()
    assert delta.categories == ["Physicists"]
    assert await queue.get() is None


@pytest.mark.asyncio
async def test_subscribe_without_active_enrichment_ends_immediately():
    enricher = BackgroundEnricher(_ctx(), steps=[])
    queue = enricher.subscribe("nothing")
    assert await queue.get() is None


@pytest.mark.asyncio
async def test_cancel_waits_for_last_enrolled_record():
    gate = asyncio.Event()
    enricher = BackgroundEnricher(_ctx(), steps=[
        _step("metadata", delta=RecordDelta(categories=["x"]), gate=gate),
    ])
    first, second = _record(), _record()
    task = enricher.launch(first)
    enricher.launch(second)
    await asyncio.sleep(0)

    assert enricher.cancel("736", first) is False
    assert not task.cancelled()

    assert enricher.cancel("736", second) is True
    await asyncio.gather(task, return_exceptions=True)
    assert task.cancelled()
    assert not enricher.is_active("736")
    assert second.enriched is False


@pytest.mark.asyncio
async def test_launch_after_cancel_starts_fresh_task():
    gate = asyncio.Event()
    step = _step("metadata", delta=RecordDelta(categories=["Physicists"]), gate=gate)
    enricher = BackgroundEnricher(_ctx(), steps=[step])
    evicted, replacement = _record(), _record()

    old_task = enricher.launch(evicted)
    await asyncio.sleep(0)
    assert enricher.cancel("736", evicted) is True
    # released at once, before the cancelled task has unwound
    assert not enricher.is_active("736")

    new_task = enricher.launch(replacement)
    assert new_task is not old_task
    assert enricher.is_active("736")

    gate.set()
    await new_task
    assert old_task.cancelled()
    assert replacement.categories == ["Physicists"]
    assert replacement.enriched is True
    assert evicted.categories == []
    assert not enricher.is_active("736")


@pytest.mark.asyncio
async def test_joiner_widens_request_of_running_task():
    started = asyncio.Event()
    gate = asyncio.Event()
    content = _step("content", delta=RecordDelta(article_content="<p>Body</p>"))
    content.when = lambda record, request: request.include_full_content and record.article_content is None
    enricher = BackgroundEnricher(_ctx(), steps=[
        _step("metadata", delta=RecordDelta(categories=["Physicists"]), gate=gate, started=started),
        content,
    ])
    plain, wants_content = _record(), _record()

    task = enricher.launch(plain)
    await started.wait()
    assert enricher.launch(wants_content, EnrichmentRequest(include_full_content=True)) is task

    gate.set()
    await task
    assert content.calls == ["736"]
    assert wants_content.article_content == "<p>Body</p>"
    assert plain.article_content == "<p>Body</p>"


@pytest.mark.asyncio
async def test_stop_cancels_everything():
    gate = asyncio.Event()
    enricher = BackgroundEnricher(_ctx(), steps=[_step("slow", gate=gate)])
    tasks = [enricher.launch(_record(record_id=str(i))) for i in range(3)]

    await enricher.stop()

    assert all(t.cancelled() for t in tasks)
    assert len(enricher) == 0


# =============================================================================
# Default steps
# =============================================================================


@pytest.mark.asyncio
async def test_default_steps_against_fake_upstream():
    client = FakeWikiClient()
    client.metadata["Albert Einstein"] = {
        "categories": [{"title": f"Category:C{i}"} for i in range(7)],
        "coordinates": [{"lat": 48.4, "lon": 10.0, "primary": True}],
    }
    client.links["Albert Einstein"] = ["Albert Einstein", "Max Planck", "Ulm", "Bern"]
    client.html["Albert Einstein"] = '<p>Born in <a href="./Ulm">Ulm</a></p>'
    enricher = BackgroundEnricher(_ctx(client))
    record = _record()

    await enricher.launch(record, EnrichmentRequest(include_full_content=True))

    assert record.categories == ["C0", "C1", "C2", "C3", "C4"]
    assert record.coordinates == Coordinates(lat=48.4, lon=10.0)
    assert 'href="/search?query=Ulm"' in record.article_content
    assert [r.title for r in record.related_articles] == ["Max Planck", "Ulm", "Bern"]
    assert all(r.reason == "linked" for r in record.related_articles)


@pytest.mark.asyncio
async def test_related_step_skipped_for_weak_search_match():
    client = FakeWikiClient()
    client.links["Theory of relativity"] = ["Special relativity"]
    enricher = BackgroundEnricher(_ctx(client))
    record = _record(title="Theory of relativity", record_id="30001", is_exact_match=False, search_score=0.6)

    await enricher.launch(record)

    assert client.calls["links"] == []
    assert record.related_articles == []
    assert record.enriched is True
