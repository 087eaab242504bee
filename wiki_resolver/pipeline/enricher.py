"""
Background enricher.

Augments a record after the pipeline has handed it to its caller: categories
and coordinates, full content when the caller asked for it, and linked
article stubs for confident matches. Each step is isolated; one failing step
never stops the others.

Enrichment runs as supervised asyncio tasks keyed by record id:
- launching again for a record id that is already being enriched joins the
  running task and widens its request instead of starting another;
- ``cancel`` stops the work when the cache evicts the record;
- ``stop`` cancels everything on shutdown.

Steps never write to the record directly. They return a RecordDelta that is
merged through ``KnowledgeRecord.apply`` and then published to subscribers.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from wiki_resolver.errors import UpstreamError
from wiki_resolver.pipeline.context import ResolverContext
from wiki_resolver.pipeline.knowledge_record import KnowledgeRecord, RecordDelta
from wiki_resolver.pipeline.step import EnrichmentRequest, EnrichmentStep

logger = logging.getLogger(__name__)


def _default_steps() -> List[EnrichmentStep]:
    # Lazy import to avoid pulling in step deps at package level
    from wiki_resolver.pipeline.steps import DEFAULT_STEPS
    return list(DEFAULT_STEPS)


def _merge_requests(current: EnrichmentRequest, joining: EnrichmentRequest) -> EnrichmentRequest:
    return EnrichmentRequest(
        include_full_content=current.include_full_content or joining.include_full_content,
    )


@dataclass
class _Enrollment:
    record_id: str
    request: EnrichmentRequest
    records: List[KnowledgeRecord] = field(default_factory=list)
    deltas: List[RecordDelta] = field(default_factory=list)
    subscribers: List[asyncio.Queue] = field(default_factory=list)
    task: Optional[asyncio.Task] = None
    closed: bool = False


class BackgroundEnricher:
    """Supervised registry of fire-and-forget enrichment tasks."""

    def __init__(self, ctx: ResolverContext, steps: Optional[List[EnrichmentStep]] = None):
        self.ctx = ctx
        self.steps = steps if steps is not None else _default_steps()
        self._active: Dict[str, _Enrollment] = {}
        self._completed = 0

    def launch(
        self,
        record: KnowledgeRecord,
        request: Optional[EnrichmentRequest] = None,
    ) -> Optional[asyncio.Task]:
        """Start (or join) enrichment for ``record``. Never awaited by the pipeline."""
        if record.is_disambiguation or record.is_sentinel:
            return None

        request = request or EnrichmentRequest()
        enrollment = self._active.get(record.record_id)
        if enrollment is not None:
            enrollment.request = _merge_requests(enrollment.request, request)
            if not any(r is record for r in enrollment.records):
                enrollment.records.append(record)
                # catch the late joiner up on what was already merged
                for delta in enrollment.deltas:
                    record.apply(delta, related_limit=self.ctx.related_limit)
            logger.debug(f"Joined running enrichment for {record.record_id}")
            return enrollment.task

        enrollment = _Enrollment(record_id=record.record_id, request=request, records=[record])
        enrollment.task = asyncio.create_task(
            self._enrich(enrollment),
            name=f"enrich:{record.record_id}",
        )
        self._active[record.record_id] = enrollment
        enrollment.task.add_done_callback(lambda t, e=enrollment: self._settle(e, t))
        return enrollment.task

    def cancel(self, record_id: str, record: Optional[KnowledgeRecord] = None) -> bool:
        """Stop enrichment for a record id.

        When ``record`` is given, only that record is withdrawn; the task is
        cancelled once no enrolled record remains. A cancelled enrollment is
        released immediately so a new launch for the same id starts afresh.
        """
        enrollment = self._active.get(record_id)
        if enrollment is None:
            return False
        if record is not None:
            enrollment.records = [r for r in enrollment.records if r is not record]
            if enrollment.records:
                return False
        logger.info(f"Cancelling enrichment for {record_id}")
        self._release(enrollment)
        return enrollment.task.cancel()

    def subscribe(self, record_id: str) -> asyncio.Queue:
        """Queue receiving each applied RecordDelta, then ``None`` when enrichment ends."""
        queue: asyncio.Queue = asyncio.Queue()
        enrollment = self._active.get(record_id)
        if enrollment is None:
            queue.put_nowait(None)
            return queue
        for delta in enrollment.deltas:
            queue.put_nowait(delta)
        enrollment.subscribers.append(queue)
        return queue

    async def wait(self, record_id: str) -> None:
        """Wait for enrichment of ``record_id`` to settle (success, failure or cancel)."""
        enrollment = self._active.get(record_id)
        if enrollment is not None:
            await asyncio.gather(enrollment.task, return_exceptions=True)

    async def stop(self):
        """Cancel all running enrichment tasks."""
        tasks = [e.task for e in self._active.values()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info(f"Enricher stopped ({len(tasks)} tasks cancelled)")

    def is_active(self, record_id: str) -> bool:
        return record_id in self._active

    @property
    def completed(self) -> int:
        return self._completed

    def __len__(self) -> int:
        return len(self._active)

    def _next_step(
        self, enrollment: _Enrollment, considered: Set[str]
    ) -> Tuple[Optional[EnrichmentStep], Optional[KnowledgeRecord]]:
        # Re-evaluated after every step: a joiner may have widened the request.
        for step in self.steps:
            if step.name in considered:
                continue
            for target in enrollment.records:
                if step.applies(target, enrollment.request):
                    return step, target
        return None, None

    async def _enrich(self, enrollment: _Enrollment):
        applied_steps = []
        considered: Set[str] = set()
        title = enrollment.records[0].title
        while True:
            step, target = self._next_step(enrollment, considered)
            if step is None:
                break
            considered.add(step.name)
            try:
                delta = await step(self.ctx, target, enrollment.request)
            except asyncio.CancelledError:
                raise
            except UpstreamError as e:
                logger.warning(f"Enrichment step '{step.name}' degraded for {title!r}: {e}")
                continue
            except Exception as e:
                logger.warning(
                    f"Enrichment step '{step.name}' failed for {title!r}: {e}",
                    exc_info=True,
                )
                continue

            if delta is None or delta.is_empty():
                continue
            self._publish(enrollment, delta)
            applied_steps.append(step.name)

        for record in enrollment.records:
            record.enriched = True
        logger.info(f"Enriched {title!r} ({', '.join(applied_steps) or 'no changes'})")

    def _publish(self, enrollment: _Enrollment, delta: RecordDelta) -> None:
        applied = None
        for target in enrollment.records:
            result = target.apply(delta, related_limit=self.ctx.related_limit)
            if applied is None or applied.is_empty():
                applied = result
        if applied is None or applied.is_empty():
            return
        enrollment.deltas.append(applied)
        for queue in enrollment.subscribers:
            queue.put_nowait(applied)

    def _release(self, enrollment: _Enrollment) -> None:
        if enrollment.closed:
            return
        enrollment.closed = True
        if self._active.get(enrollment.record_id) is enrollment:
            del self._active[enrollment.record_id]
        for queue in enrollment.subscribers:
            queue.put_nowait(None)

    def _settle(self, enrollment: _Enrollment, task: asyncio.Task) -> None:
        self._release(enrollment)
        self._completed += 1
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"Enrichment task for {enrollment.record_id} crashed: {task.exception()}")
