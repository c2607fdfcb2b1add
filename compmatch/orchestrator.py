from __future__ import annotations

"""
Batch orchestration.

For every reference URL:

    extract reference -> derive phrase -> discover candidates
      -> extract candidates (staggered) -> score -> aggregate

References run concurrently under a ``RateLimiter``; a failure inside one
reference never touches the others and always ends in a ``MatchResult``.
Only configuration problems and the batch deadline escape ``run_batch``.
"""

import asyncio
import inspect
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Union

import httpx
from loguru import logger

from .aggregate import aggregate, no_match_result
from .browser_pool import BrowserPool
from .config import MatchSettings
from .discovery import CandidateDiscovery
from .errors import BatchTimeoutError, ConfigurationFailure, DiscoveryFailure
from .extractor import CandidateExtractor
from .image_tagging import ImaggaClient
from .page_fetch import PageFetcher
from .pipeline_types import CandidateRecord, CandidateUrl, MatchResult, ReferenceProduct, ScoredCandidate
from .rate_limit import RateLimiter, SearchQuota
from .search_client import SerpApiClient
from .similarity import SimilarityEngine
from .utils.urls import domain_of
from .visual import ClassifierVisualComparator, HashVisualComparator, VisualComparator

Sink = Callable[[MatchResult], Union[None, Awaitable[None]]]


class BatchOrchestrator:
    def __init__(
        self,
        extractor: CandidateExtractor,
        discovery: CandidateDiscovery,
        engine: SimilarityEngine,
        settings: Optional[MatchSettings] = None,
        limiter: Optional[RateLimiter] = None,
        quota: Optional[SearchQuota] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.extractor = extractor
        self.discovery = discovery
        self.engine = engine
        self.settings = settings or MatchSettings()
        self.limiter = limiter or RateLimiter(
            self.settings.max_concurrent,
            self.settings.min_admission_interval,
        )
        self.quota = quota if quota is not None else SearchQuota(self.settings.search_quota)
        self._sleep = sleep

    # ---------------------------
    # one reference
    # ---------------------------

    async def _discover(self, reference: ReferenceProduct) -> List[CandidateUrl]:
        exclude = domain_of(reference.source_url)
        phrase = reference.search_phrase
        if not await self.discovery.is_cached(phrase, exclude):
            self.quota.take()
        return await self.discovery.discover(phrase, exclude_domain=exclude)

    async def _extract_candidate(self, cand: CandidateUrl, delay: float) -> Optional[CandidateRecord]:
        if delay > 0:
            await self._sleep(delay)
        try:
            record = await self.extractor.extract(cand.url)
        except ConfigurationFailure:
            raise
        except Exception as e:
            logger.warning("Candidate {} failed extraction: {}", cand.url, e)
            return None
        if record is None or not record.is_scorable:
            return None
        return record

    async def _score(self, reference: ReferenceProduct, record: CandidateRecord) -> Optional[ScoredCandidate]:
        try:
            score = await self.engine.score(reference, record)
        except ConfigurationFailure:
            raise
        except Exception as e:
            logger.warning("Scoring failed for {}: {}", record.url, e)
            return None
        return ScoredCandidate(candidate=record, score=score)

    async def process_reference(self, url: str, index: int = 0) -> MatchResult:
        threshold = self.settings.threshold

        reference = await self.extractor.extract_reference(url)
        if reference is None:
            return no_match_result(url, threshold, "reference_extraction_failed", input_index=index)
        if not reference.search_phrase:
            return no_match_result(url, threshold, "no_search_phrase", reference=reference, input_index=index)

        try:
            candidates = await self._discover(reference)
        except DiscoveryFailure as e:
            logger.warning("Discovery failed for {}: {}", url, e)
            return no_match_result(url, threshold, "discovery_failed", reference=reference, input_index=index)

        candidates = candidates[: self.settings.max_candidates]
        if not candidates:
            return no_match_result(url, threshold, "no_candidates", reference=reference, input_index=index)

        stagger = self.settings.candidate_stagger
        records = await asyncio.gather(
            *(self._extract_candidate(c, i * stagger) for i, c in enumerate(candidates))
        )
        usable = [r for r in records if r is not None]
        logger.info("{}: {} of {} candidates extracted", url, len(usable), len(candidates))

        scored = await asyncio.gather(*(self._score(reference, r) for r in usable))
        return aggregate(
            reference,
            attempted=len(candidates),
            scored=[s for s in scored if s is not None],
            threshold=threshold,
            input_index=index,
        )

    async def _guarded(self, url: str, index: int) -> MatchResult:
        async with self.limiter.admit():
            try:
                return await self.process_reference(url, index)
            except ConfigurationFailure:
                raise
            except Exception:
                logger.exception("Reference {} crashed; emitting no-match", url)
                return no_match_result(url, self.settings.threshold, "pipeline_error", input_index=index)

    # ---------------------------
    # batch
    # ---------------------------

    async def _emit(self, sink: Sink, result: MatchResult) -> None:
        try:
            out = sink(result)
            if inspect.isawaitable(out):
                await out
        except Exception:
            logger.exception("Sink failed for {}", result.reference_url)

    async def _run(self, urls: Sequence[str], sink: Optional[Sink]) -> List[MatchResult]:
        tasks = [asyncio.create_task(self._guarded(u, i)) for i, u in enumerate(urls)]
        done: Dict[int, MatchResult] = {}
        next_index = 0
        try:
            for fut in asyncio.as_completed(tasks):
                result = await fut
                done[result.input_index] = result
                # hand results to the sink in input order
                while next_index in done:
                    if sink is not None:
                        await self._emit(sink, done[next_index])
                    next_index += 1
        finally:
            pending = [t for t in tasks if not t.done()]
            for t in pending:
                t.cancel()
            # collect outcomes so nothing is left unretrieved
            await asyncio.gather(*tasks, return_exceptions=True)
        return [done[i] for i in range(len(urls))]

    async def run_batch(self, urls: Sequence[str], sink: Optional[Sink] = None) -> List[MatchResult]:
        """
        Run every URL through the pipeline.

        Returns exactly one ``MatchResult`` per input URL, in input order.
        Raises ``BatchTimeoutError`` when the batch deadline expires and
        ``ConfigurationFailure`` on bad credentials.
        """
        urls = list(urls)
        if not urls:
            return []
        deadline = self.settings.batch_deadline
        logger.info("Batch: {} references, concurrency {}, deadline {}s", len(urls), self.limiter.max_concurrent, deadline)
        try:
            results = await asyncio.wait_for(self._run(urls, sink), timeout=deadline)
        except asyncio.TimeoutError:
            raise BatchTimeoutError("batch deadline expired", {"deadline": deadline, "references": len(urls)}) from None
        matched = sum(1 for r in results if r.has_matches)
        logger.info("Batch: done, {} of {} references matched", matched, len(results))
        return results


def build_orchestrator(
    client: httpx.AsyncClient,
    settings: Optional[MatchSettings] = None,
    browser_pool: Optional[BrowserPool] = None,
    serp_api_key: Optional[str] = None,
) -> BatchOrchestrator:
    """
    Wire the default components around one shared HTTP client.

    The caller owns ``client`` and ``browser_pool`` and closes them.
    """
    settings = settings or MatchSettings()
    extractor = CandidateExtractor(PageFetcher(client), browser_pool=browser_pool)
    discovery = CandidateDiscovery(SerpApiClient(client, api_key=serp_api_key), settings=settings)
    visual = VisualComparator(
        classifier=ClassifierVisualComparator(ImaggaClient(client)),
        hasher=HashVisualComparator(client),
    )
    engine = SimilarityEngine(visual, settings=settings)
    return BatchOrchestrator(extractor, discovery, engine, settings=settings)
