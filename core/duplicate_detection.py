# core/duplicate_detection.py

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from typing import Iterable, List, Optional

from config import SystemConfig
from core.ai_judge import AISimilarityJudge
from core.candidate_selector import CandidateSelector
from core.errors import ComparisonDegraded, DecodeError
from core.hash_comparator import HashComparator
from core.models import (CandidateAsset, DuplicateDecision, DuplicateMatch,
                         JudgeVerdict, MatchMethod, PairComparison)
from core.perceptual_hash import PerceptualHasher
from utils.logging_config import PerformanceLogger

logger = logging.getLogger(__name__)


class DuplicateDecisionEngine:
    """
    Duplicate decision pipeline for a single upload

    Signals in strict priority order:
    1. Exact SHA-256 match - short-circuits, no AI call
    2. Perceptual dHash similarity against every selected candidate
    3. One AI judge call on the best perceptual match, corroborating only

    Every stage degrades to the next weaker signal on failure; only
    HashingError (input is not bytes) escapes decide().
    """

    def __init__(self,
                 hasher: Optional[PerceptualHasher] = None,
                 comparator: Optional[HashComparator] = None,
                 selector: Optional[CandidateSelector] = None,
                 judge: Optional[AISimilarityJudge] = None,
                 ai_confidence_floor: float = 0.9,
                 perf_logger: Optional[PerformanceLogger] = None):
        self.hasher = hasher or PerceptualHasher()
        self.comparator = comparator or HashComparator(max_distance=self.hasher.bit_length)
        self.selector = selector or CandidateSelector()
        self.judge = judge
        self.ai_confidence_floor = ai_confidence_floor
        self.perf_logger = perf_logger or PerformanceLogger()

    @classmethod
    def from_config(cls, config: SystemConfig, http_client=None) -> 'DuplicateDecisionEngine':
        """Build the engine; raises ConfigurationError if AI is enabled without a key"""
        hasher = PerceptualHasher(
            hash_size=config.hashing.hash_size,
            max_image_pixels=config.hashing.max_image_pixels
        )
        comparator = HashComparator(
            max_distance=hasher.bit_length,
            similarity_threshold=config.hashing.similarity_threshold,
            allow_padding=config.hashing.allow_padded_comparisons
        )
        judge = None
        if config.ai_judge.enabled:
            judge = AISimilarityJudge.from_config(config.ai_judge, http_client=http_client)

        return cls(
            hasher=hasher,
            comparator=comparator,
            selector=CandidateSelector(cap=config.candidates.cap),
            judge=judge,
            ai_confidence_floor=config.decision.ai_confidence_floor
        )

    def decide(self,
               image_bytes: bytes,
               candidate_pool: Iterable[CandidateAsset],
               uploader_id: Optional[str] = None,
               cap: Optional[int] = None,
               cancel_event: Optional[threading.Event] = None) -> DuplicateDecision:
        """
        Decide whether image_bytes duplicates anything in candidate_pool

        Args:
            image_bytes: Raw upload, already validated for type and size
            candidate_pool: Existing assets fetched by the caller
            uploader_id: Assets by this creator are never candidates
            cap: Override for the selector's candidate cap
            cancel_event: Set when the enclosing request is aborted

        Returns:
            DuplicateDecision; persisting it is the caller's job
        """
        start = time.perf_counter()
        digest = self.hasher.sha256(image_bytes)
        candidates = self.selector.select(candidate_pool, exclude_creator=uploader_id, cap=cap)

        exact = self._exact_match(digest, candidates)
        if exact is not None:
            decision = DuplicateDecision.from_matches([exact], len(candidates))
            self._log_decision(decision, start)
            return decision

        matches, by_id = self._perceptual_matches(image_bytes, candidates)

        if matches and self.judge is not None:
            best = max(matches, key=lambda m: m.confidence)
            self._corroborate(image_bytes, best, by_id[best.asset_id], cancel_event)

        decision = DuplicateDecision.from_matches(matches, len(candidates))
        self._log_decision(decision, start)
        return decision

    def compare_pair(self, image_a: bytes, image_b: bytes,
                     use_ai: bool = True) -> PairComparison:
        """Compare two images directly, with the same merge rules as decide()"""
        if self.hasher.sha256(image_a) == self.hasher.sha256(image_b):
            return PairComparison(exact=True, local=None, verdict=None,
                                  is_duplicate=True, confidence=1.0)

        local = None
        try:
            local = self.comparator.compare(
                self.hasher.dhash(image_a), self.hasher.dhash(image_b)
            )
        except DecodeError as e:
            logger.warning("Local comparison unavailable: %s", e)

        verdict = None
        if use_ai and self.judge is not None:
            verdict = self.judge.judge(image_a, image_b)

        # The AI verdict alone never makes a duplicate
        is_duplicate = local is not None and local.is_similar
        confidence = local.similarity if local is not None else 0.0
        if is_duplicate and verdict is not None and verdict.same:
            confidence = max(confidence, self.ai_confidence_floor)

        return PairComparison(exact=False, local=local, verdict=verdict,
                              is_duplicate=is_duplicate, confidence=confidence)

    def _exact_match(self, digest: str,
                     candidates: List[CandidateAsset]) -> Optional[DuplicateMatch]:
        for candidate in candidates:
            if candidate.stored_hash.sha256.lower() == digest:
                return DuplicateMatch(
                    asset_id=candidate.asset_id,
                    method=MatchMethod.EXACT,
                    confidence=1.0,
                    reason="identical SHA-256 digest"
                )
        return None

    def _perceptual_matches(self, image_bytes: bytes, candidates: List[CandidateAsset]):
        matches = []
        by_id = {}

        try:
            new_hash = self.hasher.dhash(image_bytes)
        except DecodeError as e:
            logger.warning("Perceptual hashing failed, exact match only: %s", e)
            return matches, by_id

        for candidate in candidates:
            stored = candidate.stored_hash.perceptual_hash
            if not stored:
                continue

            try:
                result = self.comparator.compare(new_hash, stored)
            except ComparisonDegraded as e:
                logger.warning("Skipping asset %s: %s", candidate.asset_id, e)
                continue
            except ValueError as e:
                logger.warning("Skipping asset %s with malformed hash: %s",
                               candidate.asset_id, e)
                continue

            if not result.is_similar:
                continue

            reason = (f"perceptual distance {result.distance} "
                      f"(similarity {result.similarity:.3f})")
            if result.degraded:
                reason += ", zero-padded comparison"

            matches.append(DuplicateMatch(
                asset_id=candidate.asset_id,
                method=MatchMethod.PERCEPTUAL,
                confidence=result.similarity,
                reason=reason
            ))
            by_id[candidate.asset_id] = candidate

        return matches, by_id

    def _corroborate(self, image_bytes: bytes, match: DuplicateMatch,
                     candidate: CandidateAsset,
                     cancel_event: Optional[threading.Event]):
        if cancel_event is not None and cancel_event.is_set():
            logger.info("Request cancelled, skipping AI judge")
            return

        try:
            other = candidate.load_image()
        except OSError as e:
            logger.warning("Cannot read image for asset %s: %s", candidate.asset_id, e)
            return
        if other is None:
            logger.debug("Asset %s has no image to judge", candidate.asset_id)
            return

        start = time.perf_counter()
        verdict = self._run_judge(image_bytes, other, cancel_event)
        self.perf_logger.log_metric('ai_judge', time.perf_counter() - start,
                                    asset_id=candidate.asset_id,
                                    available=verdict is not None)

        if verdict is None:
            return
        if verdict.same:
            match.upgrade(MatchMethod.AI, self.ai_confidence_floor,
                          f"AI judge: {verdict.message}")
        else:
            # Dissent does not override a local signal
            logger.info("AI judge disagreed on asset %s: %s",
                        candidate.asset_id, verdict.message)

    def _run_judge(self, image_a: bytes, image_b: bytes,
                   cancel_event: Optional[threading.Event]) -> Optional[JudgeVerdict]:
        if cancel_event is None:
            return self.judge.judge(image_a, image_b)

        executor = ThreadPoolExecutor(max_workers=1)
        try:
            future = executor.submit(self.judge.judge, image_a, image_b)
            while True:
                try:
                    return future.result(timeout=0.05)
                except FutureTimeout:
                    if cancel_event.is_set():
                        # The HTTP timeout bounds the abandoned call
                        future.cancel()
                        logger.info("Request cancelled, abandoning AI judge call")
                        return None
        finally:
            executor.shutdown(wait=False)

    def _log_decision(self, decision: DuplicateDecision, start: float):
        duration = time.perf_counter() - start
        self.perf_logger.log_metric(
            'duplicate_decision', duration,
            candidates=decision.candidates_checked,
            is_duplicate=decision.is_duplicate
        )
        logger.info(
            "Duplicate check: duplicate=%s confidence=%.3f matches=%d candidates=%d (%.1f ms)",
            decision.is_duplicate, decision.confidence, len(decision.matches),
            decision.candidates_checked, duration * 1000
        )
