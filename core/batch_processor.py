# core/batch_processor.py

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm

from config import BatchConfig
from core.duplicate_detection import DuplicateDecisionEngine
from core.errors import BatchLimitExceeded, DuplicateCheckError
from core.models import PairComparison

logger = logging.getLogger(__name__)


@dataclass
class PairOutcome:
    """Result for one image pair of a batch"""
    index_a: int
    name_a: str
    index_b: int
    name_b: str
    result: Optional[PairComparison] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict:
        return {
            'image1': {'filename': self.name_a, 'index': self.index_a},
            'image2': {'filename': self.name_b, 'index': self.index_b},
            'result': self.result.to_dict() if self.result else {'error': self.error}
        }


@dataclass
class BatchResult:
    """All pairwise comparisons of a batch"""
    total_images: int
    comparisons: List[PairOutcome] = field(default_factory=list)

    @property
    def duplicates(self) -> int:
        return sum(1 for c in self.comparisons if c.result and c.result.is_duplicate)

    @property
    def unique(self) -> int:
        return len(self.comparisons) - self.duplicates

    def to_dict(self) -> Dict:
        return {
            'total_images': self.total_images,
            'total_comparisons': len(self.comparisons),
            'comparisons': [c.to_dict() for c in self.comparisons],
            'summary': {'duplicates': self.duplicates, 'unique': self.unique}
        }


class BatchComparer:
    """
    Pairwise comparison of a small image set in a bounded worker pool

    All n*(n-1)/2 pairs are compared. When the AI judge is in use every
    pair costs one external call, so the pair count is checked against
    max_ai_calls before any work starts.
    """

    def __init__(self,
                 engine: DuplicateDecisionEngine,
                 max_images: int = 10,
                 max_ai_calls: int = 45,
                 n_workers: int = 4,
                 show_progress: bool = False):
        self.engine = engine
        self.max_images = max_images
        self.max_ai_calls = max_ai_calls
        self.n_workers = max(1, n_workers)
        self.show_progress = show_progress

    @classmethod
    def from_config(cls, engine: DuplicateDecisionEngine, config: BatchConfig,
                    show_progress: bool = False) -> 'BatchComparer':
        return cls(engine,
                   max_images=config.max_images,
                   max_ai_calls=config.max_ai_calls,
                   n_workers=config.n_workers,
                   show_progress=show_progress)

    def plan(self, n_images: int, use_ai: bool = True) -> List[Tuple[int, int]]:
        """Pairs to compare; raises if the batch is outside its limits"""
        if n_images < 2:
            raise ValueError("At least 2 images are required for batch comparison")
        if n_images > self.max_images:
            raise BatchLimitExceeded(n_images, self.max_images, what="images")

        pairs = list(combinations(range(n_images), 2))
        if use_ai and self.engine.judge is not None and len(pairs) > self.max_ai_calls:
            raise BatchLimitExceeded(len(pairs), self.max_ai_calls)
        return pairs

    def compare_all(self, images: List[Tuple[str, bytes]],
                    use_ai: bool = True) -> BatchResult:
        """
        Compare every pair of (name, bytes) images

        A failing pair is recorded with its error; the rest of the batch
        still completes.
        """
        pairs = self.plan(len(images), use_ai=use_ai)
        outcomes = {}

        with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
            future_to_pair = {
                executor.submit(self.engine.compare_pair,
                                images[i][1], images[j][1], use_ai): (i, j)
                for i, j in pairs
            }

            for future in tqdm(as_completed(future_to_pair),
                               total=len(future_to_pair),
                               desc="Comparing pairs",
                               disable=not self.show_progress):
                i, j = future_to_pair[future]
                outcome = PairOutcome(i, images[i][0], j, images[j][0])
                try:
                    outcome.result = future.result()
                except DuplicateCheckError as e:
                    logger.error("Failed to compare images %d and %d: %s", i, j, e)
                    outcome.error = 'Comparison failed'
                outcomes[(i, j)] = outcome

        return BatchResult(
            total_images=len(images),
            comparisons=[outcomes[pair] for pair in pairs]
        )
