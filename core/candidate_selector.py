# core/candidate_selector.py

from typing import Iterable, List, Optional

from core.models import CandidateAsset


class CandidateSelector:
    """
    Narrow a pool of existing assets to the ones worth comparing

    This is a linear scan in the pool's own order; the cap is the only
    bound on comparison cost.
    """

    def __init__(self, cap: int = 100):
        if cap < 0:
            raise ValueError("cap must be non-negative")
        self.cap = cap

    def select(self,
               pool: Iterable[CandidateAsset],
               exclude_creator: Optional[str] = None,
               cap: Optional[int] = None) -> List[CandidateAsset]:
        """Eligible candidates, at most cap of them"""
        limit = self.cap if cap is None else cap
        selected = []

        if limit <= 0:
            return selected

        for asset in pool:
            if asset.stored_hash is None or not asset.stored_hash.sha256:
                continue
            # Creators may upload look-alikes of their own work
            if exclude_creator is not None and asset.creator_id == exclude_creator:
                continue

            selected.append(asset)
            if len(selected) >= limit:
                break

        return selected
