# tests/test_candidate_selector.py

from conftest import hash_only_candidate
from core.candidate_selector import CandidateSelector
from core.models import CandidateAsset


def test_cap_is_respected():
    pool = [hash_only_candidate(f"a{i}", "7f7f7f7f7f7f7f7f") for i in range(500)]

    selected = CandidateSelector(cap=100).select(pool)

    assert len(selected) == 100
    # Pool order, no ranking
    assert [c.asset_id for c in selected] == [f"a{i}" for i in range(100)]


def test_cap_override():
    pool = [hash_only_candidate(f"a{i}", None) for i in range(80)]

    assert len(CandidateSelector(cap=100).select(pool, cap=50)) == 50


def test_uploader_assets_are_excluded():
    pool = [
        hash_only_candidate("mine", "7f7f7f7f7f7f7f7f", creator_id="me"),
        hash_only_candidate("theirs", "7f7f7f7f7f7f7f7f", creator_id="them"),
    ]

    selected = CandidateSelector().select(pool, exclude_creator="me")

    assert [c.asset_id for c in selected] == ["theirs"]


def test_excluded_assets_do_not_count_against_cap():
    pool = [hash_only_candidate(f"m{i}", None, creator_id="me") for i in range(10)]
    pool += [hash_only_candidate(f"t{i}", None, creator_id="them") for i in range(10)]

    selected = CandidateSelector(cap=5).select(pool, exclude_creator="me")

    assert [c.asset_id for c in selected] == [f"t{i}" for i in range(5)]


def test_assets_without_hash_are_skipped():
    pool = [
        CandidateAsset(asset_id="nohash", creator_id="x", stored_hash=None),
        hash_only_candidate("hashed", None),
    ]

    assert [c.asset_id for c in CandidateSelector().select(pool)] == ["hashed"]


def test_zero_cap_selects_nothing():
    pool = [hash_only_candidate("a", None)]

    assert CandidateSelector(cap=0).select(pool) == []


def test_accepts_generators():
    pool = (hash_only_candidate(f"a{i}", None) for i in range(1000))

    assert len(CandidateSelector(cap=3).select(pool)) == 3
