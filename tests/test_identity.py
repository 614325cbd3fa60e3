import json

from constellate.identity import ClusterIdentityCache, cluster_signature


def test_signature_ignores_order_and_duplicates() -> None:
    assert cluster_signature(["star-b", "star-a", "star-b"]) == "star-a|star-b"
    assert cluster_signature(["star-a", "star-b"]) == cluster_signature(["star-b", "star-a"])
    assert cluster_signature([]) == ""


def test_remember_then_lookup_by_member_set() -> None:
    cache = ClusterIdentityCache()
    cache.remember(["star-b", "star-a"], "Quiet Mornings", "Slow starts that steadied you.")

    identity = cache.lookup(["star-a", "star-b"])
    assert identity is not None
    assert identity.name == "Quiet Mornings"
    assert identity.member_ids == ["star-a", "star-b"]
    assert "star-a|star-b" in cache
    assert cache.lookup(["star-a", "star-b", "star-c"]) is None


def test_entries_without_name_or_summary_are_misses() -> None:
    cache = ClusterIdentityCache.from_payload({"star-a|star-b": {"name": "", "summary": "x", "memberIds": []}})
    assert len(cache) == 1
    assert cache.lookup(["star-a", "star-b"]) is None


def test_cache_survives_json_round_trip() -> None:
    cache = ClusterIdentityCache()
    cache.remember(["star-a", "star-b"], "Name", "Summary.")
    restored = ClusterIdentityCache.from_json(cache.to_json())
    assert restored.to_payload() == cache.to_payload()
    assert json.loads(cache.to_json())["star-a|star-b"]["memberIds"] == ["star-a", "star-b"]


def test_corrupted_cache_loads_empty() -> None:
    assert len(ClusterIdentityCache.from_json("{broken")) == 0
    assert len(ClusterIdentityCache.from_json('["a"]')) == 0
    assert len(ClusterIdentityCache.from_json(None)) == 0


def test_malformed_entries_are_dropped() -> None:
    cache = ClusterIdentityCache.from_payload(
        {
            "star-a|star-b": {"name": "Kept", "summary": "Yes.", "starIds": ["star-a", "star-b"]},
            "star-c|star-d": "oops",
            "star-e|star-f": {"summary": "no name"},
        }
    )
    assert len(cache) == 1
    assert cache.get("star-a|star-b").member_ids == ["star-a", "star-b"]
