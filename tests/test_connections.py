from constellate.connections import EdgeSet, build_connections, keyword_connections
from constellate.models import Connection, Point, Star
from constellate.visibility import allow_list


def _star(date: str, x: float, y: float, keywords: list[str] | None = None) -> Star:
    return Star(id=f"star-{date}", date=date, position=Point(x=x, y=y), keywords=keywords or [])


def test_two_member_group_gets_one_edge() -> None:
    group = [_star("2024-01-01", 26, 26), _star("2024-01-02", 30, 30)]
    edges = build_connections([group])
    assert [edge.key for edge in edges] == [("star-2024-01-01", "star-2024-01-02")]


def test_fan_out_links_nearest_neighbours_without_duplicates() -> None:
    group = [
        _star("2024-01-01", 0, 0),
        _star("2024-01-02", 10, 0),
        _star("2024-01-03", 20, 0),
        _star("2024-01-04", 30, 0),
    ]
    edges = build_connections([group], fan_out=2)
    keys = [edge.key for edge in edges]
    assert len(keys) == len(set(keys)) == 5
    assert set(keys) == {
        ("star-2024-01-01", "star-2024-01-02"),
        ("star-2024-01-01", "star-2024-01-03"),
        ("star-2024-01-02", "star-2024-01-03"),
        ("star-2024-01-03", "star-2024-01-04"),
        ("star-2024-01-02", "star-2024-01-04"),
    }
    assert all(not edge.is_self_loop for edge in edges)


def test_connections_are_deterministic() -> None:
    group = [_star("2024-01-03", 5, 5), _star("2024-01-01", 0, 0), _star("2024-01-02", 3, 4)]
    first = build_connections([group])
    second = build_connections([list(reversed(group))])
    assert first == second


def test_singletons_and_hidden_members_produce_no_edges() -> None:
    assert build_connections([[_star("2024-01-01", 0, 0)]]) == []
    group = [_star("2024-01-01", 0, 0), _star("2024-01-02", 1, 1)]
    assert build_connections([group], visible=allow_list(["2024-01-01"])) == []


def test_edge_set_rejects_self_loops_and_reversed_duplicates() -> None:
    edges = EdgeSet()
    assert edges.add(Connection(source="star-a", target="star-b"))
    assert not edges.add(Connection(source="star-b", target="star-a"))
    assert not edges.add(Connection(source="star-a", target="star-a"))
    assert ("star-b", "star-a") in edges
    assert len(edges) == 1


def test_keyword_links_match_case_insensitively_and_skip_existing() -> None:
    stars = [
        _star("2024-01-02", 10, 10, ["Work "]),
        _star("2024-01-01", 80, 80, ["work", "family"]),
        _star("2024-01-03", 50, 50, ["family"]),
        _star("2024-01-04", 50, 50, []),
    ]
    existing = [Connection(source="star-2024-01-03", target="star-2024-01-01")]
    added = keyword_connections(stars, existing=existing)
    assert [(edge.source, edge.target) for edge in added] == [("star-2024-01-01", "star-2024-01-02")]


def test_keyword_links_respect_visibility() -> None:
    stars = [_star("2024-01-01", 0, 0, ["tea"]), _star("2024-01-02", 0, 0, ["tea"])]
    assert keyword_connections(stars, visible=allow_list(["2024-01-02"])) == []
