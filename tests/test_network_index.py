"""Tests for NetworkIndex traversal."""

from datetime import datetime

from network_engine.calculators import NetworkIndex
from network_engine.errors import DataIntegrityWarning
from network_engine.models import Member


def chain(length):
    """Linear network p0 <- p1 <- ... <- p{length-1}."""
    members = [Member(id="p0", join_date=datetime(2024, 1, 1))]
    for i in range(1, length):
        members.append(Member(id=f"p{i}", sponsor_id=f"p{i - 1}", join_date=datetime(2024, 1, 1)))
    return members


class TestNetworkIndex:

    def test_direct_recruits(self):
        index = NetworkIndex([
            Member(id="owner"),
            Member(id="a", sponsor_id="owner"),
            Member(id="b", sponsor_id="owner"),
            Member(id="c", sponsor_id="a"),
        ])
        assert index.get("owner").direct_recruits == ["a", "b"]
        assert index.direct_recruit_count("owner") == 2
        assert index.direct_recruit_count("c") == 0
        assert index.direct_recruit_count("missing") == 0

    def test_downline_is_breadth_first(self):
        index = NetworkIndex([
            Member(id="owner"),
            Member(id="a", sponsor_id="owner"),
            Member(id="b", sponsor_id="owner"),
            Member(id="c", sponsor_id="a"),
        ])
        assert index.downline_ids("owner") == ["a", "b", "c"]
        assert index.downline_depth("owner") == 2
        assert index.downline_depth("b") == 0

    def test_downline_capped_at_nine_levels(self):
        index = NetworkIndex(chain(12))
        assert len(index.downline_ids("p0")) == 9
        assert index.downline_depth("p0") == 9
        assert index.downline_ids("p0", max_levels=3) == ["p1", "p2", "p3"]

    def test_upline_chain(self):
        index = NetworkIndex(chain(4))
        links = index.upline_chain("p3")
        assert [link.level for link in links] == [1, 2, 3]
        assert [link.sponsor.id for link in links] == ["p2", "p1", "p0"]

    def test_upline_chain_capped_at_nine_levels(self):
        index = NetworkIndex(chain(12))
        links = index.upline_chain("p11")
        assert len(links) == 9
        assert links[-1].sponsor.id == "p2"

    def test_root_has_empty_upline(self):
        index = NetworkIndex(chain(3))
        assert index.upline_chain("p0") == []
        assert index.upline_chain("unknown") == []

    def test_cycle_terminates(self):
        index = NetworkIndex([
            Member(id="x", sponsor_id="y"),
            Member(id="y", sponsor_id="x"),
        ])
        assert [link.sponsor.id for link in index.upline_chain("x")] == ["y"]
        assert index.downline_ids("x") == ["y"]
        assert index.downline_depth("x") == 1

    def test_self_sponsor_treated_as_root(self):
        index = NetworkIndex([Member(id="solo", sponsor_id="solo")])
        assert index.upline_chain("solo") == []
        assert index.direct_recruit_count("solo") == 0
        assert len(index.warnings) == 1

    def test_missing_sponsor_warns(self):
        index = NetworkIndex([Member(id="orphan", sponsor_id="ghost")])
        assert len(index.warnings) == 1
        warning = index.warnings[0]
        assert isinstance(warning, DataIntegrityWarning)
        assert warning.record_id == "orphan"
        assert "ghost" in str(warning)

    def test_duplicate_id_warns_and_later_wins(self):
        index = NetworkIndex([Member(id="a", name="first"), Member(id="a", name="second")])
        assert len(index) == 1
        assert index.get("a").name == "second"
        assert len(index.warnings) == 1

    def test_input_members_not_mutated(self):
        members = [Member(id="owner"), Member(id="a", sponsor_id="owner")]
        NetworkIndex(members)
        assert members[0].direct_recruits == []

    def test_contains(self):
        index = NetworkIndex(chain(2))
        assert "p1" in index
        assert "p9" not in index
