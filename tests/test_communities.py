"""Tests for match-graph construction and community detection."""

from __future__ import annotations

import pytest

from affinity.errors import InvalidConfiguration
from affinity.graph.builder import build_match_graph
from affinity.graph.communities import (
    age_summary,
    connected_components,
    detect_communities,
    dominant_category,
    explain_partition,
    location_cluster,
    shared_interests,
)
from affinity.models import CommunityReport, Profile, ScoreRecord
from affinity.scoring.pairwise import score_population


def _record(a: str, b: str, score: float) -> ScoreRecord:
    a, b = sorted((a, b))
    return ScoreRecord(
        profile_a_id=a,
        profile_b_id=b,
        score=score,
        base_score=score,
        tier="high" if score >= 0.7 else "medium" if score >= 0.4 else "low",
        components={},
    )


def _scenario_profiles() -> list[Profile]:
    return [
        Profile(id="p1", interests=["hiking", "yoga"], age=30, location="94110"),
        Profile(id="p2", interests=["hiking", "yoga"], age=30, location="94110"),
        Profile(id="p3", interests=["hiking", "yoga", "coffee"], age=34, location="94114"),
        Profile(id="p4", interests=["board-games", "sci-fi"], age=45, location="94609"),
        Profile(id="p5", interests=["board-games", "sci-fi"], age=45, location="94609"),
        Profile(id="p6", interests=["golf"], age=70, location="98101"),
    ]


class TestBuildMatchGraph:
    def test_threshold_inclusive(self):
        records = [_record("a", "b", 0.5), _record("b", "c", 0.49)]
        graph = build_match_graph(records, 0.5)
        assert [e.pair for e in graph.edges] == [("a", "b")]
        assert graph.nodes == ["a", "b", "c"]

    def test_population_keeps_isolated_nodes(self):
        graph = build_match_graph([_record("a", "b", 0.9)], 0.5, population=["z", "a", "b"])
        assert graph.nodes == ["z", "a", "b"]
        g = graph.to_networkx()
        assert list(g.nodes) == ["z", "a", "b"]
        assert g.degree("z") == 0

    def test_networkx_edges_carry_scores(self):
        graph = build_match_graph([_record("a", "b", 0.9), _record("b", "c", 0.6)], 0.5)
        g = graph.to_networkx()
        assert g.number_of_edges() == 2
        assert g["a"]["b"]["weight"] == 0.9
        assert g["c"]["b"]["tier"] == "medium"
        assert g.graph["threshold"] == 0.5

    def test_accepts_profiles(self):
        graph = build_match_graph([], 0.5, population=[Profile(id="x"), Profile(id="y")])
        assert graph.nodes == ["x", "y"]
        assert graph.edges == []

    @pytest.mark.parametrize("threshold", [-0.1, 1.01])
    def test_invalid_threshold(self, threshold):
        with pytest.raises(InvalidConfiguration):
            build_match_graph([], threshold)


class TestConnectedComponents:
    def test_components_in_node_order(self):
        records = [
            _record("a", "b", 0.9),
            _record("c", "d", 0.9),
            _record("b", "e", 0.9),
        ]
        graph = build_match_graph(records, 0.5, population=["a", "b", "c", "d", "e", "f"])
        assert connected_components(graph) == [["a", "b", "e"], ["c", "d"], ["f"]]


class TestScenario:
    """Two tight groups plus one outlier, scored end to end."""

    def setup_method(self):
        self.profiles = _scenario_profiles()
        self.run = score_population(self.profiles)

    def _report(self, threshold: float, viewer_id: str | None = None) -> CommunityReport:
        graph = build_match_graph(self.run.records, threshold, population=self.profiles)
        return detect_communities(graph, self.profiles, viewer_id=viewer_id)

    def test_partition_at_half(self):
        report = self._report(0.5)
        assert [c.member_ids for c in report.communities] == [["p1", "p2", "p3"], ["p4", "p5"]]
        assert report.isolated_ids == ["p6"]
        assert report.isolated_count == 1
        assert report.assignments == {"p1": 0, "p2": 0, "p3": 0, "p4": 1, "p5": 1}
        assert report.community_of("p6") is None
        assert report.community_of("p5").community_id == 1

    def test_every_node_accounted_for_once(self):
        report = self._report(0.5)
        members = [pid for c in report.communities for pid in c.member_ids]
        assert sorted(members + report.isolated_ids) == [p.id for p in self.profiles]
        assert len(set(members)) == len(members)

    def test_first_community_characterized(self):
        c = self._report(0.5).communities[0]
        assert c.size == 3
        assert c.dominant_category == "sports"
        assert c.category_interests == ["hiking"]
        assert c.shared_interests == ["hiking", "yoga"]
        assert c.shared_interest_ratio == pytest.approx(1.0)
        assert c.location_cluster == "941xx area"
        assert c.age_range == "Ages 30-34 (avg 31)"
        assert c.min_age == 30 and c.max_age == 34
        assert c.description == (
            "3 members • Sports focus (hiking) • 100% share: hiking, yoga • "
            "941xx area • Ages 30-34 (avg 31)"
        )
        assert not c.includes_viewer

    def test_second_community_characterized(self):
        c = self._report(0.5).communities[1]
        assert c.dominant_category == "entertainment"
        assert c.category_interests == ["board-games", "sci-fi"]
        assert c.location_cluster == "94609 area"
        assert c.age_range == "Age 45"
        assert c.description == (
            "2 members • Entertainment focus (board-games, sci-fi) • "
            "100% share: board games, sci fi • 94609 area • Age 45"
        )

    def test_viewer_flag(self):
        report = self._report(0.5, viewer_id="p4")
        assert not report.communities[0].includes_viewer
        assert report.communities[1].includes_viewer
        assert report.communities[1].description.endswith(" • YOUR COMMUNITY")

    def test_low_threshold_single_community(self):
        report = self._report(0.2)
        assert len(report.communities) == 1
        assert report.isolated_ids == []
        assert "single connected community" in report.explanation

    def test_high_threshold_all_isolated(self):
        report = self._report(0.9)
        assert report.communities == []
        assert report.isolated_ids == [p.id for p in self.profiles]

    def test_raising_threshold_only_splits(self):
        thresholds = [0.0, 0.2, 0.3, 0.5, 0.7, 0.9, 1.0]
        reports = [self._report(t) for t in thresholds]
        for looser, tighter in zip(reports, reports[1:]):
            for community in tighter.communities:
                owners = {looser.assignments.get(pid) for pid in community.member_ids}
                assert len(owners) == 1
                assert None not in owners

    def test_explanation_text(self):
        assert self._report(0.5).explanation == (
            "With minimum score 50%, members separate into 2 distinct communities "
            "with 1 isolated members. Only strong matches connect at this threshold, "
            "showing natural friend groups."
        )


class TestCharacterizationHelpers:
    def test_dominant_category_none(self):
        assert dominant_category([Profile(id="a", interests=["pottery"])]) == (None, [])

    def test_shared_interests_ratio(self):
        members = [
            Profile(id="a", interests=["hiking", "yoga"]),
            Profile(id="b", interests=["hiking"]),
            Profile(id="c", interests=["cooking"]),
        ]
        tags, ratio = shared_interests(members, min_ratio=0.5)
        assert tags == ["hiking"]
        assert ratio == pytest.approx(2 / 3)
        assert shared_interests([], 0.4) == ([], 0.0)

    def test_location_needs_coverage(self):
        members = [
            Profile(id="a", location="94110"),
            Profile(id="b", location="98101"),
            Profile(id="c", location="10001"),
            Profile(id="d"),
        ]
        assert location_cluster(members) is None

    def test_location_custom_predicate(self):
        members = [Profile(id="a", location="north"), Profile(id="b", location="south")]
        assert location_cluster(members, nearby=lambda x, y: True) == "norxx area"

    def test_age_summary(self):
        assert age_summary([Profile(id="a")]) == (None, None, None, None)
        label, lo, hi, mean = age_summary(
            [Profile(id="a", age=20), Profile(id="b", age=25)],
        )
        assert label == "Ages 20-25 (avg 23)"
        assert (lo, hi) == (20, 25)
        assert mean == pytest.approx(22.5)

    def test_detect_without_profiles(self):
        graph = build_match_graph([_record("a", "b", 0.8)], 0.5)
        report = detect_communities(graph)
        assert report.communities[0].description == "2 members"


class TestExplainPartition:
    def test_empty(self):
        assert "no members to group" in explain_partition(CommunityReport(threshold=0.5))

    def test_moderate_threshold(self):
        report = CommunityReport(threshold=0.3, isolated_ids=["x", "y"])
        text = explain_partition(report)
        assert text.startswith("With minimum score 30%, members separate into 0 distinct")
        assert "with 2 isolated members" in text
        assert "broader social potential" in text
