"""Tests for the aggregation engine and activity windows."""

from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone

import pytest

from conftest import NOW, graphql_item, rest_commit, rest_contributor, rest_issue, rest_pull, rest_repo
from projectfacts.engines.aggregation import ActivityWindow, aggregate
from projectfacts.engines.canonicalizer import EntityType, RawPayload, SourceShape, canonicalize

WINDOW = ActivityWindow.last_days(30, NOW)


def _fact(entity, payload, scope, shape=SourceShape.REST):
    return canonicalize(RawPayload(entity, shape, payload, scope))


def _issues(repo: str, open_count: int, closed_count: int) -> list:
    facts = [_fact(EntityType.ISSUE, rest_issue(n, "open"), repo) for n in range(1, open_count + 1)]
    facts += [
        _fact(EntityType.ISSUE, rest_issue(n, "closed"), repo)
        for n in range(open_count + 1, open_count + closed_count + 1)
    ]
    return facts


def _project_facts() -> list:
    facts = [_fact(EntityType.REPOSITORY, rest_repo(name), name) for name in ("acme/a", "acme/b", "acme/c")]
    facts += _issues("acme/a", 2, 3)
    facts += _issues("acme/b", 0, 5)
    facts += _issues("acme/c", 4, 1)
    facts += [_fact(EntityType.PULL_REQUEST, rest_pull(1, merged=True), "acme/a")]
    facts += [_fact(EntityType.PULL_REQUEST, rest_pull(2), "acme/a")]
    facts += [_fact(EntityType.COMMIT, rest_commit(f"c{n}", "alice"), "acme/b") for n in range(4)]
    facts += [
        _fact(EntityType.CONTRIBUTOR, rest_contributor("alice", 30), "acme/a"),
        _fact(EntityType.CONTRIBUTOR, rest_contributor("alice", 10), "acme/b"),
        _fact(EntityType.CONTRIBUTOR, rest_contributor("bob", 20), "acme/b"),
    ]
    return facts


class TestProjectTotals:
    def test_issue_totals_and_closed_percentage(self):
        metrics = aggregate(_project_facts(), WINDOW)
        project = metrics.per_project

        assert project["repositories_analyzed"] == 3
        assert project["totals"]["open_issues"] == 6
        assert project["totals"]["closed_issues"] == 9
        assert project["ratios"]["closed_issue_percentage"] == 60.0

    def test_per_repository_sections(self):
        metrics = aggregate(_project_facts(), WINDOW)
        assert sorted(metrics.per_repository) == ["acme/a", "acme/b", "acme/c"]
        repo_a = metrics.per_repository["acme/a"]
        assert repo_a["issues"]["closed_percentage"] == 60.0
        assert repo_a["pull_requests"]["merged"] == 1
        assert repo_a["pull_requests"]["merge_percentage"] == 50.0
        assert repo_a["pull_requests"]["median_hours_to_merge"] == 2.0
        assert repo_a["issues"]["median_hours_to_close"] == 5.0
        assert repo_a["repository"]["forks_per_star"] == 0.2

    def test_contributors_merged_across_repositories(self):
        distribution = aggregate(_project_facts(), WINDOW).per_project["contributor_distribution"]
        assert distribution["unique_contributors"] == 2
        assert distribution["total_contributions"] == 60
        assert distribution["top_contributors"] == [["alice", 40], ["bob", 20]]

    def test_averages(self):
        averages = aggregate(_project_facts(), WINDOW).per_project["averages"]
        assert averages["issues_per_repository"] == 5.0
        assert averages["commits_per_repository"] == 1.33


class TestDeterminism:
    def test_order_independent(self):
        facts = _project_facts()
        forward = aggregate(facts, WINDOW).to_dict()
        backward = aggregate(list(reversed(facts)), WINDOW).to_dict()
        assert forward == backward

    @pytest.mark.parametrize("seed", range(8))
    def test_shuffled_orders_agree(self, seed):
        facts = _project_facts()
        expected = aggregate(facts, WINDOW).to_dict()
        shuffled = list(facts)
        random.Random(seed).shuffle(shuffled)
        assert aggregate(shuffled, WINDOW).to_dict() == expected

    def test_repositories_interleaved(self):
        facts = _project_facts()
        expected = aggregate(facts, WINDOW).to_dict()
        by_repo: dict[str, list] = {}
        for fact in facts:
            by_repo.setdefault(getattr(fact, "repository", None) or fact.full_name, []).append(fact)
        interleaved = []
        queues = [list(reversed(group)) for _, group in sorted(by_repo.items(), reverse=True)]
        while any(queues):
            for queue in queues:
                if queue:
                    interleaved.append(queue.pop())
        assert len(interleaved) == len(facts)
        assert aggregate(interleaved, WINDOW).to_dict() == expected

    def test_duplicates_ignored(self):
        facts = _project_facts()
        assert aggregate(facts + facts, WINDOW).to_dict() == aggregate(facts, WINDOW).to_dict()

    def test_repeatable(self):
        facts = _project_facts()
        assert aggregate(facts, WINDOW) == aggregate(facts, WINDOW)


class TestWindowComparison:
    def test_growth_from_empty_previous_window(self):
        facts = [_fact(EntityType.COMMIT, rest_commit(f"s{n}"), "acme/a") for n in range(10)]
        metrics = aggregate(facts, WINDOW)
        repo = metrics.per_repository["acme/a"]
        assert repo["window_counts"]["current"]["commits"] == 10
        assert repo["window_counts"]["previous"]["commits"] == 0
        assert repo["growth"]["commits"] == 1.0
        assert metrics.per_project["growth"]["commits"] == 1.0

    def test_decline(self):
        old = NOW - timedelta(days=40)
        facts = [
            _fact(EntityType.ISSUE, rest_issue(1, created=old), "acme/a"),
            _fact(EntityType.ISSUE, rest_issue(2, created=old), "acme/a"),
            _fact(EntityType.ISSUE, rest_issue(3), "acme/a"),
        ]
        growth = aggregate(facts, WINDOW).per_repository["acme/a"]["growth"]
        assert growth["issues"] == -0.5

    def test_outside_both_windows_ignored(self):
        ancient = NOW - timedelta(days=365)
        facts = [_fact(EntityType.COMMIT, rest_commit("x", when=ancient), "acme/a")]
        repo = aggregate(facts, WINDOW).per_repository["acme/a"]
        assert repo["commits"]["total"] == 1
        assert repo["window_counts"]["current"]["commits"] == 0
        assert repo["window_counts"]["previous"]["commits"] == 0
        assert repo["growth"]["commits"] == 0

    def test_activity_density(self):
        facts = [_fact(EntityType.COMMIT, rest_commit(f"s{n}"), "acme/a") for n in range(15)]
        activity = aggregate(facts, WINDOW).per_repository["acme/a"]["activity"]
        assert activity["window_days"] == 30
        assert activity["density"] == 0.5
        assert activity["active_days"] == 1
        assert activity["peak_daily_events"] == 15


class TestRepositoryBuckets:
    def test_metadata_casing_does_not_split_repository(self):
        facts = [
            _fact(EntityType.REPOSITORY, rest_repo("Acme/Widgets"), "acme/widgets"),
            *_issues("acme/widgets", 1, 1),
        ]
        metrics = aggregate(facts, WINDOW)
        assert list(metrics.per_repository) == ["acme/widgets"]
        assert metrics.per_repository["acme/widgets"]["repository"]["forks_per_star"] == 0.2
        assert metrics.per_project["repositories_analyzed"] == 1


class TestContributorDistribution:
    def test_uniform_contributors_zero_gini(self):
        facts = [
            _fact(EntityType.CONTRIBUTOR, rest_contributor(login, 10), "acme/a")
            for login in ("a", "b", "c", "d")
        ]
        metrics = aggregate(facts, WINDOW)
        assert metrics.per_repository["acme/a"]["contributors"]["gini"] == 0
        assert metrics.per_project["contributor_distribution"]["gini"] == 0

    def test_unknown_contribution_counts_excluded(self):
        facts = [
            _fact(EntityType.CONTRIBUTOR, {"login": "ghost"}, "acme/a"),
            _fact(EntityType.CONTRIBUTOR, rest_contributor("alice", 4), "acme/a"),
        ]
        contributors = aggregate(facts, WINDOW).per_repository["acme/a"]["contributors"]
        assert contributors["total"] == 2
        assert contributors["contributions_total"] == 4


class TestEdgeCases:
    def test_no_facts(self):
        metrics = aggregate([], WINDOW)
        assert metrics.per_repository == {}
        project = metrics.per_project
        assert project["repositories_analyzed"] == 0
        assert project["ratios"]["closed_issue_percentage"] == 0
        assert project["averages"]["issues_per_repository"] == 0
        assert "items" not in project

    def test_project_items_summarized(self):
        facts = [
            _fact(EntityType.PROJECT_ITEM, graphql_item("I1", "acme/a", 1), "acme#1", SourceShape.GRAPHQL),
            _fact(EntityType.PROJECT_ITEM, graphql_item("I2", "acme/a", 2, "PULL_REQUEST"), "acme#1", SourceShape.GRAPHQL),
        ]
        items = aggregate(facts, WINDOW).per_project["items"]
        assert items == {
            "total": 2,
            "by_type": {"ISSUE": 1, "PULL_REQUEST": 1},
            "by_status": {"Todo": 2},
        }


class TestActivityWindow:
    def test_previous_is_adjacent_and_equal(self):
        previous = WINDOW.previous()
        assert previous.end == WINDOW.start
        assert previous.days == WINDOW.days == 30

    def test_half_open(self):
        assert WINDOW.contains(WINDOW.start)
        assert not WINDOW.contains(WINDOW.end)
        assert not WINDOW.contains(None)

    def test_collection_start(self):
        assert WINDOW.collection_start(True) == NOW - timedelta(days=60)
        assert WINDOW.collection_start(False) == NOW - timedelta(days=30)

    def test_rejects_naive_and_inverted(self):
        with pytest.raises(ValueError):
            ActivityWindow(datetime(2024, 1, 1), datetime(2024, 1, 2))
        with pytest.raises(ValueError):
            ActivityWindow(NOW, NOW - timedelta(days=1))

    def test_to_dict(self):
        window = ActivityWindow(datetime(2024, 1, 1, tzinfo=timezone.utc), datetime(2024, 1, 8, tzinfo=timezone.utc))
        assert window.to_dict() == {
            "start": "2024-01-01T00:00:00+00:00",
            "end": "2024-01-08T00:00:00+00:00",
            "days": 7.0,
        }
