"""Tests for target project detection."""

from __future__ import annotations

from datetime import timedelta

import pytest

from conftest import NOW, FakeProjectSource, graphql_item, graphql_project
from projectfacts.core.auth import StaticLocalContext
from projectfacts.detector import ProjectDetector, TargetReference, select_project
from projectfacts.engines.canonicalizer import EntityType, RawPayload, SourceShape, canonicalize
from projectfacts.exceptions import AmbiguousTargetError, TargetNotFoundError, ValidationError


def _project(owner, number, **kwargs):
    return canonicalize(RawPayload(EntityType.PROJECT, SourceShape.GRAPHQL, graphql_project(owner, number, **kwargs), owner))


class TestSelectProject:
    def test_most_recent_wins(self):
        older = _project("acme", 1, updated=NOW - timedelta(days=3))
        newer = _project("acme", 2, updated=NOW)
        assert select_project([older, newer], "owner:acme").number == 2

    def test_open_preferred_over_recent_closed(self):
        open_project = _project("acme", 1, updated=NOW - timedelta(days=10))
        closed_project = _project("acme", 2, updated=NOW, closed=True)
        assert select_project([closed_project, open_project], "owner:acme").number == 1

    def test_all_closed_still_selects(self):
        closed_project = _project("acme", 4, closed=True)
        assert select_project([closed_project], "owner:acme").number == 4

    def test_tie_is_ambiguous(self):
        first = _project("acme", 1, updated=NOW)
        second = _project("acme", 2, updated=NOW)
        with pytest.raises(AmbiguousTargetError) as exc_info:
            select_project([second, first], "owner:acme")
        assert exc_info.value.candidates == ["acme#1", "acme#2"]
        assert "acme#1" in str(exc_info.value)
        assert "acme#2" in str(exc_info.value)

    def test_empty(self):
        with pytest.raises(TargetNotFoundError):
            select_project([], "owner:nobody")


class TestDetectByOwner:
    @pytest.mark.anyio
    async def test_two_equally_recent_projects(self):
        source = FakeProjectSource(
            {
                "acme": [
                    graphql_project("acme", 1, repositories=("acme/a",)),
                    graphql_project("acme", 2, repositories=("acme/b",)),
                ]
            }
        )
        with pytest.raises(AmbiguousTargetError) as exc_info:
            await ProjectDetector(source).detect(TargetReference.owner("acme"))
        assert exc_info.value.candidates == ["acme#1", "acme#2"]

    @pytest.mark.anyio
    async def test_resolves_repositories_from_items_and_links(self):
        source = FakeProjectSource(
            {"acme": [graphql_project("acme", 1, repositories=("acme/linked",))]},
            items={
                ("acme", 1): [
                    graphql_item("I1", "acme/b", 1),
                    graphql_item("I2", "acme/a", 2),
                    graphql_item("I3", "acme/b", 3),
                    graphql_item("I4", "other/c", 4, "PULL_REQUEST"),
                    graphql_item("I5", "acme/a", 5),
                ]
            },
        )
        detected = await ProjectDetector(source).detect(TargetReference.owner("acme"))

        assert detected.project.key == "acme#1"
        assert detected.candidates == ("acme#1",)
        assert detected.repositories == ("acme/a", "acme/b", "acme/linked", "other/c")
        assert [i.id for i in detected.items] == ["I1", "I2", "I3", "I4", "I5"]
        assert all(i.project == "acme#1" for i in detected.items)

    @pytest.mark.anyio
    async def test_unknown_owner(self):
        with pytest.raises(TargetNotFoundError):
            await ProjectDetector(FakeProjectSource({})).detect(TargetReference.owner("ghost"))

    @pytest.mark.anyio
    async def test_owner_without_projects(self):
        with pytest.raises(TargetNotFoundError):
            await ProjectDetector(FakeProjectSource({"acme": []})).detect(TargetReference.owner("acme"))

    @pytest.mark.anyio
    async def test_project_without_repositories(self):
        source = FakeProjectSource({"acme": [graphql_project("acme", 1)]})
        with pytest.raises(ValidationError, match="no linked repositories"):
            await ProjectDetector(source).detect(TargetReference.owner("acme"))


class TestDetectByUrl:
    @pytest.mark.anyio
    async def test_explicit_url_skips_selection(self):
        source = FakeProjectSource(
            {
                "acme": [
                    graphql_project("acme", 1, repositories=("acme/a",)),
                    graphql_project("acme", 2, repositories=("acme/b",)),
                ]
            }
        )
        detected = await ProjectDetector(source).detect(
            TargetReference.url("https://github.com/orgs/acme/projects/2")
        )
        assert detected.project.number == 2
        assert detected.repositories == ("acme/b",)

    @pytest.mark.anyio
    async def test_missing_project(self):
        source = FakeProjectSource({"acme": []})
        with pytest.raises(TargetNotFoundError):
            await ProjectDetector(source).detect(TargetReference.url("https://github.com/users/acme/projects/9"))

    @pytest.mark.anyio
    async def test_malformed_url(self):
        with pytest.raises(ValidationError):
            await ProjectDetector(FakeProjectSource({})).detect(TargetReference.url("https://example.com/nope"))


class TestDetectLocal:
    @pytest.mark.anyio
    async def test_prefers_project_linked_to_checkout(self):
        source = FakeProjectSource(
            {
                "acme": [
                    graphql_project("acme", 1, updated=NOW - timedelta(days=5), repositories=("acme/widgets",)),
                    graphql_project("acme", 2, updated=NOW, repositories=("acme/gears",)),
                ]
            }
        )
        local = StaticLocalContext("git@github.com:acme/widgets.git")
        detected = await ProjectDetector(source, local).detect(TargetReference.local())
        assert detected.project.number == 1
        assert detected.candidates == ("acme#1",)

    @pytest.mark.anyio
    async def test_falls_back_to_owner_projects(self):
        source = FakeProjectSource(
            {"acme": [graphql_project("acme", 3, repositories=("acme/gears",))]}
        )
        local = StaticLocalContext("https://github.com/acme/widgets")
        detected = await ProjectDetector(source, local).detect(TargetReference.local())
        assert detected.project.number == 3

    @pytest.mark.anyio
    async def test_no_remote(self):
        detector = ProjectDetector(FakeProjectSource({}), StaticLocalContext(None))
        with pytest.raises(TargetNotFoundError):
            await detector.detect(TargetReference.local())

    @pytest.mark.anyio
    async def test_no_local_context(self):
        with pytest.raises(TargetNotFoundError):
            await ProjectDetector(FakeProjectSource({})).detect(TargetReference.local())


def test_describe():
    assert TargetReference.owner("acme").describe() == "owner:acme"
    assert TargetReference.local().describe() == "local"
