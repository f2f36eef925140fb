"""
Tests for local/reasoning tag reconciliation.
"""

from tag_interrogator.merge import merge_tags
from tag_interrogator.models import Tag, TagCategory, TagSource


def local(name, score, category=TagCategory.GENERAL):
    return Tag(name=name, score=score, category=category, source=TagSource.LOCAL)


def reasoning(name, score=0.7, category=TagCategory.GENERAL):
    return Tag(name=name, score=score, category=category, source=TagSource.REASONING_MODEL)


def test_self_merge_promotes_source_and_keeps_scores():
    tags = [local("1girl", 0.95), local("long_hair", 0.8), local("smile", 0.6)]

    merged = merge_tags(tags, tags)

    assert [(tag.name, tag.score) for tag in merged] == [(tag.name, tag.score) for tag in tags]
    assert all(tag.source == TagSource.BOTH for tag in merged)


def test_local_tags_are_ground_truth():
    merged = merge_tags([local("a", 0.9)], [reasoning("b", 0.95)])

    assert [tag.name for tag in merged] == ["a"]
    assert merged[0].source == TagSource.LOCAL


def test_reasoning_tags_are_fallback_when_local_is_empty():
    merged = merge_tags([], [reasoning("b", 0.7)])

    assert len(merged) == 1
    assert merged[0].name == "b"
    assert merged[0].source == TagSource.REASONING_MODEL


def test_parity_takes_max_score():
    merged = merge_tags([local("a", 0.6)], [reasoning("a", 0.8)])
    assert (merged[0].score, merged[0].source) == (0.8, TagSource.BOTH)

    merged = merge_tags([local("a", 0.9)], [reasoning("a", 0.7)])
    assert (merged[0].score, merged[0].source) == (0.9, TagSource.BOTH)


def test_names_match_after_normalization():
    merged = merge_tags([local("long_hair", 0.8)], [reasoning("Long Hair", 0.7)])

    assert len(merged) == 1
    assert merged[0].name == "long_hair"
    assert merged[0].source == TagSource.BOTH


def test_local_source_is_forced():
    copyright_tag = Tag(name="vocaloid", score=0.9, category=TagCategory.COPYRIGHT, source=TagSource.REASONING_MODEL)

    merged = merge_tags([copyright_tag], [])

    assert merged[0].source == TagSource.LOCAL
    assert merged[0].category == TagCategory.COPYRIGHT


def test_duplicates_within_one_side_collapse_to_max():
    merged = merge_tags([local("cat", 0.5), local("Cat", 0.7)], [])
    assert [(tag.name, tag.score) for tag in merged] == [("cat", 0.7)]

    merged = merge_tags([], [reasoning("cat", 0.6), reasoning("cat", 0.7)])
    assert [(tag.name, tag.score, tag.source) for tag in merged] == [("cat", 0.7, TagSource.REASONING_MODEL)]


def test_sorted_by_score_with_stable_ties():
    merged = merge_tags(
        [local("b", 0.5), local("a", 0.9), local("c", 0.5)],
        [reasoning("c", 0.5)],
    )

    assert [tag.name for tag in merged] == ["a", "b", "c"]


def test_inputs_are_not_mutated():
    local_tags = [local("a", 0.6)]
    reasoning_tags = [reasoning("a", 0.8)]

    merge_tags(local_tags, reasoning_tags)

    assert local_tags == [local("a", 0.6)]
    assert reasoning_tags == [reasoning("a", 0.8)]


def test_empty_inputs():
    assert merge_tags([], []) == []
