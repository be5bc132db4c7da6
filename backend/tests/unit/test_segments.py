"""Tests for the series segment merge plan."""

import pytest

from clipline.services.segments import plan_segment_merge


def test_short_tail_merged_into_previous():
    groups = plan_segment_merge([60.0, 35.0], 60)
    assert len(groups) == 1
    assert groups[0].index == 1
    assert groups[0].parts == (0, 1)
    assert groups[0].duration == pytest.approx(95.0)


def test_exact_multiple_keeps_all_parts():
    groups = plan_segment_merge([60.0, 60.0, 60.0], 60)
    assert [g.parts for g in groups] == [(0,), (1,), (2,)]
    assert [g.index for g in groups] == [1, 2, 3]


def test_tail_within_tolerance_kept():
    groups = plan_segment_merge([60.0, 59.8], 60, tolerance=0.25)
    assert len(groups) == 2


def test_tail_just_outside_tolerance_merged():
    groups = plan_segment_merge([60.0, 60.0, 59.7], 60, tolerance=0.25)
    assert [g.parts for g in groups] == [(0,), (1, 2)]
    assert groups[-1].duration == pytest.approx(119.7)


def test_single_short_part_stays():
    groups = plan_segment_merge([20.0], 60)
    assert len(groups) == 1
    assert groups[0].parts == (0,)


def test_empty_input():
    assert plan_segment_merge([], 60) == []
