"""Tests for the work item stage machine."""

import uuid

import pytest

from clipline.models import SourceType, Stage, WorkItem
from clipline.services.stages import (
    InvalidTransition,
    complete_render,
    complete_thumbnail,
    complete_tts,
    new_generated_item,
    new_premade_segment,
    select_background,
    stage_of,
)


def _generated(**fields):
    item = WorkItem(customer_id="acme", source_type=SourceType.generated.value, script_file_path="/s/a.txt")
    for key, value in fields.items():
        setattr(item, key, value)
    return item


def _rendered():
    item = new_generated_item("acme", "/s/a.txt")
    complete_tts(item, wav_path="/s/a.wav", timestamps_path="/s/a.json", audio_duration_seconds=12.5)
    complete_render(
        item,
        background_path="/bg/x.mp4",
        start_offset_seconds=3.0,
        end_buffer_seconds=3.0,
        output_path="/s/out.mp4",
    )
    return item


class TestStageOfGenerated:
    def test_missing_script_is_invalid(self):
        assert stage_of(_generated(script_file_path=None)) == Stage.invalid

    def test_script_only_awaits_tts(self):
        assert stage_of(_generated()) == Stage.awaiting_tts

    def test_timestamps_without_audio_is_invalid(self):
        assert stage_of(_generated(timestamps_path="/s/a.json")) == Stage.invalid

    def test_audio_awaits_render(self):
        item = _generated(timestamps_path="/s/a.json", wav_path="/s/a.wav")
        assert stage_of(item) == Stage.awaiting_render

    def test_background_recorded_before_render(self):
        item = _generated(timestamps_path="/s/a.json", wav_path="/s/a.wav", mp4_path="/bg/x.mp4")
        assert stage_of(item) == Stage.background_selected

    def test_rendered_awaits_thumbnail(self):
        item = _generated(
            timestamps_path="/s/a.json",
            wav_path="/s/a.wav",
            mp4_path="/s/out.mp4",
            background_file_path="/bg/x.mp4",
        )
        assert stage_of(item) == Stage.awaiting_thumbnail

    def test_thumbnail_makes_ready(self):
        item = _generated(
            timestamps_path="/s/a.json",
            wav_path="/s/a.wav",
            mp4_path="/s/out.mp4",
            background_file_path="/bg/x.mp4",
            thumbnail_path="/s/t.jpg",
        )
        assert stage_of(item) == Stage.ready


class TestStageOfPremade:
    def _segment(self, **overrides):
        fields = dict(series_id=uuid.uuid4(), series_index=1, series_count=2, mp4_path="/p/part_001.mp4")
        fields.update(overrides)
        item = WorkItem(customer_id="acme", source_type=SourceType.premade_segment.value)
        for key, value in fields.items():
            setattr(item, key, value)
        return item

    def test_missing_series_fields_is_invalid(self):
        assert stage_of(self._segment(series_index=None)) == Stage.invalid
        assert stage_of(self._segment(series_id=None)) == Stage.invalid

    def test_missing_mp4_is_invalid(self):
        assert stage_of(self._segment(mp4_path=None)) == Stage.invalid

    def test_without_thumbnail_awaits_thumbnail(self):
        assert stage_of(self._segment()) == Stage.awaiting_thumbnail

    def test_with_thumbnail_is_ready(self):
        assert stage_of(self._segment(thumbnail_path="/p/thumb_part_001.jpg")) == Stage.ready


class TestFactories:
    def test_new_generated_item_awaits_tts(self):
        item = new_generated_item("acme", "/s/a.txt", title="First")
        assert item.stage == Stage.awaiting_tts
        assert item.source_type == SourceType.generated

    def test_new_generated_item_requires_script(self):
        with pytest.raises(ValueError):
            new_generated_item("acme", "")

    def test_new_premade_segment_with_thumbnail_is_ready(self):
        item = new_premade_segment(
            "acme",
            series_id=uuid.uuid4(),
            series_index=2,
            series_count=2,
            mp4_path="/p/part_002.mp4",
            thumbnail_path="/p/thumb_part_002.jpg",
        )
        assert item.stage == Stage.ready

    @pytest.mark.parametrize("index,count", [(0, 3), (4, 3), (-1, 1)])
    def test_new_premade_segment_index_out_of_range(self, index, count):
        with pytest.raises(ValueError):
            new_premade_segment(
                "acme", series_id=uuid.uuid4(), series_index=index, series_count=count, mp4_path="/p/x.mp4"
            )


class TestTransitions:
    def test_full_generated_chain(self):
        item = new_generated_item("acme", "/s/a.txt")
        assert complete_tts(
            item,
            wav_path="/s/a.wav",
            timestamps_path="/s/a.json",
            audio_duration_seconds=12.5,
            script_sha1="abc",
        ) == Stage.awaiting_render
        assert item.script_sha1 == "abc"

        assert select_background(item, "/bg/x.mp4") == Stage.background_selected
        assert item.mp4_path == "/bg/x.mp4"

        assert complete_render(
            item,
            background_path="/bg/x.mp4",
            start_offset_seconds=3.0,
            end_buffer_seconds=3.0,
            output_path="/s/out.mp4",
        ) == Stage.awaiting_thumbnail
        assert item.mp4_path == "/s/out.mp4"
        assert item.background_start_offset_seconds == 3.0

        assert complete_thumbnail(item, "/s/t.jpg") == Stage.ready
        assert item.stage == Stage.ready

    def test_tts_twice_rejected(self):
        item = new_generated_item("acme", "/s/a.txt")
        complete_tts(item, wav_path="/s/a.wav", timestamps_path="/s/a.json", audio_duration_seconds=1.0)
        with pytest.raises(InvalidTransition):
            complete_tts(item, wav_path="/s/b.wav", timestamps_path="/s/b.json", audio_duration_seconds=1.0)

    def test_render_before_tts_rejected(self):
        item = new_generated_item("acme", "/s/a.txt")
        with pytest.raises(InvalidTransition):
            complete_render(
                item,
                background_path="/bg/x.mp4",
                start_offset_seconds=0.0,
                end_buffer_seconds=3.0,
                output_path="/s/out.mp4",
            )

    def test_thumbnail_only_after_render(self):
        item = new_generated_item("acme", "/s/a.txt")
        with pytest.raises(InvalidTransition):
            complete_thumbnail(item, "/s/t.jpg")

    def test_background_cannot_be_reselected_after_render(self):
        item = _rendered()
        with pytest.raises(InvalidTransition):
            select_background(item, "/bg/y.mp4")


class TestSourceTypeImmutable:
    def test_changing_source_type_raises(self):
        item = new_generated_item("acme", "/s/a.txt")
        with pytest.raises(ValueError):
            item.source_type = SourceType.premade_segment.value

    def test_unknown_source_type_rejected(self):
        with pytest.raises(ValueError):
            WorkItem(customer_id="acme", source_type="uploaded")
