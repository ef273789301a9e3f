"""Tests for per-tick telemetry."""

import pytest
import torch

from pointcloth.core.telemetry import (
    BLANK,
    CSV_COLUMNS,
    TelemetryRecorder,
    mean_speed,
    records_to_columns,
    records_to_csv,
)


@pytest.fixture
def recorder():
    return TelemetryRecorder(isi_ms=50, isi_slows=True, isi_mode="blank")


def test_visible_record_measures_drawn_points(recorder):
    points = torch.tensor([[10.0, 20.0], [40.0, 60.0], [25.0, 30.0]], dtype=torch.float64)
    record = recorder.record_visible(3, points, 1.5, elapsed_s=0.1, phase_s=0.0)
    assert record.cloth_width == pytest.approx(30.0)
    assert record.cloth_height == pytest.approx(40.0)
    assert record.scale == 1.5
    assert record.frame == 3
    assert not record.is_blank


def test_blank_record_has_no_geometry(recorder):
    record = recorder.record_blank(elapsed_s=0.2, phase_s=0.05)
    assert record.is_blank
    assert record.frame == BLANK
    assert record.cloth_width is None and record.cloth_height is None
    assert record.scale is None
    assert record.phase == "blank_wait"
    assert record.schedule_frame is None


def test_schedule_frame_kept_beside_drawn_frame(recorder):
    points = torch.zeros((2, 2), dtype=torch.float64)
    plain = recorder.record_visible(4, points, 1.0, 0.0, 0.0)
    wrapped = recorder.record_visible(2, points, 1.0, 0.1, 0.0, schedule_frame=32)
    assert plain.schedule_frame == 4
    assert wrapped.frame == 2
    assert wrapped.schedule_frame == 32


def test_csv_header_and_rows(recorder):
    recorder.record_visible(0, torch.zeros((2, 2), dtype=torch.float64), 1.0, 0.0, 0.0)
    recorder.record_blank(0.0167, 0.0167)
    lines = records_to_csv(recorder.freeze()).splitlines()

    assert lines[0] == ",".join(CSV_COLUMNS)
    assert len(lines) == 3
    visible = lines[1].split(",")
    assert visible[3] == "50"
    assert visible[4] == "true"
    assert visible[5] == "0"
    assert lines[2].startswith(",,,")
    assert lines[2].split(",")[5] == "blank"
    assert lines[2].split(",")[8] == "blank"


def test_freeze_closes_log(recorder):
    recorder.record_blank(0.0, 0.0)
    records = recorder.freeze()
    assert isinstance(records, tuple)
    assert len(records) == 1
    with pytest.raises(RuntimeError):
        recorder.record_blank(0.1, 0.1)
    with pytest.raises(RuntimeError):
        recorder.record_visible(0, torch.zeros((1, 2)), 1.0, 0.1, 0.0)


def test_counts(recorder):
    points = torch.zeros((1, 2), dtype=torch.float64)
    recorder.record_visible(0, points, 1.0, 0.0, 0.0)
    recorder.record_visible(0, points, 1.0, 0.01, 0.01, phase="hold_wait")
    recorder.record_blank(0.02, 0.02)
    recorder.record_visible(1, points, 1.0, 0.03, 0.0)
    assert len(recorder) == 4
    assert recorder.visible_count == 3
    assert recorder.blank_count == 1
    assert recorder.distinct_frames == 2


def test_mean_speed():
    a = torch.tensor([[0.0, 0.0], [0.0, 0.0]], dtype=torch.float64)
    b = torch.tensor([[3.0, 4.0], [0.0, 5.0]], dtype=torch.float64)
    assert mean_speed([a, b]) == pytest.approx(5.0)
    assert mean_speed([a]) == 0.0
    assert mean_speed([]) == 0.0


def test_mean_speed_skips_shape_changes():
    a = torch.zeros((2, 2), dtype=torch.float64)
    b = torch.ones((3, 2), dtype=torch.float64)
    assert mean_speed([a, b]) == 0.0


def test_recorder_speeds(recorder):
    recorder.record_visible(0, torch.tensor([[0.0, 0.0]]), 1.0, 0.0, 0.0,
                            noise_points=torch.tensor([[1.0, 1.0]]))
    recorder.record_visible(1, torch.tensor([[6.0, 8.0]]), 1.0, 0.1, 0.0,
                            noise_points=torch.tensor([[1.0, 2.0]]))
    assert recorder.cloth_speed() == pytest.approx(10.0)
    assert recorder.noise_speed() == pytest.approx(1.0)


def test_columns_view(recorder):
    recorder.record_blank(0.0, 0.0)
    recorder.record_blank(0.1, 0.1)
    columns = records_to_columns(recorder.records)
    assert columns["frame"] == [BLANK, BLANK]
    assert columns["elapsed_s"] == [0.0, 0.1]
