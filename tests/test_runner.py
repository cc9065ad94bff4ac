"""
Tests for the SnapshotRunner orchestrator.

Images are synthetic and capture goes through a fake provider.
"""

import json

import pytest

from layout_snapshot.capture import CaptureOptions, Viewport
from layout_snapshot.codec import PngCodec
from layout_snapshot.config import SnapshotConfig
from layout_snapshot.core.errors import (
    ConfigurationError,
    DecodeError,
    DimensionMismatch,
    MissingInputFile,
    ToleranceExceeded,
)
from layout_snapshot.core.image_buffer import ImageBuffer
from layout_snapshot.runner import SnapshotRunner

WHITE = (255, 255, 255, 255)
BLACK = (0, 0, 0, 255)


def _striped(width, height, black_rows=()):
    rows = []
    for y in range(height):
        fill = BLACK if y in black_rows else WHITE
        rows.append(bytes(fill) * width)
    return ImageBuffer(width=width, height=height, pixels=b"".join(rows))


class FakeCaptureProvider:
    def __init__(self, image):
        self.image = image
        self.calls = []

    async def capture(self, url, viewport, options):
        self.calls.append((url, viewport, options))
        return PngCodec().encode(self.image)


@pytest.fixture
def workspace(tmp_path):
    codec = PngCodec()
    reference = tmp_path / "reference.png"
    current = tmp_path / "current.png"

    def write(path, image):
        path.write_bytes(codec.encode(image))

    def config(**kwargs):
        values = {
            "reference_path": str(reference),
            "current_path": str(current),
            "output_dir": str(tmp_path / "out"),
            "target_url": "manual",
            "slice_count": 4,
        }
        values.update(kwargs)
        return SnapshotConfig(**values)

    return tmp_path, reference, current, write, config


@pytest.mark.asyncio
class TestManualMode:
    """Runs that compare against a pre-supplied current image."""

    async def test_identical_images_pass(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(8, 10, black_rows={2}))
        write(current, _striped(8, 10, black_rows={2}))

        result = await SnapshotRunner(config()).run()

        assert result.mode == "manual"
        assert result.passed is True
        assert result.diff.diff_pixel_count == 0
        assert result.verdict.allowed_pixels == 96
        assert (tmp_path / "out" / "diff.png").is_file()
        result.raise_for_verdict()

    async def test_slices_written_with_one_based_names(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(3, 10))
        write(current, _striped(3, 10))

        result = await SnapshotRunner(config(slice_count=4)).run()

        out = tmp_path / "out"
        # ceil(10 / 4) == 3 -> strips of 3, 3, 3, 1
        for prefix in ("reference_slice", "current_slice"):
            for index, height in zip(range(1, 5), (3, 3, 3, 1)):
                strip = PngCodec().read(out / f"{prefix}-{index}.png")
                assert strip.size == (3, height)
        assert len(result.slices) == 8
        assert not (out / "reference_slice-5.png").exists()

    async def test_slicing_disabled(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(3, 3))
        write(current, _striped(3, 3))

        result = await SnapshotRunner(config(slice_count=0)).run()

        assert result.slices == ()
        assert not list((tmp_path / "out").glob("*_slice-*.png"))

    async def test_missing_manual_current(self, workspace):
        _, reference, _, write, config = workspace
        write(reference, _striped(3, 3))

        with pytest.raises(MissingInputFile) as excinfo:
            await SnapshotRunner(config()).run()

        assert excinfo.value.role == "manual current"

    async def test_tolerance_exceeded_keeps_diff(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(4, 6))
        write(current, _striped(4, 6, black_rows={1, 2}))

        result = await SnapshotRunner(config(shift_tolerance=1)).run()

        assert result.verdict.allowed_pixels == 4
        assert result.diff.diff_pixel_count == 8
        assert result.passed is False
        diff_path = tmp_path / "out" / "diff.png"
        assert diff_path.is_file()
        with pytest.raises(ToleranceExceeded) as excinfo:
            result.raise_for_verdict()
        assert str(diff_path) in str(excinfo.value)

    async def test_dimension_mismatch_writes_no_diff(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(4, 6))
        write(current, _striped(4, 7))

        with pytest.raises(DimensionMismatch) as excinfo:
            await SnapshotRunner(config()).run()

        assert str(reference) in str(excinfo.value)
        assert str(current) in str(excinfo.value)
        assert excinfo.value.reference_path == str(reference)
        assert excinfo.value.expected == (4, 6)
        assert excinfo.value.actual == (4, 7)
        assert not (tmp_path / "out" / "diff.png").exists()

    async def test_corrupt_current_aborts(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(4, 6))
        current.write_bytes(b"garbage")

        with pytest.raises(DecodeError) as excinfo:
            await SnapshotRunner(config()).run()

        assert excinfo.value.path == str(current)
        assert not (tmp_path / "out" / "diff.png").exists()

    async def test_runs_are_idempotent(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(6, 6, black_rows={0}))
        write(current, _striped(6, 6, black_rows={3}))

        first = await SnapshotRunner(config(shift_tolerance=0)).run()
        first_diff = (tmp_path / "out" / "diff.png").read_bytes()
        second = await SnapshotRunner(config(shift_tolerance=0)).run()

        assert first.diff.diff_pixel_count == second.diff.diff_pixel_count
        assert first.verdict == second.verdict
        assert first.diff_record.sha256 == second.diff_record.sha256
        assert (tmp_path / "out" / "diff.png").read_bytes() == first_diff

    async def test_report_line_written(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(2, 2))
        write(current, _striped(2, 2))
        report = tmp_path / "reports" / "runs.jsonl"

        await SnapshotRunner(config(report_path=str(report))).run()

        lines = report.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["event"] == "run_completed"
        assert event["verdict"] == {"allowed_pixels": 24, "actual_pixels": 0, "passed": True}


@pytest.mark.asyncio
class TestLiveMode:
    """Runs that capture the current image through a provider."""

    async def test_capture_sized_to_reference(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(5, 7))
        provider = FakeCaptureProvider(_striped(5, 7))

        result = await SnapshotRunner(
            config(target_url="https://example.com", full_page=True),
            capture_provider=provider,
        ).run()

        url, viewport, options = provider.calls[0]
        assert url == "https://example.com"
        assert viewport == Viewport(width=5, height=7)
        assert isinstance(options, CaptureOptions)
        assert options.full_page is True
        assert current.is_file()
        assert result.mode == "live"
        assert result.passed is True

    async def test_capture_only_skips_comparison(self, workspace):
        tmp_path, reference, current, write, config = workspace
        write(reference, _striped(5, 7))
        provider = FakeCaptureProvider(_striped(5, 9))

        result = await SnapshotRunner(
            config(target_url="https://example.com", compare=False),
            capture_provider=provider,
        ).run()

        assert result.compared is False
        assert result.passed is True
        assert result.current_size == (5, 9)
        assert not (tmp_path / "out" / "diff.png").exists()
        assert not list((tmp_path / "out").glob("*_slice-*.png"))

    async def test_missing_reference_before_capture(self, workspace):
        _, _, _, _, config = workspace
        provider = FakeCaptureProvider(_striped(1, 1))

        with pytest.raises(MissingInputFile) as excinfo:
            await SnapshotRunner(config(target_url="https://example.com"), capture_provider=provider).run()

        assert excinfo.value.role == "reference"
        assert provider.calls == []

    async def test_target_url_required(self, workspace):
        _, _, _, _, config = workspace

        with pytest.raises(ConfigurationError):
            await SnapshotRunner(config(target_url=None), capture_provider=FakeCaptureProvider(None)).run()
