"""
SnapshotRunner - one visual-regression check from reference to verdict.

Pipeline:
1. Decode the reference image (its size drives the capture viewport).
2. Obtain the current image: live capture, or a pre-supplied file in manual mode.
3. Optionally slice both images into numbered strips for inspection.
4. Diff the full images, apply the shift tolerance, persist the diff image.

Each run is independent: nothing is shared between runs except the
output directory, and every artifact has a distinct filename.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from layout_snapshot.artifacts import ArtifactRecord, ArtifactStore
from layout_snapshot.capture import CaptureOptions, PlaywrightCaptureProvider, ScreenCaptureProvider, Viewport
from layout_snapshot.codec import PngCodec
from layout_snapshot.config import SnapshotConfig
from layout_snapshot.core.differ import DiffOptions, DiffResult, diff_images
from layout_snapshot.core.errors import ConfigurationError, DimensionMismatch, MissingInputFile, ToleranceExceeded
from layout_snapshot.core.image_buffer import ImageBuffer
from layout_snapshot.core.slicer import slice_regions, strip_height
from layout_snapshot.core.tolerance import ToleranceVerdict, evaluate
from layout_snapshot.report_sink import CAPTURE_ONLY, RUN_COMPLETED, JsonlReportSink, NullReportSink, ReportSink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunResult:
    """Outcome of a :class:`SnapshotRunner` run."""
    mode: str
    reference_size: tuple[int, int]
    current_size: tuple[int, int]
    current_path: str
    slices: tuple[ArtifactRecord, ...] = ()
    diff: Optional[DiffResult] = None
    verdict: Optional[ToleranceVerdict] = None
    diff_record: Optional[ArtifactRecord] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def compared(self) -> bool:
        return self.verdict is not None

    @property
    def passed(self) -> bool:
        return self.verdict is None or self.verdict.passed

    def raise_for_verdict(self) -> None:
        if self.verdict is not None and not self.verdict.passed:
            raise ToleranceExceeded(
                self.verdict,
                diff_path=self.diff_record.path if self.diff_record else None,
            )

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "reference_size": list(self.reference_size),
            "current_size": list(self.current_size),
            "current_path": self.current_path,
            "slices": [record.path for record in self.slices],
            "diff_pixel_count": self.diff.diff_pixel_count if self.diff else None,
            "antialiased_pixels": self.diff.antialiased_pixels if self.diff else None,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "diff_path": self.diff_record.path if self.diff_record else None,
            "passed": self.passed,
            "metadata": self.metadata,
        }


class SnapshotRunner:
    def __init__(
        self,
        config: SnapshotConfig,
        capture_provider: ScreenCaptureProvider | None = None,
        codec: PngCodec | None = None,
        store: ArtifactStore | None = None,
        report_sink: ReportSink | None = None,
    ) -> None:
        self._config = config
        self._codec = codec or PngCodec()
        self._capture = capture_provider or PlaywrightCaptureProvider()
        self._store = store or ArtifactStore(config.output_dir, codec=self._codec)
        if report_sink is not None:
            self._sink = report_sink
        elif config.report_path:
            self._sink = JsonlReportSink(config.report_path)
        else:
            self._sink = NullReportSink()

    @property
    def config(self) -> SnapshotConfig:
        return self._config

    async def run(self) -> RunResult:
        config = self._config
        if not config.manual_mode and not config.target_url:
            raise ConfigurationError("no target URL configured; set TARGET_URL or use 'manual'")

        if not Path(config.reference_path).is_file():
            raise MissingInputFile(config.reference_path, "reference")

        reference = await self._codec.read_async(config.reference_path, "reference")
        logger.info("Reference dimensions: %d x %d", reference.width, reference.height)

        mode = "manual" if config.manual_mode else "live"
        await self._acquire_current(reference)
        current = await self._codec.read_async(config.current_path, "current")
        logger.info("Current dimensions: %d x %d", current.width, current.height)

        if not config.compare:
            logger.info("Capture-only run, skipping slicing and comparison")
            result = RunResult(
                mode=mode,
                reference_size=reference.size,
                current_size=current.size,
                current_path=config.current_path,
            )
            await self._sink.emit_run(result, CAPTURE_ONLY)
            return result

        slices: list[ArtifactRecord] = []
        if config.slicing_enabled:
            slices = await self._write_slices(reference, current)

        if not reference.same_size(current):
            raise DimensionMismatch(
                expected=reference.size,
                actual=current.size,
                reference_path=config.reference_path,
                current_path=config.current_path,
            )

        diff = await asyncio.to_thread(
            diff_images,
            reference,
            current,
            DiffOptions(
                threshold=config.diff_threshold,
                detect_antialiasing=config.detect_antialiasing,
            ),
        )
        verdict = evaluate(diff.diff_pixel_count, reference.width, config.shift_tolerance)
        diff_record = await self._store.write_image(config.diff_path, diff.diff_buffer)

        logger.info(
            "Diff pixels: %d (anti-aliased ignored: %d), allowed: %d -> %s",
            diff.diff_pixel_count,
            diff.antialiased_pixels,
            verdict.allowed_pixels,
            "PASS" if verdict.passed else "FAIL",
        )

        result = RunResult(
            mode=mode,
            reference_size=reference.size,
            current_size=current.size,
            current_path=config.current_path,
            slices=tuple(slices),
            diff=diff,
            verdict=verdict,
            diff_record=diff_record,
            metadata={
                "diff_threshold": config.diff_threshold,
                "shift_tolerance": config.shift_tolerance,
                "slice_count": config.slice_count,
            },
        )
        await self._sink.emit_run(result, RUN_COMPLETED)
        return result

    async def _acquire_current(self, reference: ImageBuffer) -> None:
        config = self._config
        if config.manual_mode:
            logger.info("Manual mode: using existing current image at %s", config.current_path)
            if not Path(config.current_path).is_file():
                raise MissingInputFile(config.current_path, "manual current")
            return

        logger.info("Capturing live screenshot of %s", config.target_url)
        payload = await self._capture.capture(
            config.target_url,
            Viewport(width=reference.width, height=reference.height),
            CaptureOptions.from_config(config),
        )
        await self._store.write_bytes(config.current_path, payload)

    async def _write_slices(self, reference: ImageBuffer, current: ImageBuffer) -> list[ArtifactRecord]:
        config = self._config
        items: list[tuple[str, ImageBuffer]] = []
        for label, image, prefix in (
            (config.reference_path, reference, config.reference_slice_prefix),
            (config.current_path, current, config.current_slice_prefix),
        ):
            logger.info(
                "Slicing %s (%dx%d) into %d parts of about %d px",
                label,
                image.width,
                image.height,
                config.slice_count,
                strip_height(image.height, config.slice_count),
            )
            for item in slice_regions(image, config.slice_count):
                items.append((config.output_path(f"{prefix}-{item.index}.png"), item.image))

        records = await self._store.write_many(items)
        for record in records:
            logger.info("Slice saved: %s", record.path)
        return records
