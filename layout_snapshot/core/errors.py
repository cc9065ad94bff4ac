from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from layout_snapshot.core.tolerance import ToleranceVerdict


class LayoutSnapshotError(Exception):
    """Base class for anticipated failures reported without a traceback."""


class ConfigurationError(LayoutSnapshotError):
    pass


class MissingInputFile(LayoutSnapshotError):
    def __init__(self, path: str, role: str) -> None:
        self.path = path
        self.role = role
        super().__init__(f"{role} image not found at {path}")


class DimensionMismatch(LayoutSnapshotError):
    def __init__(
        self,
        expected: tuple[int, int],
        actual: tuple[int, int],
        reference_path: str | None = None,
        current_path: str | None = None,
    ) -> None:
        self.expected = expected
        self.actual = actual
        self.reference_path = reference_path
        self.current_path = current_path
        message = (
            f"image dimensions differ: expected {expected[0]}x{expected[1]}, "
            f"got {actual[0]}x{actual[1]}"
        )
        if reference_path or current_path:
            message += f" (reference {reference_path or '?'}, current {current_path or '?'})"
        super().__init__(message)


class DecodeError(LayoutSnapshotError):
    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"cannot decode PNG at {path}: {reason}")


class CaptureTimeout(LayoutSnapshotError):
    def __init__(self, url: str, timeout_ms: int) -> None:
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"navigation to {url} did not settle within {timeout_ms} ms")


class CaptureError(LayoutSnapshotError):
    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"capture of {url} failed: {reason}")


class ToleranceExceeded(LayoutSnapshotError):
    def __init__(self, verdict: "ToleranceVerdict", diff_path: str | None = None) -> None:
        self.verdict = verdict
        self.diff_path = diff_path
        message = (
            f"pixel difference exceeds tolerance: allowed {verdict.allowed_pixels}, "
            f"got {verdict.actual_pixels}"
        )
        if diff_path:
            message += f" (see {diff_path})"
        super().__init__(message)
