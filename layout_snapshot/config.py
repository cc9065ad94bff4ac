from __future__ import annotations

import math
import os
from dataclasses import dataclass, fields, replace
from typing import Any, Mapping, Optional

from layout_snapshot.core.errors import ConfigurationError

MANUAL_SENTINEL = "manual"

DEFAULT_BLOCKED_REQUEST_PATTERNS: tuple[str, ...] = ("**://cdn.cookiecode.nl/**",)

DEFAULT_HIDE_SELECTORS: tuple[str, ...] = (
    ".cookie-banner",
    ".cookiebar",
    ".cc_banner",
    ".cc-window",
    '[id*="cookie"]',
    '[class*="cookie"]',
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: str, name: str = "value") -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class SnapshotConfig:
    target_url: Optional[str] = None
    reference_path: str = "reference/home-reference.png"
    current_path: str = "reference/home-current.png"
    output_dir: str = "reference"
    slice_count: int = 10  # 0 disables slicing
    diff_threshold: float = 0.1
    shift_tolerance: float = 12
    compare: bool = True
    full_page: bool = False
    detect_antialiasing: bool = True
    navigation_timeout_ms: int = 30_000
    settle_delay_ms: int = 800
    wait_until: str = "networkidle"
    headless: bool = True
    blocked_request_patterns: tuple[str, ...] = DEFAULT_BLOCKED_REQUEST_PATTERNS
    hide_selectors: tuple[str, ...] = DEFAULT_HIDE_SELECTORS
    report_path: Optional[str] = None
    diff_filename: str = "diff.png"
    reference_slice_prefix: str = "reference_slice"
    current_slice_prefix: str = "current_slice"

    def __post_init__(self) -> None:
        if self.slice_count < 0:
            raise ConfigurationError(f"slice count must be >= 0, got {self.slice_count}")
        if not math.isfinite(self.diff_threshold) or not 0.0 <= self.diff_threshold <= 1.0:
            raise ConfigurationError(f"diff threshold must be within 0.0..1.0, got {self.diff_threshold}")
        if not math.isfinite(self.shift_tolerance) or self.shift_tolerance < 0:
            raise ConfigurationError(
                f"pixel shift tolerance must be a finite number >= 0, got {self.shift_tolerance}"
            )
        if self.navigation_timeout_ms <= 0:
            raise ConfigurationError(
                f"navigation timeout must be > 0 ms, got {self.navigation_timeout_ms}"
            )
        if self.settle_delay_ms < 0:
            raise ConfigurationError(f"settle delay must be >= 0 ms, got {self.settle_delay_ms}")
        if self.wait_until not in {"load", "domcontentloaded", "networkidle", "commit"}:
            raise ConfigurationError(f"unsupported wait_until state {self.wait_until!r}")

    @property
    def manual_mode(self) -> bool:
        return self.target_url == MANUAL_SENTINEL

    @property
    def slicing_enabled(self) -> bool:
        return self.slice_count > 0

    def output_path(self, name: str) -> str:
        return os.path.join(self.output_dir, name)

    @property
    def diff_path(self) -> str:
        return self.output_path(self.diff_filename)

    def with_overrides(self, **overrides: Any) -> "SnapshotConfig":
        """Copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigurationError(f"unknown config fields: {', '.join(sorted(unknown))}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "SnapshotConfig":
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        def _get(name: str) -> str | None:
            raw = env.get(name)
            if raw is None or raw.strip() == "":
                return None
            return raw.strip()

        def _number(name: str, cast: type) -> Any:
            raw = _get(name)
            if raw is None:
                return None
            try:
                return cast(raw)
            except ValueError as exc:
                raise ConfigurationError(f"{name} must be a {cast.__name__}, got {raw!r}") from exc

        for key, env_name in (
            ("target_url", "TARGET_URL"),
            ("reference_path", "REFERENCE_PATH"),
            ("current_path", "CURRENT_PATH"),
            ("output_dir", "OUTPUT_DIR"),
            ("wait_until", "WAIT_UNTIL"),
            ("report_path", "REPORT_PATH"),
        ):
            values[key] = _get(env_name)

        values["slice_count"] = _number("SLICE_COUNT", int)
        values["diff_threshold"] = _number("DIFF_THRESHOLD", float)
        values["shift_tolerance"] = _number("PIXEL_SHIFT_TOLERANCE", float)
        values["navigation_timeout_ms"] = _number("NAVIGATION_TIMEOUT_MS", int)
        values["settle_delay_ms"] = _number("SETTLE_DELAY_MS", int)

        for key, env_name in (
            ("compare", "COMPARE"),
            ("full_page", "FULL_PAGE"),
            ("detect_antialiasing", "DETECT_ANTIALIASING"),
            ("headless", "HEADLESS"),
        ):
            raw = _get(env_name)
            values[key] = parse_bool(raw, env_name) if raw is not None else None

        return cls().with_overrides(**values)
