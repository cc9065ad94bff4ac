"""Command-line entry point: ``layout-snapshot``.

Flags override environment variables, which override built-in defaults.
Exit status is 0 when every check passes, 1 on any anticipated failure.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

from layout_snapshot.capture import ScreenCaptureProvider
from layout_snapshot.config import SnapshotConfig, parse_bool
from layout_snapshot.core.errors import LayoutSnapshotError
from layout_snapshot.runner import SnapshotRunner

logger = logging.getLogger("layout_snapshot.cli")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="layout-snapshot",
        description="Compare a live page (or a supplied screenshot) against a reference image",
    )
    parser.add_argument("--url", dest="target_url", help="Page to capture, or 'manual' to use --current as-is")
    parser.add_argument("--reference", dest="reference_path", help="Reference PNG path")
    parser.add_argument("--current", dest="current_path", help="Where the current screenshot is written or read")
    parser.add_argument("--output-dir", dest="output_dir", help="Directory for slices and the diff image")
    parser.add_argument("--slices", dest="slice_count", type=int, help="Number of horizontal slices (0 disables)")
    parser.add_argument("--threshold", dest="diff_threshold", type=float, help="Per-pixel colour threshold, 0.0-1.0")
    parser.add_argument(
        "--shift-tolerance",
        dest="shift_tolerance",
        type=float,
        help="Allowed horizontal shift in pixels per row",
    )
    parser.add_argument(
        "--capture-only",
        dest="compare",
        action="store_const",
        const=False,
        help="Only capture the current screenshot, skip slicing and comparison",
    )
    parser.add_argument("--full-page", dest="full_page", action="store_const", const=True, help="Capture the full page")
    parser.add_argument(
        "--count-antialiasing",
        dest="detect_antialiasing",
        action="store_const",
        const=False,
        help="Count anti-aliased edge pixels as differences",
    )
    parser.add_argument("--timeout-ms", dest="navigation_timeout_ms", type=int, help="Navigation timeout")
    parser.add_argument("--headed", dest="headless", action="store_const", const=False, help="Show the browser")
    parser.add_argument("--report", dest="report_path", help="Append a JSON line per run to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def load_config(args: argparse.Namespace, environ: Optional[dict[str, str]] = None) -> SnapshotConfig:
    overrides = {
        key: value
        for key, value in vars(args).items()
        if key != "verbose"
    }
    return SnapshotConfig.from_env(environ).with_overrides(**overrides)


async def _run(config: SnapshotConfig, capture_provider: ScreenCaptureProvider | None = None) -> int:
    runner = SnapshotRunner(config, capture_provider=capture_provider)
    result = await runner.run()
    result.raise_for_verdict()
    if result.compared:
        logger.info(
            "All checks passed (%d of %d allowed pixels differ)",
            result.verdict.actual_pixels,
            result.verdict.allowed_pixels,
        )
    else:
        logger.info("Current screenshot ready at %s", result.current_path)
    return 0


def main(
    argv: Sequence[str] | None = None,
    environ: Optional[dict[str, str]] = None,
    capture_provider: ScreenCaptureProvider | None = None,
) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    try:
        config = load_config(args, environ)
        return asyncio.run(_run(config, capture_provider))
    except LayoutSnapshotError as exc:
        logger.error("%s", exc)
        return 1


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
