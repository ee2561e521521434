#!/usr/bin/env python3
"""
Cognitive Adaptation Pipeline

Replays a recorded pointer telemetry session through the signal
processor, optionally applies an externally estimated cognitive state,
and prints the resulting metrics and accessibility preferences as JSON.

Usage:
    python main.py --replay SESSION.jsonl [--config CONFIG_PATH]
                   [--state STATE_JSON] [--auto-adjust]

Recording format (one JSON object per line):
    {"type": "move", "x": 10, "y": 20, "t": 1050.0}
    {"type": "click", "x": 12, "y": 21, "t": 1100.0,
     "target": {"left": 0, "top": 0, "width": 40, "height": 30}}
    {"type": "scroll", "dx": 0, "dy": 120, "t": 1200.0}

Example:
    python main.py --replay session.jsonl --auto-adjust \\
        --state '{"cognitive_load": "high", "attention_level": "low"}'
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from cogadapt.capture.event_source import RecordedEventSource
from cogadapt.config import load_settings
from cogadapt.core.contracts import CognitiveState
from cogadapt.core.errors import ConfigurationError
from cogadapt.pipeline.orchestrator import AdaptivePipeline


# ============================================================
# LOGGING CONFIGURATION
# ============================================================

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """Configure logging."""
    logger.remove()  # Remove default handler

    # Console output with colors
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <cyan>{module}</cyan>:<cyan>{line}</cyan> | <level>{message}</level>",
        colorize=True,
    )

    # File output
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_file,
            level="DEBUG",
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {module}:{line} | {message}",
            rotation="10 MB",
            retention="7 days",
        )


def _parse_state(raw: str) -> CognitiveState:
    """Cognitive state from inline JSON or a path to a JSON file."""
    if not raw.lstrip().startswith("{"):
        raw = Path(raw).read_text()
    return CognitiveState.from_dict(json.loads(raw))


# ============================================================
# ENTRY POINT
# ============================================================

def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Replay pointer telemetry through the cognitive adaptation pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--config", "-c",
        type=str,
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--replay", "-r",
        type=str,
        default=None,
        help="JSON-lines recording to replay",
    )
    parser.add_argument(
        "--state", "-s",
        type=str,
        default=None,
        help="Cognitive state as inline JSON or a JSON file",
    )
    parser.add_argument(
        "--auto-adjust",
        action="store_true",
        help="Apply recommended adaptations automatically",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (overrides settings)",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Log file path (overrides settings)",
    )

    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except ConfigurationError as e:
        setup_logging("ERROR")
        logger.error(f"Invalid settings: {e}")
        return 2

    # Setup logging
    setup_logging(
        args.log_level or settings.logging.level,
        args.log_file or settings.logging.file,
    )

    if args.auto_adjust:
        settings.adaptive.auto_adjust = True

    state = None
    if args.state:
        try:
            state = _parse_state(args.state)
        except (ValueError, AttributeError, OSError) as e:
            logger.error(f"Invalid cognitive state: {e}")
            return 2

    source = None
    if args.replay:
        try:
            source = RecordedEventSource(args.replay)
        except OSError as e:
            logger.error(f"Cannot read recording: {e}")
            return 2

    pipeline = AdaptivePipeline(settings, source=source)
    with pipeline:
        if source is not None:
            delivered = source.play()
            logger.info(f"Replayed {delivered} events")

    if state is not None:
        recommendation = pipeline.apply_cognitive_state(state)
        if recommendation is None:
            logger.info("Auto-adjust disabled, preferences unchanged")

    print(json.dumps(pipeline.snapshot(), indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
