#!/usr/bin/env python3
"""
Capture Smoke Test Script
=========================

Standalone script to exercise capture and export against a real display.

This script:
    1. Starts rolling capture on the primary display
    2. Optionally records for a few seconds
    3. Logs capture stats every few seconds
    4. Exports the rolling buffer (and the recording) and reports the outcome

Prerequisites:
    - A desktop session the process can capture
    - Install the package: pip install -e .

Usage:
    python scripts/smoke_capture.py --duration 15
    python scripts/smoke_capture.py --record 5 --output /tmp/quickrewind
"""

import argparse
import logging
import sys
import time

from quickrewind.config import CaptureConfig
from quickrewind.observability import LoggingNotifier
from quickrewind.service import QuickRewindService


logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


def run_smoke(
    output: str,
    duration: int,
    record_seconds: int,
    report_interval: int,
) -> dict:
    """
    Run the smoke test.

    Args:
        output: Output folder for exports
        duration: Seconds of rolling capture before exporting
        record_seconds: Seconds of active recording (0 = skip)
        report_interval: Seconds between progress reports

    Returns:
        Summary dict
    """
    config = CaptureConfig(output_folder=output, buffer_seconds=10)

    logger.info("=" * 60)
    logger.info("QuickRewind Capture Smoke Test")
    logger.info("=" * 60)
    logger.info(f"Output folder: {config.output_folder}")
    logger.info(f"Rolling capture: {duration} seconds")
    logger.info(f"Active recording: {record_seconds} seconds")
    logger.info("=" * 60)

    service = QuickRewindService(config, notifier=LoggingNotifier())
    service.start()

    outcomes = {}
    start_time = time.time()
    try:
        last_report = start_time
        while time.time() - start_time < duration:
            if time.time() - last_report >= report_interval:
                metrics = service.scheduler.metrics()
                logger.info("-" * 40)
                logger.info(f"Frames captured: {metrics['frames_captured']}")
                logger.info(f"Capture errors: {metrics['capture_errors']}")
                logger.info(
                    f"Buffer: {metrics['buffer']['size']}/{metrics['buffer']['capacity']} "
                    f"(dropped {metrics['buffer']['dropped_count']})"
                )
                last_report = time.time()
            time.sleep(0.5)

        future = service.export_buffer()
        if future is not None:
            outcomes["buffer"] = future.result().outcome.value

        if record_seconds > 0 and service.start_recording():
            time.sleep(record_seconds)
            future = service.stop_recording()
            if future is not None:
                outcomes["recording"] = future.result().outcome.value

    except KeyboardInterrupt:
        logger.info("Smoke test interrupted by user")
    finally:
        metrics = service.scheduler.metrics()
        service.shutdown()

    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Total runtime: {time.time() - start_time:.1f} seconds")
    logger.info(f"Frames captured: {metrics['frames_captured']}")
    logger.info(f"Capture errors: {metrics['capture_errors']}")
    logger.info(f"Export outcomes: {outcomes}")
    logger.info("=" * 60)

    return {
        "frames_captured": metrics["frames_captured"],
        "capture_errors": metrics["capture_errors"],
        "outcomes": outcomes,
    }


def main():
    parser = argparse.ArgumentParser(
        description="Smoke test for QuickRewind capture and export"
    )
    parser.add_argument(
        "--output",
        type=str,
        default="./quickrewind-smoke",
        help="Output folder (default: ./quickrewind-smoke)",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=15,
        help="Rolling capture duration in seconds (default: 15)",
    )
    parser.add_argument(
        "--record",
        type=int,
        default=0,
        help="Active recording duration in seconds (default: 0, skip)",
    )
    parser.add_argument(
        "--report-interval",
        type=int,
        default=5,
        help="Seconds between progress reports (default: 5)",
    )

    args = parser.parse_args()

    result = run_smoke(
        output=args.output,
        duration=args.duration,
        record_seconds=args.record,
        report_interval=args.report_interval,
    )

    sys.exit(0 if result["outcomes"].get("buffer") == "animation" else 1)


if __name__ == "__main__":
    main()
