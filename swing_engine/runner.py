"""
Engine Runner - Command-Line Entrypoint
Runs the swing setup analysis on a candle file and prints the result as JSON.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

import pandas as pd

from swing_engine.config import LOG_DIR, LOGGING_CONFIG
from swing_engine.pipeline import analyze_stock

logger = logging.getLogger(__name__)


# ============================================================================
# LOGGING SETUP
# ============================================================================

def setup_logging(level: Optional[str] = None) -> None:
    """Configure the root logger: log file plus stderr."""
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logging.basicConfig(
        level=getattr(logging, (level or LOGGING_CONFIG["level"]).upper()),
        format=LOGGING_CONFIG["format"],
        handlers=[
            logging.FileHandler(LOGGING_CONFIG["log_file"]),
            logging.StreamHandler(sys.stderr),
        ],
        force=True,
    )


# ============================================================================
# INPUT LOADING
# ============================================================================

def load_candles(path: Path) -> Any:
    """
    Read candles from a JSON or CSV file.

    JSON may be a bare list of candles or an object with a "candles" key.
    CSV needs a header row naming timestamp/open/high/low/close/volume.
    """
    if path.suffix.lower() == ".csv":
        return pd.read_csv(path)

    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        data = data.get("candles", [])
    return data


# ============================================================================
# MAIN EXECUTION
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swing-engine",
        description="Swing Trade Setup Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Analyze a daily candle file
  swing-engine analyze RELIANCE.json

  # Pullback rubric with a benchmark regime check
  swing-engine analyze TCS.csv --scan-type pullback --benchmark NIFTY.json
""",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze = subparsers.add_parser("analyze", help="Analyze one candle file")
    analyze.add_argument("file", type=Path, help="Candle file (.json or .csv)")
    analyze.add_argument(
        "--scan-type",
        type=str,
        default=None,
        help="Scan classification (breakout, pullback, momentum, consolidation_breakout)",
    )
    analyze.add_argument(
        "--benchmark",
        type=Path,
        default=None,
        metavar="FILE",
        help="Benchmark candle file for the market regime check",
    )
    analyze.add_argument(
        "--benchmark-return",
        type=float,
        default=0.0,
        metavar="PCT",
        help="Benchmark 1-month return in percent for relative strength",
    )
    analyze.add_argument(
        "--weekly-rsi",
        type=float,
        default=None,
        help="Weekly RSI for the elimination gate",
    )
    analyze.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override the configured log level",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Main execution function."""
    args = build_parser().parse_args(argv)

    setup_logging(args.log_level)

    try:
        candles = load_candles(args.file)
        benchmark = load_candles(args.benchmark) if args.benchmark else None
    except (OSError, ValueError) as e:
        logger.error(f"❌ Could not read input: {e}")
        sys.exit(1)

    logger.info("=" * 70)
    logger.info(f"ANALYZING {args.file.name}")
    logger.info("=" * 70)

    try:
        result = analyze_stock(
            candles,
            scan_type=args.scan_type,
            benchmark_return_1m=args.benchmark_return,
            benchmark_candles=benchmark,
            weekly_rsi=args.weekly_rsi,
        )
    except KeyboardInterrupt:
        logger.warning("⚠️  Interrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.exception(f"❌ Fatal error: {e}")
        sys.exit(1)

    print(json.dumps(result, indent=2, default=str))

    if result.get("error"):
        logger.error(f"Analysis failed: {result['error']}")
        sys.exit(2)

    sys.exit(0)


if __name__ == "__main__":
    main()
