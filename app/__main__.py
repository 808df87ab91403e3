"""Entry point for the PriceLens chart application."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Iterable, Optional

try:
    from PyQt6 import QtWidgets
except ImportError as exc:  # pragma: no cover - executed only when PyQt6 missing
    raise SystemExit(
        "PyQt6 is required to launch the PriceLens UI. "
        "Install the project dependencies and try again."
    ) from exc

from app.ui.main_window import MainWindow
from core.config import load_config
from core.models import Timeframe


def _parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pricelens", description="Interactive asset price chart")
    parser.add_argument("asset", nargs="?", default="bitcoin", help="Asset identifier, e.g. bitcoin")
    parser.add_argument("--currency", default="USD", help="Quote currency code")
    parser.add_argument(
        "--timeframe",
        default=None,
        choices=[timeframe.label for timeframe in Timeframe],
        help="Initial chart window",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level (DEBUG, INFO, WARNING…)")
    return parser.parse_args(argv)


def main(argv: Optional[Iterable[str]] = None) -> int:
    """Launch the Qt application."""
    args = _parse_args(argv)
    logging.basicConfig(level=getattr(logging, str(args.log_level).upper(), logging.INFO))

    app = QtWidgets.QApplication(sys.argv[:1])
    timeframe = Timeframe.from_label(args.timeframe) if args.timeframe else None
    window = MainWindow(args.asset, args.currency, timeframe, config=load_config())
    window.show()
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
