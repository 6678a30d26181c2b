"""elevator.cli
=============

Command-line interface for the *elevator* pipeline.

Example::

    $ python -m elevator.cli prompt.md -o prompt_elevated.md --json

If *prompt.md* is omitted elevator reads text from **STDIN** and writes the
elevated result to **STDOUT**.
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict

import tomlkit

from .config import ElevatorConfig
from .core import elevate_text
from .model_client import ELEVATION_PROMPTS, get_elevation_prompt

__all__ = ["main", "run"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _load_config_from_toml(path: Path) -> ElevatorConfig:
    """Return an :class:`ElevatorConfig` initialised from *path* (TOML)."""
    cfg = ElevatorConfig()
    toml_data = tomlkit.parse(path.read_text(encoding="utf-8")).unwrap()

    # Only apply keys that actually exist on ElevatorConfig.
    valid_fields = {f.name for f in fields(cfg)}
    for key, val in toml_data.items():
        if key in valid_fields:
            setattr(cfg, key, val)
    return cfg


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.WARNING),
        stream=sys.stderr,
        format="%(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# Async entry-point
# ---------------------------------------------------------------------------

async def main(argv: list[str] | None = None) -> None:  # noqa: D401 – imperative mood
    """Parse *argv* and run the elevation pipeline.

    When *argv* is **None** ``sys.argv[1:]`` is used.
    """
    parser = argparse.ArgumentParser(
        prog="elevator",
        description="Elevate prose while preserving code spans and quotes' layout",
    )

    parser.add_argument(
        "input",
        nargs="?",
        help="Path to input text file. Reads from STDIN when omitted.",
    )
    parser.add_argument(
        "-o",
        "--output",
        help="Path for elevated text. Writes to STDOUT when omitted.",
    )
    parser.add_argument(
        "--config",
        metavar="TOML",
        help="Path to configuration TOML. Uses built-in defaults when omitted.",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Emit ElevationReport as JSON to STDERR.",
    )
    parser.add_argument(
        "--strategy",
        choices=sorted(ELEVATION_PROMPTS),
        help="Elevation style. Overrides the config file.",
    )
    parser.add_argument(
        "--no-quotes",
        action="store_true",
        help="Leave block quotes untouched.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log debug output to STDERR.",
    )

    args = parser.parse_args(argv)

    # ------------------------------------------------------------------
    # Read input text ----------------------------------------------------
    # ------------------------------------------------------------------
    try:
        if args.input:
            raw_text = Path(args.input).read_text(encoding="utf-8")
        else:
            raw_text = sys.stdin.read()
    except FileNotFoundError:
        print(f"elevator: input file not found: {args.input}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        print(f"elevator: error reading input – {exc}", file=sys.stderr)
        sys.exit(1)

    # ------------------------------------------------------------------
    # Load configuration -------------------------------------------------
    # ------------------------------------------------------------------
    try:
        if args.config:
            cfg = _load_config_from_toml(Path(args.config))
        else:
            cfg = ElevatorConfig()
        if args.strategy:
            cfg.strategy = args.strategy
        if args.no_quotes:
            cfg.elevate_quotes = False
        get_elevation_prompt(cfg.strategy)
    except Exception as exc:
        print(f"elevator: failed to load config – {exc}", file=sys.stderr)
        sys.exit(1)

    _configure_logging("DEBUG" if args.verbose else cfg.log_level)

    # ------------------------------------------------------------------
    # Run elevation ------------------------------------------------------
    # ------------------------------------------------------------------
    try:
        elevated, report = await elevate_text(raw_text, cfg)
    except Exception as exc:  # pragma: no cover – surface unexpected issues
        print(f"elevator: processing error – {exc}", file=sys.stderr)
        sys.exit(1)

    # ------------------------------------------------------------------
    # Write outputs ------------------------------------------------------
    # ------------------------------------------------------------------
    try:
        if args.output:
            Path(args.output).write_text(elevated, encoding="utf-8")
        else:
            print(elevated, end="")
    except Exception as exc:
        print(f"elevator: cannot write output – {exc}", file=sys.stderr)
        sys.exit(1)

    # ------------------------------------------------------------------
    # Optional JSON report ----------------------------------------------
    # ------------------------------------------------------------------
    if args.json:
        try:
            json_report: Dict[str, Any] = asdict(report)  # type: ignore[arg-type]
            print(json.dumps(json_report, indent=2), file=sys.stderr)
        except Exception as exc:
            print(f"elevator: failed to serialise report – {exc}", file=sys.stderr)


def run() -> None:
    """Console-script entry-point."""
    asyncio.run(main())


# ---------------------------------------------------------------------------
# Module entry-point
# ---------------------------------------------------------------------------

if __name__ == "__main__":  # pragma: no cover – manual invocation only
    run()
