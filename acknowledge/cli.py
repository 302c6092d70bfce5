"""
acknowledge/cli.py — Command-line interface.

Analyses the dependencies of a Cargo project and writes an
ACKNOWLEDGEMENTS.md listing the (major) contributors of those dependencies.

Usage:
    acknowledge run -p path/to/crate
    acknowledge run -p . --format name-and-deps --threshold 5
    acknowledge clear-cache

The GitHub token is taken from --token, then GITHUB_TOKEN (a .env file in the
working directory or any parent is loaded first), then the cached token
stored by a previous ``run --remember-token``.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
import time
from pathlib import Path

from jinja2 import TemplateError

from acknowledge.config import DEFAULT_CONFIG, AcknowledgeConfig
from acknowledge.exceptions import AcknowledgeError

logger = logging.getLogger("acknowledge.cli")


# ── .env loader (stdlib only, no python-dotenv) ───────────────────────────────

def _find_env_file(start: Path) -> Path | None:
    """Nearest ``.env`` in ``start`` or one of its parents."""
    for directory in (start, *start.parents):
        candidate = directory / ".env"
        if candidate.is_file():
            return candidate
    return None


def _parse_env_line(line: str) -> tuple[str, str] | None:
    """Split one ``[export ]KEY=value`` line; None for blanks and comments.

    Quoted values are taken verbatim. Unquoted values stop at `` #``.
    """
    line = line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if not line or line.startswith("#") or "=" not in line:
        return None
    key, _, value = line.partition("=")
    key, value = key.strip(), value.strip()
    if not key:
        return None
    if value[:1] in ('"', "'") and value.count(value[0]) >= 2:
        value = value[1:value.index(value[0], 1)]
    elif " #" in value:
        value = value.split(" #", 1)[0].rstrip()
    return key, value


def _load_dotenv(env_file: str | None = None) -> dict[str, str]:
    """Export the GITHUB_TOKEN (and friends) from a .env file.

    Variables already set in the environment win. Returns only the
    variables this call added.
    """
    path = Path(env_file) if env_file else _find_env_file(Path.cwd())
    if path is None or not path.is_file():
        return {}

    added: dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        pair = _parse_env_line(line)
        if pair is None or pair[0] in os.environ:
            continue
        os.environ[pair[0]] = added[pair[0]] = pair[1]
    logger.debug("loaded %d variable(s) from %s", len(added), path)
    return added


# ── Logging setup ─────────────────────────────────────────────────────────────

def _setup_logging(level: str = "INFO") -> None:
    """Configure the root logger with timestamps, to stderr."""
    numeric = getattr(logging, level.upper(), logging.INFO)
    fmt = "%(asctime)s  %(levelname)-8s  %(name)s — %(message)s"
    datefmt = "%H:%M:%S"
    logging.basicConfig(level=numeric, format=fmt, datefmt=datefmt, stream=sys.stderr)
    logging.getLogger("urllib.request").setLevel(logging.WARNING)


# ── Subcommand: run ──────────────────────────────────────────────────────────

def cmd_run(args: argparse.Namespace) -> int:
    """Manifest → contributors → ACKNOWLEDGEMENTS.md."""
    _load_dotenv(args.env_file)
    _setup_logging(args.log_level)

    from acknowledge.pipeline import run_full_pipeline
    from acknowledge.storage.cache import DiskCache

    config = AcknowledgeConfig(keep_going=args.keep_going)
    cache = DiskCache(config=config)

    token = args.token or os.environ.get("GITHUB_TOKEN")
    if args.token and args.remember_token:
        cache.write(config.token_cache_key, args.token)
        logger.info("GitHub token stored in cache")

    logger.info("=" * 60)
    logger.info("acknowledge — %s", args.path)
    logger.info("  Format       : %s", args.format)
    logger.info("  Breadth      : %s", args.breadth)
    logger.info("  Threshold    : %d", args.threshold)
    logger.info("  Extra sources: %d", len(args.sources))
    logger.info("=" * 60)

    t0 = time.monotonic()
    try:
        result = run_full_pipeline(
            Path(args.path),
            breadth=args.breadth,
            threshold=args.threshold,
            report_format=args.format,
            sources=args.sources,
            token=token,
            mention=args.mention,
            template_path=Path(args.template) if args.template else None,
            output_path=Path(args.output) if args.output else None,
            cache=cache,
            config=config,
        )
    except (AcknowledgeError, TemplateError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    elapsed = time.monotonic() - t0

    ingestion = result.ingestion
    print()
    print("=" * 60)
    print("  ACKNOWLEDGE — DONE")
    print("=" * 60)
    print(f"  Elapsed            : {elapsed:.1f}s")
    print(f"  Dependencies       : {result.dependencies}")
    print(f"  crates.io resolved : {len(ingestion.registry_resolved)}")
    print(f"  github.com sources : {len(ingestion.github_sources)}")
    print(f"  other sources      : {len(ingestion.generic_sources)}")
    print(f"  unsupported        : {len(ingestion.unsupported)}")
    print(f"  Entries            : {len(result.report.thank)}")
    print(f"  Others             : {result.report.others}")
    print(f"  Output             : {result.output_path}")
    print("=" * 60)
    return 0


# ── Subcommand: clear-cache ──────────────────────────────────────────────────

def cmd_clear_cache(args: argparse.Namespace) -> int:
    """Remove every cached response (and the cached token)."""
    _setup_logging(args.log_level)

    from acknowledge.pipeline import clear_cache

    try:
        clear_cache(config=DEFAULT_CONFIG)
    except OSError as exc:
        print(f"Error: could not clear cache: {exc}", file=sys.stderr)
        return 1
    print("Cache cleared.")
    return 0


# ── Argument parser ───────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    from acknowledge.graph.builder import BREADTHS, NON_OPT
    from acknowledge.metrics.thanks import NAME_AND_COUNT, REPORT_FORMATS

    parser = argparse.ArgumentParser(
        prog="acknowledge",
        description=(
            "Analyse the dependencies of a Cargo project and produce an\n"
            "ACKNOWLEDGEMENTS.md listing the (major) contributors of those dependencies."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Acknowledge contributors of non-optional dependencies
  acknowledge run -p path/to/crate

  # One section per dependency, contributors with at least 5 contributions
  acknowledge run -p . --format dep-and-names --threshold 5

  # Include dev/build dependencies and an extra repository
  acknowledge run -p . --breadth build-and-dev -s https://github.com/rust-lang/cargo

  # Forget every cached API response
  acknowledge clear-cache
        """,
    )

    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    p_run = subparsers.add_parser("run", help="Generate ACKNOWLEDGEMENTS.md")
    p_run.add_argument(
        "-p", "--path", required=True, metavar="PATH",
        help="Cargo project directory or Cargo.toml to analyse",
    )
    p_run.add_argument(
        "-t", "--token", default=None, metavar="GITHUB_TOKEN",
        help="GitHub personal access token; projects of any reasonable size hit "
             "the anonymous rate limit (60 req/hr) without one",
    )
    p_run.add_argument(
        "--remember-token", action="store_true",
        help="Store --token in the cache for later runs",
    )
    p_run.add_argument(
        "--env-file", default=None, metavar="PATH",
        help="Path to .env file (default: search upwards from the working directory)",
    )
    p_run.add_argument(
        "-o", "--output", default=None, metavar="PATH",
        help="Output file (default: <project>/ACKNOWLEDGEMENTS.md)",
    )
    p_run.add_argument(
        "-m", "--mention", action="store_true",
        help="Prefix GitHub logins with '@'",
    )
    p_run.add_argument(
        "-f", "--format", default=NAME_AND_COUNT, choices=REPORT_FORMATS,
        help=f"Report layout (default: {NAME_AND_COUNT})",
    )
    p_run.add_argument(
        "-b", "--breadth", default=NON_OPT, choices=BREADTHS,
        help="Which dependencies to include: non-optional only, all, or also "
             f"build and dev dependencies (default: {NON_OPT})",
    )
    p_run.add_argument(
        "-c", "--threshold", type=int, default=DEFAULT_CONFIG.contributions_threshold,
        metavar="N",
        help="Minimum contributions to be listed; sole contributors are always "
             f"listed (default: {DEFAULT_CONFIG.contributions_threshold})",
    )
    p_run.add_argument(
        "-s", "--sources", nargs="*", default=[], metavar="URL",
        help="Additional repository URLs not declared in Cargo.toml",
    )
    p_run.add_argument(
        "--template", default=None, metavar="PATH",
        help="Custom Jinja2 template replacing the bundled one",
    )
    p_run.add_argument(
        "--keep-going", action="store_true",
        help="Skip sources whose host calls fail instead of aborting the run",
    )
    p_run.set_defaults(func=cmd_run)

    p_clear = subparsers.add_parser("clear-cache", help="Delete all cached API responses")
    p_clear.set_defaults(func=cmd_clear_cache)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
