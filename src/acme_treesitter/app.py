"""Command-line entry point for the acme-treesitter daemon."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import os
import signal
import sys
from typing import Sequence

from .daemon import Daemon, DaemonContext, build_context
from .errors import ConfigError
from .services.config import ConfigStore, DaemonConfig
from .utils import logging as logging_utils

_LOGGER = logging.getLogger(__name__)
_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_SHUTDOWN_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


def configure_logging(debug: bool = False, *, log_dir: str | None = None, force: bool = False) -> None:
    """Configure logging for the daemon."""

    level = logging.DEBUG if debug else logging.INFO
    log_path = logging_utils.setup_logging(level, log_dir=log_dir, force=force)
    _LOGGER.debug("Logging configured (level=%s, file=%s)", logging.getLevelName(level), log_path)


def load_config(path: str) -> DaemonConfig:
    """Load the configuration file; raises :class:`ConfigError` when unusable."""

    return ConfigStore(path).load()


async def serve(context: DaemonContext) -> None:
    """Run the daemon until SIGINT/SIGTERM, then let every session clean up."""

    daemon = Daemon(context)
    loop = asyncio.get_running_loop()
    main_task = asyncio.current_task()
    installed: list[signal.Signals] = []
    if main_task is not None:
        for sig in _SHUTDOWN_SIGNALS:
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.add_signal_handler(sig, main_task.cancel)
                installed.append(sig)
    try:
        await daemon.run()
    except asyncio.CancelledError:
        # daemon.run() has already cancelled and awaited every session.
        _LOGGER.info("Shutdown complete.")
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point invoked by the ``acme-treesitter`` console script."""

    args = _parse_cli_args(argv)
    debug = args.verbose or _env_flag("ACME_TREESITTER_DEBUG")
    configure_logging(debug)

    try:
        config = load_config(args.config)
        if config.debug or config.log_dir:
            debug = debug or config.debug
            configure_logging(debug, log_dir=config.log_dir, force=True)
        context = build_context(config)
    except ConfigError as exc:
        print(f"acme-treesitter: {exc}", file=sys.stderr)
        return 1

    _LOGGER.info(
        "Starting with %d filename handlers, %d styles, languages: %s",
        len(config.filename_handlers),
        len(context.styles),
        _describe_languages(context),
    )
    asyncio.run(serve(context))
    return 0


def _describe_languages(context: DaemonContext) -> str:
    from .highlight.annotations import TreeSitterAnnotationSource, registry_summary

    annotations = context.annotations
    if not isinstance(annotations, TreeSitterAnnotationSource):
        return "(external)"
    summary = registry_summary(annotations.registry)
    if not summary:
        return "(none)"
    return ", ".join(name if has_query else f"{name} (no query)" for name, has_query in summary.items())


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="acme-treesitter",
        description="Syntax highlighting for acme windows via tree-sitter and acme-styles.",
    )
    parser.add_argument(
        "--config",
        metavar="PATH",
        required=True,
        help="Path to config.yaml (filename handlers, styles, timings).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return parser.parse_args(argv)


if __name__ == "__main__":  # pragma: no cover - manual invocation
    sys.exit(main())
