"""
=============================================================================
PAGEJAR CLI ENTRY POINT
=============================================================================

    pagejar serve talk.zip                 # random free port
    pagejar serve talk.zip 8080 -b         # fixed port, open the browser
    pagejar serve ./site --root docs -vv   # directory, wire trace on stderr

    pagejar extract talk.zip ./talk        # unpack the presentation
    pagejar extract talk.zip ./talk -f     # ... replacing existing files

Also runnable as `python -m pagejar`.

Exit status: 0 on success, 1 on errors, 2 on usage errors (argparse).

=============================================================================
"""

import argparse
import logging
import sys
import webbrowser
from typing import List, Optional

from . import __version__
from .access_log import LOG_FORMATS
from .config import ServerConfig
from .extract import PRESENTATION_DIR, ExtractError, extract_archive
from .resources.store import ResourceStore, ZipResourceStore, open_store
from .server import HTTPServer

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pagejar",
        description="Serve a packaged static presentation over HTTP",
    )
    parser.add_argument("--version", action="version", version=f"pagejar {__version__}")
    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    # -------------------------------------------------------------------------
    # serve
    # -------------------------------------------------------------------------
    serve = commands.add_parser("serve", help="serve a directory or archive")
    serve.add_argument("source", help="directory, or zip/jar archive to serve")
    serve.add_argument(
        "port",
        nargs="?",
        type=int,
        default=None,
        help="port to listen on (default: random free port)",
    )
    serve.add_argument("--host", "-H", default=None, help="address to bind to (default: 127.0.0.1)")
    serve.add_argument(
        "--root",
        default=None,
        help=f"directory inside the source to serve (archives: '{PRESENTATION_DIR}' if present)",
    )
    serve.add_argument("--browser", "-b", action="store_true", help="open the default browser")
    serve.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="more logging: -v access log, -vv wire trace",
    )
    serve.add_argument("--log-format", choices=LOG_FORMATS, default=None, help="access log format")
    serve.set_defaults(func=run_serve)

    # -------------------------------------------------------------------------
    # extract
    # -------------------------------------------------------------------------
    extract = commands.add_parser("extract", help="extract a presentation from an archive")
    extract.add_argument("archive", help="zip/jar archive")
    extract.add_argument("target", help="directory to extract into")
    extract.add_argument(
        "--root",
        default=PRESENTATION_DIR,
        help=f"directory inside the archive to extract (default: {PRESENTATION_DIR})",
    )
    extract.add_argument("--force", "-f", action="store_true", help="overwrite existing files")
    extract.set_defaults(func=run_extract)

    return parser


def default_root(store: ResourceStore, requested: Optional[str], fallback: str = "") -> str:
    """
    Pick the directory to serve.

    An explicit --root wins. An archive with a presentation directory
    is served from there; anything else from its top level.
    """
    if requested is not None:
        return requested
    if isinstance(store, ZipResourceStore) and store.has_prefix(PRESENTATION_DIR):
        return PRESENTATION_DIR
    return fallback


def run_serve(args: argparse.Namespace) -> int:
    config = ServerConfig.from_env()
    if args.host is not None:
        config.host = args.host
    if args.port is not None:
        config.port = args.port
    if args.verbose:
        config.log_level = "INFO" if args.verbose == 1 else "DEBUG"
    if args.log_format is not None:
        config.log_format = args.log_format

    with open_store(args.source) as store:
        config.root_dir = default_root(store, args.root, config.root_dir)
        server = HTTPServer(store, config)
        server.setup_logging()

        print()
        if server.title:
            print(f"Presentation: {server.title}")
            print()
        print(f"Serving on {server.url}")
        print()
        print("Point your browser to that address to see the presentation.")
        print("Press Ctrl+C to stop.")
        print()

        if args.browser:
            webbrowser.open(server.url)

        server.serve(install_signal_handlers=True)

    return 0


def run_extract(args: argparse.Namespace) -> int:
    written = extract_archive(args.archive, args.target, root_dir=args.root, force=args.force)
    print(f"Extracted {len(written)} files to {args.target}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Parse arguments, run the command, return the exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        return args.func(args)
    except (ExtractError, OSError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
