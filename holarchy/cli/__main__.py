"""
Holarchy CLI - holon graph, trust ledger and page sync from the terminal.

Usage:
    holarchy holon add NAME [--parent HOLON]
    holarchy holon list [--json]
    holarchy holon show HOLON [--json]
    holarchy link SOURCE TARGET [--type TYPE] [--label LABEL]
    holarchy relate
    holarchy trust SOURCE TARGET DELTA [--context CTX] [--reason R]
    holarchy pages list|export|import
    holarchy sync [--watch] [--interval SECONDS]
    holarchy sync new|edit|delete|status
    holarchy serve [--host HOST] [--port PORT]
"""

import argparse
import logging
import sys
from pathlib import Path

from holarchy import Holarchy
from holarchy.cli.commands import (
    cmd_holon,
    cmd_link,
    cmd_note,
    cmd_pages,
    cmd_relate,
    cmd_sync,
    cmd_trust,
)
from holarchy.storage import BACKENDS, StorageError, open_page_store
from holarchy.sync import SyncReconciler
from holarchy.types import LinkType, TrustContext
from holarchy.utils import get_backend_url, get_holarchy_home

# Set up logging
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

GRAPH_COMMANDS = {
    "holon": cmd_holon,
    "note": cmd_note,
    "link": cmd_link,
    "relate": cmd_relate,
    "trust": cmd_trust,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="holarchy",
        description="Holon graph with trust signatures, and offline-first page sync",
    )
    parser.add_argument("--home", help="Data directory (default: $HOLARCHY_HOME or ~/.holarchy)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log at INFO level")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # holon
    p_holon = subparsers.add_parser("holon", help="Manage holons")
    holon_sub = p_holon.add_subparsers(dest="holon_action")
    holon_add = holon_sub.add_parser("add", help="Add a holon")
    holon_add.add_argument("name")
    holon_add.add_argument("--parent", help="Link the new holon under this holon")
    holon_list = holon_sub.add_parser("list", help="List holons")
    holon_list.add_argument("--json", action="store_true")
    holon_show = holon_sub.add_parser("show", help="Show one holon")
    holon_show.add_argument("holon", help="Holon id, id prefix or name")
    holon_show.add_argument("--json", action="store_true")
    holon_remove = holon_sub.add_parser("remove", help="Remove a holon and its links")
    holon_remove.add_argument("holon")
    holon_pin = holon_sub.add_parser("pin", help="Toggle the pinned flag")
    holon_pin.add_argument("holon")
    p_holon.set_defaults(json=False)

    # note
    p_note = subparsers.add_parser("note", help="Attach a note to a holon")
    p_note.add_argument("holon")
    p_note.add_argument("text")

    # link
    p_link = subparsers.add_parser("link", help="Link two holons")
    p_link.add_argument("source")
    p_link.add_argument("target")
    p_link.add_argument("--type", choices=[t.value for t in LinkType], help="Skip inference")
    p_link.add_argument("--label")

    # relate
    subparsers.add_parser("relate", help="Link every unlinked pair by inferred type")

    # trust
    p_trust = subparsers.add_parser("trust", help="Record a trust event")
    p_trust.add_argument("source")
    p_trust.add_argument("target")
    p_trust.add_argument("delta", type=float)
    p_trust.add_argument(
        "--context",
        choices=[c.value for c in TrustContext],
        default=TrustContext.DISCUSSION.value,
    )
    p_trust.add_argument("--reason")

    # pages
    p_pages = subparsers.add_parser("pages", help="Local page store")
    p_pages.add_argument("--backend", choices=BACKENDS, default="auto")
    pages_sub = p_pages.add_subparsers(dest="pages_action")
    pages_list = pages_sub.add_parser("list", help="List pages")
    pages_list.add_argument("--json", action="store_true")
    pages_export = pages_sub.add_parser("export", help="Export every row")
    pages_export.add_argument("--output", "-o")
    pages_import = pages_sub.add_parser("import", help="Import rows (overwrites)")
    pages_import.add_argument("file", help="JSON file, or - for stdin")
    pages_import.add_argument("--replace", action="store_true", help="Clear the store first")
    p_pages.set_defaults(json=False)

    # sync
    p_sync = subparsers.add_parser("sync", help="Push the outbox and pull changes")
    p_sync.add_argument("--url", help="Server URL (default: $HOLARCHY_BACKEND_URL)")
    p_sync.add_argument("--watch", action="store_true", help="Keep syncing periodically")
    p_sync.add_argument("--interval", type=float, default=10.0)
    sync_sub = p_sync.add_subparsers(dest="sync_action")
    sync_sub.add_parser("now", help="One sync round (default)")
    sync_sub.add_parser("status", help="Show pending changes and last sync")
    sync_new = sync_sub.add_parser("new", help="Create a page on the server and queue it")
    sync_new.add_argument("--title", default="New Page")
    sync_new.add_argument("--content", default="")
    sync_edit = sync_sub.add_parser("edit", help="Edit a page and queue the change")
    sync_edit.add_argument("page_id", type=int)
    sync_edit.add_argument("--title")
    sync_edit.add_argument("--content")
    sync_delete = sync_sub.add_parser("delete", help="Delete a page and queue the tombstone")
    sync_delete.add_argument("page_id", type=int)

    # serve
    p_serve = subparsers.add_parser("serve", help="Run the pages API server")
    p_serve.add_argument("--host", default="127.0.0.1")
    p_serve.add_argument("--port", type=int, default=3000)
    p_serve.add_argument("--reload", action="store_true")

    return parser


def cmd_serve(args):
    """Run the FastAPI service under uvicorn."""
    import uvicorn

    uvicorn.run("app.main:app", host=args.host, port=args.port, reload=args.reload)


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    home = Path(args.home) if args.home else get_holarchy_home()

    try:
        if args.command in GRAPH_COMMANDS:
            graph_path = home / "graph.json"
            fresh = not graph_path.exists()
            graph = Holarchy.load(graph_path)
            if fresh:
                graph.seed()
            GRAPH_COMMANDS[args.command](args, graph)
            graph.save(graph_path)
        elif args.command == "pages":
            store = open_page_store(home / "pages", backend=args.backend)
            cmd_pages(args, SyncReconciler(store))
        elif args.command == "sync":
            from holarchy.outbox import Outbox, SyncClient

            with SyncClient(
                args.url or get_backend_url(),
                Outbox(home / "outbox.json"),
                home / "sync_state.json",
            ) as client:
                cmd_sync(args, client)
        elif args.command == "serve":
            cmd_serve(args)
    except (ValueError, TypeError) as e:
        logger.error(f"Input validation error: {e}")
        sys.exit(1)
    except StorageError as e:
        logger.error(f"Storage failure: {e}")
        sys.exit(1)
    except OSError as e:
        logger.error(f"File error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
