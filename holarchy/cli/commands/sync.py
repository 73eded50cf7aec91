"""Sync commands for the holarchy CLI: queue page edits, push the outbox and pull changes."""

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from holarchy.outbox import SyncClient

logger = logging.getLogger(__name__)


def _print_result(result):
    status = "ok" if result["pushed"] else "push failed"
    pulled = "pull failed" if result["pulled"] is None else f"pulled {result['pulled']}"
    print(f"Sync {status}, {pulled}, {result['pending']} pending")
    if result["last_sync"]:
        print(f"Last sync: {result['last_sync']}")


def _edit_page(action, args, client: "SyncClient"):
    """Apply one local edit through the client; it is queued even when offline."""
    if action == "new":
        page = client.create_page(title=args.title, content=args.content)
        if page.get("id") is None:
            print(f"✓ Page queued offline: {page['title']}")
        else:
            print(f"✓ Page created: #{page['id']} {page['title']}")

    elif action == "edit":
        if args.title is None and args.content is None:
            raise ValueError("Nothing to change: pass --title and/or --content")
        page = client.update_page(args.page_id, title=args.title, content=args.content)
        if page is None:
            raise ValueError(f"No page #{args.page_id} on the server")
        print(f"✓ Page #{args.page_id} updated")

    elif action == "delete":
        if not client.delete_page(args.page_id):
            raise ValueError(f"No page #{args.page_id} on the server")
        print(f"✓ Page #{args.page_id} deleted")


def cmd_sync(args, client: "SyncClient"):
    """Edit pages through the outbox, run one sync round, or keep syncing with --watch."""
    action = getattr(args, "sync_action", None) or "now"

    if action == "status":
        print(f"Pending changes: {len(client.outbox)}")
        print(f"Last sync: {client.last_sync or 'never'}")
        return

    if action in ("new", "edit", "delete"):
        _edit_page(action, args, client)
        print(f"Pending changes: {len(client.outbox)}")
        return

    if not args.watch:
        _print_result(client.sync_once())
        return

    stop = threading.Event()
    print(f"Syncing every {args.interval:g}s, Ctrl-C to stop")
    try:
        client.run(interval=args.interval, stop_event=stop)
    except KeyboardInterrupt:
        stop.set()
        logger.info("Sync loop stopped")
