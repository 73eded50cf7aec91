"""Local page store commands for the holarchy CLI."""

import json
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from holarchy.sync import SyncReconciler


def cmd_pages(args, reconciler: "SyncReconciler"):
    """List, export or import pages in the local store."""
    action = getattr(args, "pages_action", None) or "list"
    store = reconciler.store

    if action == "list":
        pages = store.list_pages()
        if args.json:
            print(json.dumps([p.summary() for p in pages], indent=2))
            return
        if not pages:
            print("No pages.")
            return
        for p in pages:
            print(f"  #{p.id} {p.title}  (rev {p.rev}, updated {p.updated_at})")

    elif action == "export":
        data = reconciler.export()
        text = json.dumps(data, indent=2)
        if args.output:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(text)
            print(f"✓ Exported {len(data['rows'])} rows to {args.output}")
        else:
            print(text)

    elif action == "import":
        if args.file == "-":
            data = json.load(sys.stdin)
        else:
            with open(args.file, encoding="utf-8") as f:
                data = json.load(f)
        rows = data if isinstance(data, list) else data.get("rows", [])
        count = reconciler.import_rows(rows, replace=args.replace)
        print(f"✓ Imported {count} rows{' (replaced existing)' if args.replace else ''}")
