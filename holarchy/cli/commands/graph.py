"""Holon graph commands for the holarchy CLI."""

import json
from typing import TYPE_CHECKING

from holarchy.types import LinkType, TrustContext

if TYPE_CHECKING:
    from holarchy import Holarchy
    from holarchy.types import Holon


def _trust_bar(value: float) -> str:
    """Ten-cell bar for a score in [-1, 1]."""
    pct = int(((value + 1) / 2) * 100)
    return "█" * (pct // 10) + "░" * (10 - pct // 10)


def _resolve(graph: "Holarchy", ref: str) -> "Holon":
    holon = graph.find(ref)
    if holon is None:
        raise ValueError(f"No holon matches: {ref}")
    return holon


def cmd_holon(args, graph: "Holarchy"):
    """Manage holons."""
    action = getattr(args, "holon_action", None) or "list"

    if action == "add":
        parent_id = _resolve(graph, args.parent).id if args.parent else None
        holon = graph.create_holon(args.name, parent_id=parent_id)
        print(f"✓ Holon added: {holon.name} ({holon.id[:8]})")
        if parent_id:
            link = graph.links_from(parent_id)[-1]
            print(f"  Linked under parent as {link.type.value}")

    elif action == "list":
        holons = graph.holons
        if args.json:
            print(json.dumps([h.to_dict() for h in holons], indent=2))
            return
        if not holons:
            print("No holons yet. Add one with `holarchy holon add NAME`.")
            return
        print(f"Holons ({len(holons)}):")
        for h in sorted(holons, key=lambda x: x.created_at):
            rep = graph.effective_reputation(h.id)
            pin = " \U0001f4cc" if h.pinned else ""
            print(f"  {h.name}{pin} - {h.id[:8]}")
            print(f"    Trust: [{_trust_bar(rep)}] {rep:+.2f}  conf {h.trust.confidence:.2f}")

    elif action == "show":
        h = _resolve(graph, args.holon)
        rep = graph.effective_reputation(h.id)
        if args.json:
            data = h.to_dict()
            data["effective_reputation"] = rep
            print(json.dumps(data, indent=2))
            return
        print(f"Holon: {h.name}")
        print(f"  id:          {h.id}")
        print(f"  created:     {h.created_at}")
        print(f"  reputation:  {h.trust.reputation:+.4f} (effective {rep:+.4f})")
        print(f"  confidence:  {h.trust.confidence:.2f}")
        dominant = graph.dominant_link_type(h.id)
        if dominant:
            print(f"  dominant:    {dominant.value}")
        if h.trust.sources:
            print("  sources:")
            for source_id, total in sorted(h.trust.sources.items()):
                source = graph.get(source_id)
                label = source.name if source else source_id[:8]
                print(f"    {label}: {total:+.2f}")
        notes = graph.notes_for(h.id)
        if notes:
            print("  notes:")
            for n in notes:
                print(f"    - {n.text}")

    elif action == "remove":
        h = _resolve(graph, args.holon)
        graph.remove_holon(h.id)
        print(f"✓ Removed {h.name}")

    elif action == "pin":
        h = _resolve(graph, args.holon)
        pinned = graph.toggle_pin(h.id)
        print(f"{'Pinned' if pinned else 'Unpinned'} {h.name}")


def cmd_note(args, graph: "Holarchy"):
    """Attach a note to a holon."""
    h = _resolve(graph, args.holon)
    graph.add_note(h.id, args.text)
    print(f"✓ Note added to {h.name}")


def cmd_link(args, graph: "Holarchy"):
    """Link two holons."""
    source = _resolve(graph, args.source)
    target = _resolve(graph, args.target)
    link_type = LinkType(args.type) if args.type else None
    link = graph.link(source.id, target.id, link_type=link_type, label=args.label)
    print(f"✓ {source.name} -[{link.type.value}]-> {target.name}")


def cmd_relate(args, graph: "Holarchy"):
    """Auto-relate every unlinked pair."""
    new_links = graph.auto_relate()
    if new_links:
        print(f"Created {len(new_links)} links")
    else:
        print("No new links")


def cmd_trust(args, graph: "Holarchy"):
    """Record a trust event between two holons."""
    source = _resolve(graph, args.source)
    target = _resolve(graph, args.target)
    graph.record_trust(
        source.id,
        target.id,
        args.delta,
        context=TrustContext(args.context),
        reason=args.reason,
    )
    sig = graph.get(target.id).trust
    print(f"✓ {source.name} -> {target.name}: {args.delta:+.2f}")
    print(f"  {target.name} reputation {sig.reputation:+.4f}, confidence {sig.confidence:.2f}")
