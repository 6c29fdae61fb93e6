"""
Import a JSON export of the document collections into the database.

The export is an object with optional "events", "players", "roles" and
"categories" keys. Each collection is either a list of documents with an "id"
field or an object mapping document id to document. Field names may be the
camelCase used by the old document store (currentIgn, pastIgns, ...).

Usage:
    python migrate_json_to_db.py path/to/export.json
"""
import json
import os
import sys

# Add the project to path
project_dir = os.path.dirname(os.path.abspath(__file__))
sys.path.insert(0, project_dir)

from tnt_history import create_app
from tnt_history.extensions import db
from tnt_history.models import Category, Event, Player, Role
from tnt_history.store import get_event_store
from tnt_history.utils import is_uuid, normalize_uuid, parse_event_date


def iter_documents(collection):
    """Yield (id, document) pairs from a list or an id -> document mapping."""
    if isinstance(collection, dict):
        for doc_id, doc in collection.items():
            yield str(doc_id), doc
    else:
        for doc in collection or []:
            if isinstance(doc, dict) and doc.get("id"):
                yield str(doc["id"]), doc


def pick(doc, *names, default=None):
    for name in names:
        if name in doc and doc[name] is not None:
            return doc[name]
    return default


def import_export(data):
    """
    Insert every document that is not in the database yet.

    Must run inside an app context. Existing rows (same id) are skipped.
    Events keep their original date text even when it does not parse; the
    timeline leaves those out.

    Returns:
        dict of collection name -> (created, skipped)
    """
    counts = {}

    created = skipped = 0
    for doc_id, doc in iter_documents(data.get("categories")):
        if db.session.get(Category, doc_id):
            skipped += 1
            continue
        db.session.add(Category(id=doc_id, name=pick(doc, "name", default=doc_id),
                                color=str(pick(doc, "color", default="888888")).lstrip("#")))
        created += 1
    counts["categories"] = (created, skipped)

    created = skipped = 0
    for doc_id, doc in iter_documents(data.get("roles")):
        if db.session.get(Role, doc_id):
            skipped += 1
            continue
        db.session.add(Role(id=doc_id, tag=pick(doc, "tag", default=doc_id),
                            color=str(pick(doc, "color", default="AAAAAA")).lstrip("#")))
        created += 1
    counts["roles"] = (created, skipped)

    created = skipped = 0
    for doc_id, doc in iter_documents(data.get("players")):
        uuid = pick(doc, "uuid", default="")
        if db.session.get(Player, doc_id) or not is_uuid(uuid):
            print(f"  Skipping player {doc_id}")
            skipped += 1
            continue
        uuid = normalize_uuid(uuid)
        if Player.query.filter_by(uuid=uuid).first():
            skipped += 1
            continue
        player = Player(
            id=doc_id,
            uuid=uuid,
            current_ign=pick(doc, "current_ign", "currentIgn", default=""),
            role=pick(doc, "role"),
            main_account=pick(doc, "main_account", "mainAccount"),
        )
        player.past_igns = pick(doc, "past_igns", "pastIgns", default=[])
        player.events = pick(doc, "events", default=[])
        player.alt_accounts = pick(doc, "alt_accounts", "altAccounts", default=[])
        db.session.add(player)
        created += 1
    counts["players"] = (created, skipped)

    created = skipped = 0
    for doc_id, doc in iter_documents(data.get("events")):
        if db.session.get(Event, doc_id):
            skipped += 1
            continue
        raw_date = pick(doc, "date", default="")
        d_obj = parse_event_date(raw_date)
        if d_obj is None:
            print(f"  Event {doc_id} has an unusable date: {raw_date!r}")
        column = pick(doc, "column")
        event = Event(
            id=doc_id,
            title=pick(doc, "title", default="Untitled"),
            date=d_obj.isoformat() if d_obj else str(raw_date),
            category=pick(doc, "category"),
            column=column if isinstance(column, int) and column >= 0 else None,
            description=pick(doc, "description"),
        )
        event.players = pick(doc, "players", default=[])
        event.sources = pick(doc, "sources", default=[])
        db.session.add(event)
        created += 1
    counts["events"] = (created, skipped)

    db.session.commit()
    get_event_store().refresh()
    return counts


def main():
    if len(sys.argv) < 2:
        print("Usage: python migrate_json_to_db.py path/to/export.json")
        sys.exit(1)

    json_path = sys.argv[1]
    if not os.path.exists(json_path):
        print(f"Error: File not found: {json_path}")
        sys.exit(1)

    print(f"Importing data from: {json_path}")
    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    app = create_app(os.environ.get("TNT_CONFIG", "config.Config"))
    with app.app_context():
        counts = import_export(data)

    print("\n=== Import Complete ===")
    for name, (created, skipped) in counts.items():
        print(f"{name}: {created} created, {skipped} skipped")


if __name__ == "__main__":
    main()
