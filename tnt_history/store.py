"""
Event store adapter.

Wraps the `events` table and exposes it the way the timeline consumes it:
an immutable, date-sorted snapshot that is replaced as a whole after every
write. Subscribers are pushed each new snapshot; they never see a partial
update.
"""
import datetime
import logging
import threading
from dataclasses import dataclass, field

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from .errors import EventNotFound, StoreError, ValidationError
from .extensions import db
from .models import Category, Event
from .utils import clean_list, parse_event_date

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("title", "date", "category", "description", "players", "sources", "column")


@dataclass(frozen=True)
class EventRecord:
    """Read-only view of one event as it appears in a snapshot."""
    id: str
    title: str
    date: str
    category: str = None
    column: int = None
    description: str = None
    players: tuple = field(default_factory=tuple)
    sources: tuple = field(default_factory=tuple)

    @property
    def parsed_date(self):
        return parse_event_date(self.date)

    @classmethod
    def from_model(cls, event: Event) -> "EventRecord":
        return cls(
            id=event.id,
            title=event.title,
            date=event.date,
            category=event.category,
            column=event.column,
            description=event.description,
            players=tuple(event.players),
            sources=tuple(event.sources),
        )

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "category": self.category,
            "column": self.column,
            "description": self.description,
            "players": list(self.players),
            "sources": list(self.sources),
        }


def sort_key(record: EventRecord):
    # Undated records go last, in id order, so snapshots stay deterministic
    d_obj = record.parsed_date
    return (d_obj is None, d_obj or datetime.date.min, record.id)


class EventStore:
    """Snapshot cache plus write-through for the `events` collection."""

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = ()
        self._loaded = False
        self._subscribers = {}
        self._next_token = 0

    # ============================================================
    # Reading
    # ============================================================
    def snapshot(self):
        """
        Re-read the events table and return the current snapshot.

        Other processes write to the same database, so every call reads it.
        Subscribers are only notified when the contents changed.
        """
        return self._reload(publish_unchanged=False)

    def refresh(self):
        """Reload every event from the database and publish the result."""
        return self._reload(publish_unchanged=True)

    def _reload(self, publish_unchanged):
        try:
            rows = Event.query.all()
        except SQLAlchemyError as e:
            logger.error("Loading events failed: %s", e)
            raise StoreError("Failed to load events. Please refresh the page.") from e

        records = tuple(sorted((EventRecord.from_model(r) for r in rows), key=sort_key))
        with self._lock:
            changed = not self._loaded or records != self._snapshot
            if changed:
                self._snapshot = records
                self._loaded = True
            records = self._snapshot
            subscribers = list(self._subscribers.values())

        if not (changed or publish_unchanged):
            return records

        logger.debug("Published snapshot with %d event(s) to %d subscriber(s)", len(records), len(subscribers))
        for callback in subscribers:
            try:
                callback(records)
            except Exception:
                logger.exception("Snapshot subscriber failed")
        return records

    def get(self, event_id):
        for record in self.snapshot():
            if record.id == event_id:
                return record
        raise EventNotFound(event_id)

    # ============================================================
    # Subscriptions
    # ============================================================
    def subscribe(self, callback):
        """
        Register `callback(snapshot)` for every future snapshot.

        The current snapshot is delivered immediately. Returns a function
        that removes the subscription.
        """
        current = self.snapshot()
        with self._lock:
            token = self._next_token
            self._next_token += 1
            self._subscribers[token] = callback
        callback(current)

        def unsubscribe():
            with self._lock:
                self._subscribers.pop(token, None)

        return unsubscribe

    @property
    def subscriber_count(self):
        with self._lock:
            return len(self._subscribers)

    # ============================================================
    # Writing
    # ============================================================
    def add_event(self, **fields):
        values = self._validate(fields, require_all=True)
        event = Event(
            title=values["title"],
            date=values["date"],
            category=values.get("category"),
            column=values.get("column"),
            description=values.get("description"),
        )
        if fields.get("id"):
            event.id = fields["id"]
        event.players = values.get("players", [])
        event.sources = values.get("sources", [])
        self._commit(event)
        current_app.logger.info("Event %s created (%s)", event.id, event.title)
        self.refresh()
        return self.get(event.id)

    def update_event(self, event_id, **fields):
        event = self._load(event_id)
        values = self._validate(fields, require_all=False)
        for name, value in values.items():
            setattr(event, name, value)
        self._commit(event)
        current_app.logger.info("Event %s updated (%s)", event_id, ", ".join(sorted(values)))
        self.refresh()
        return self.get(event_id)

    def set_column(self, event_id, column):
        """Persist a manual column for one event; other rows are untouched."""
        if not isinstance(column, int) or isinstance(column, bool) or column < 0:
            raise ValidationError("Column must be a non-negative integer")
        event = self._load(event_id)
        event.column = column
        self._commit(event)
        current_app.logger.info("Event %s moved to column %d", event_id, column)
        self.refresh()
        return self.get(event_id)

    def clear_columns(self):
        """Forget every persisted column so the layout places cards again."""
        try:
            count = Event.query.filter(Event.column.isnot(None)).update({Event.column: None})
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError(f"Failed to clear columns: {e}") from e
        self.refresh()
        return count

    def delete_event(self, event_id):
        event = self._load(event_id)
        try:
            db.session.delete(event)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError(f"Failed to delete event: {e}") from e
        current_app.logger.info("Event %s deleted", event_id)
        self.refresh()

    # ============================================================
    # Internals
    # ============================================================
    def _load(self, event_id):
        event = db.session.get(Event, event_id)
        if event is None:
            raise EventNotFound(event_id)
        return event

    def _commit(self, event):
        try:
            db.session.add(event)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            raise StoreError(f"Failed to save event: {e}") from e

    def _validate(self, fields, require_all):
        values = {}
        for name in EDITABLE_FIELDS:
            if name in fields:
                values[name] = fields[name]

        if require_all or "title" in values:
            title = (values.get("title") or "").strip()
            if not title:
                raise ValidationError("Title is required")
            values["title"] = title

        if require_all or "date" in values:
            d_obj = parse_event_date(values.get("date"))
            if d_obj is None:
                raise ValidationError("A valid date (YYYY-MM-DD) is required")
            values["date"] = d_obj.isoformat()

        if values.get("category"):
            if db.session.get(Category, values["category"]) is None:
                raise ValidationError(f"Unknown category {values['category']!r}")
        elif "category" in values:
            values["category"] = None

        if "description" in values:
            values["description"] = (values["description"] or "").strip() or None
        if "players" in values:
            values["players"] = clean_list(values["players"])
        if "sources" in values:
            values["sources"] = clean_list(values["sources"])
        if values.get("column") is not None:
            column = values["column"]
            if not isinstance(column, int) or isinstance(column, bool) or column < 0:
                raise ValidationError("Column must be a non-negative integer")
        return values


def get_event_store() -> EventStore:
    """Return the store bound to the running app."""
    return current_app.extensions["event_store"]
