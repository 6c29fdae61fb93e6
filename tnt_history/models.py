from .extensions import db
from datetime import datetime
import json
import uuid


def _new_id():
    return uuid.uuid4().hex


def _load_list(raw):
    try:
        value = json.loads(raw or "[]")
    except (TypeError, ValueError):
        return []
    return value if isinstance(value, list) else []


class Event(db.Model):
    __tablename__ = "events"

    id = db.Column(db.String(64), primary_key=True, default=_new_id)
    title = db.Column(db.String(200), nullable=False)
    # Kept as text (YYYY-MM-DD); imported legacy rows may hold anything
    date = db.Column(db.String(32), index=True)
    category = db.Column(db.String(64), db.ForeignKey("categories.id", ondelete="SET NULL"))
    # Manually placed lane, None until an admin drags the card
    column = db.Column("column_index", db.Integer)
    description = db.Column(db.Text)
    _players_json = db.Column(db.Text, default="[]")
    _sources_json = db.Column(db.Text, default="[]")
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def players(self):
        return _load_list(self._players_json)

    @players.setter
    def players(self, value):
        self._players_json = json.dumps(list(value or []))

    @property
    def sources(self):
        return _load_list(self._sources_json)

    @sources.setter
    def sources(self, value):
        self._sources_json = json.dumps(list(value or []))


class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    color = db.Column(db.String(7), nullable=False, default="888888")  # hex, no leading '#'


class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.String(64), primary_key=True)
    tag = db.Column(db.String(50), nullable=False)
    color = db.Column(db.String(7), nullable=False, default="AAAAAA")


class Player(db.Model):
    __tablename__ = "players"

    id = db.Column(db.String(64), primary_key=True, default=_new_id)
    current_ign = db.Column(db.String(32), nullable=False, index=True)
    uuid = db.Column(db.String(36), unique=True, nullable=False)
    role = db.Column(db.String(200))  # comma separated role ids
    main_account = db.Column(db.String(36))  # uuid of the main when this is an alt
    _past_igns_json = db.Column(db.Text, default="[]")
    _events_json = db.Column(db.Text, default="[]")
    _alt_accounts_json = db.Column(db.Text, default="[]")
    last_updated = db.Column(db.DateTime, default=datetime.utcnow)

    @property
    def past_igns(self):
        return _load_list(self._past_igns_json)

    @past_igns.setter
    def past_igns(self, value):
        self._past_igns_json = json.dumps(list(value or []))

    @property
    def events(self):
        return _load_list(self._events_json)

    @events.setter
    def events(self, value):
        self._events_json = json.dumps(list(value or []))

    @property
    def alt_accounts(self):
        return _load_list(self._alt_accounts_json)

    @alt_accounts.setter
    def alt_accounts(self, value):
        self._alt_accounts_json = json.dumps(list(value or []))

    @property
    def role_ids(self):
        return [r.strip() for r in (self.role or "").split(",") if r.strip()]
