from flask import (
    Blueprint, Response, abort, current_app, flash, jsonify, redirect, render_template,
    request, session, stream_with_context, url_for,
)
from sqlalchemy.exc import SQLAlchemyError
import json
import math
import queue

from .auth import is_admin
from .categories import ALL_EVENTS_ID, CategoryRegistry
from .errors import EventNotFound, StoreError, ValidationError
from .extensions import db
from .models import Player
from .store import get_event_store
from .timeline import DragSession, TimelineState, y_position, year_ticks
from .utils import format_event_date, search_events

bp = Blueprint('main', __name__)

STREAM_KEEPALIVE_SECONDS = 15


@bp.app_template_filter("event_date")
def event_date_filter(value):
    return format_event_date(value)


# ============================================================
# Helpers
# ============================================================
def timeline_config():
    return current_app.extensions["timeline_config"]


def get_state():
    return TimelineState.from_session(session.get("timeline"), timeline_config())


def save_state(state):
    session["timeline"] = state.to_session()


def load_events():
    """Return (snapshot, error message or None); the page renders either way."""
    try:
        return get_event_store().snapshot(), None
    except StoreError as e:
        current_app.logger.error(f"Event snapshot error: {e}")
        return (), str(e)


def load_categories():
    try:
        return CategoryRegistry.load(), None
    except SQLAlchemyError as e:
        current_app.logger.error(f"Category load error: {e}")
        return CategoryRegistry([]), "Failed to load categories"


def wants_json():
    return bool(request.headers.get("HX-Request")) or request.is_json or request.accept_mimetypes.best == "application/json"


def state_response(state):
    save_state(state)
    if wants_json():
        return jsonify(state.to_session())
    return redirect(url_for("main.timeline"))


def layout_payload(state, snapshot):
    positioned = state.layout(snapshot)
    return {
        "year_spacing": state.year_spacing,
        "selected_categories": state.selected_categories,
        "events": [dict(p.to_dict(), title=p.event.title, date=p.event.date, category=p.event.category)
                   for p in positioned],
    }


# ============================================================
# Pages
# ============================================================
@bp.route("/")
def home():
    return redirect(url_for("main.timeline"))


@bp.route("/timeline")
def timeline():
    snapshot, error = load_events()
    categories, cat_error = load_categories()
    state = get_state()
    config = timeline_config()

    positioned = state.layout(snapshot)
    ticks = year_ticks(state.visible(snapshot), state.year_spacing, config)
    width = max([x for _, x in ticks] + [p.x for p in positioned] + [0]) + config.card_extent + config.origin_offset
    used_columns = max([p.column for p in positioned], default=0) + 1
    height = y_position(used_columns, config)

    return render_template(
        "timeline.html",
        positioned=positioned,
        ticks=ticks,
        categories=categories,
        state=state,
        config=config,
        width=width,
        height=height,
        error=error or cat_error,
    )


@bp.route("/events")
def events_list():
    snapshot, error = load_events()
    categories, _ = load_categories()
    term = request.args.get("q", "")
    matches = search_events(snapshot, term)
    # newest first; undated entries stay at the end
    dated = [e for e in matches if e.parsed_date is not None]
    undated = [e for e in matches if e.parsed_date is None]
    ordered = list(reversed(dated)) + undated
    return render_template("events.html", events=ordered, categories=categories, term=term, error=error)


@bp.route("/events/<event_id>")
def event_detail(event_id):
    try:
        record = get_event_store().get(event_id)
    except EventNotFound:
        abort(404)
    except StoreError as e:
        flash(str(e), "error")
        return redirect(url_for("main.events_list"))

    categories, _ = load_categories()
    players = []
    if record.players:
        players = Player.query.filter(Player.uuid.in_(record.players)).order_by(Player.current_ign).all()
    return render_template("event_detail.html", event=record, category=categories.get(record.category),
                           categories=categories, players=players)


@bp.route("/info")
def info():
    return render_template("info.html")


# ============================================================
# Timeline controls
# ============================================================
@bp.route("/timeline/zoom/<direction>", methods=["POST"])
def zoom(direction):
    state = get_state()
    if direction == "in":
        state.zoom_in()
    elif direction == "out":
        state.zoom_out()
    else:
        abort(404)
    return state_response(state)


@bp.route("/timeline/reset", methods=["POST"])
def reset_timeline():
    state = get_state()
    state.reset()
    return state_response(state)


@bp.route("/timeline/category/<category_id>", methods=["POST"])
def toggle_category(category_id):
    state = get_state()
    categories, _ = load_categories()
    if category_id == ALL_EVENTS_ID or category_id in categories:
        state.select_category(category_id)
    else:
        current_app.logger.debug("Ignoring unknown category %r", category_id)
    return state_response(state)


@bp.route("/timeline/settings", methods=["POST"])
def timeline_settings():
    state = get_state()
    state.dragging_enabled = request.form.get("dragging_enabled") == "on"
    state.show_event_dates = request.form.get("show_event_dates") == "on"
    return state_response(state)


@bp.route("/timeline/drag", methods=["POST"])
def drag_event():
    """
    Finish a card drag.

    Body: {"event_id", "start_y", "end_y", "grab_offset"?}. Admin drags are
    written to the event; visitor drags only live in the session.
    """
    data = request.get_json(silent=True) or {}
    state = get_state()
    if not state.dragging_enabled:
        return {"error": "Dragging is disabled"}, 400

    event_id = data.get("event_id")
    try:
        start_y = float(data["start_y"])
        end_y = float(data["end_y"])
        grab_offset = float(data["grab_offset"]) if data.get("grab_offset") is not None else None
    except (KeyError, TypeError, ValueError):
        return {"error": "start_y and end_y are required numbers"}, 400
    if not all(math.isfinite(v) for v in (start_y, end_y, grab_offset or 0.0)):
        return {"error": "start_y, end_y and grab_offset must be finite"}, 400

    store = get_event_store()
    try:
        snapshot = store.snapshot()
        record = store.get(event_id)
    except EventNotFound:
        return {"error": f"Unknown event {event_id}"}, 404
    except StoreError as e:
        return {"error": str(e)}, 503

    current = next((p.column for p in state.layout(snapshot) if p.id == record.id), record.column or 0)
    drag = DragSession(record.id, current, timeline_config())
    drag.begin(start_y, card_top=None if grab_offset is None else start_y - grab_offset)
    target = drag.release(end_y)

    if target is None:
        return {"committed": False, "column": current, "persisted": False}

    persisted = False
    if is_admin():
        try:
            store.set_column(record.id, target)
        except (StoreError, ValidationError) as e:
            return {"error": str(e)}, 503
        state.overrides.pop(record.id, None)
        persisted = True
    else:
        state.set_override(record.id, target)
    save_state(state)
    return {"committed": True, "column": target, "persisted": persisted}


# ============================================================
# JSON feeds
# ============================================================
@bp.route("/api/events")
def api_events():
    snapshot, error = load_events()
    if error:
        return {"error": error}, 503
    return {"events": [r.to_dict() for r in snapshot]}


@bp.route("/api/timeline")
def api_timeline():
    snapshot, error = load_events()
    if error:
        return {"error": error}, 503
    return layout_payload(get_state(), snapshot)


@bp.route("/api/events/stream")
def api_event_stream():
    """Server-sent events: one full snapshot per message."""
    store = get_event_store()
    updates = queue.Queue()
    try:
        unsubscribe = store.subscribe(updates.put)
    except StoreError as e:
        return {"error": str(e)}, 503

    def generate():
        try:
            while True:
                try:
                    snapshot = updates.get(timeout=STREAM_KEEPALIVE_SECONDS)
                except queue.Empty:
                    # end the read transaction so commits from other workers show up
                    db.session.rollback()
                    try:
                        store.snapshot()
                    except StoreError as e:
                        current_app.logger.warning(f"Event stream reload failed: {e}")
                    if updates.empty():
                        yield ": keepalive\n\n"
                    continue
                yield f"data: {json.dumps([r.to_dict() for r in snapshot])}\n\n"
        finally:
            unsubscribe()

    return Response(stream_with_context(generate()), mimetype="text/event-stream",
                    headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"})
