from flask import Blueprint, current_app, flash, redirect, render_template, request, url_for
from sqlalchemy.exc import SQLAlchemyError
import re

from .auth import admin_required, check_admin_password, is_admin, log_in_admin, log_out_admin
from .categories import CategoryRegistry
from .errors import EventNotFound, IdentityLookupError, StoreError, ValidationError
from .extensions import db
from .models import Category, Event, Player, Role
from .players import PlayerForm, delete_player, primary_role, save_player, search_players, sort_roles_by_priority
from .store import get_event_store

bp = Blueprint('admin', __name__, url_prefix='/admin')

SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]{0,63}$")
HEX_RE = re.compile(r"^[0-9A-Fa-f]{6}$")


def form_lines(name):
    """Textarea field split into stripped, non-empty lines."""
    return [line.strip() for line in request.form.get(name, "").splitlines() if line.strip()]


def clean_slug(value):
    slug = (value or "").strip().lower()
    if not SLUG_RE.match(slug):
        raise ValidationError("Id must be lowercase letters, digits, '-' or '_'")
    return slug


def clean_color(value):
    color = (value or "").strip().lstrip("#")
    if not HEX_RE.match(color):
        raise ValidationError("Color must be a 6 digit hex value")
    return color.upper()


def commit_or_flash(success_message):
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Admin write failed: {e}")
        flash("Failed to save. Please try again.", "error")
        return False
    flash(success_message, "success")
    return True


# ============================================================
# LOGIN
# ============================================================
@bp.route("/login", methods=["GET", "POST"])
def login():
    if request.method == "POST":
        if check_admin_password(request.form.get("password", "")):
            log_in_admin()
            current_app.logger.info("Admin login from %s", request.remote_addr)
            flash("Logged in", "success")
            target = request.args.get("next") or ""
            # only follow local paths
            if not target.startswith("/") or target.startswith("//"):
                target = url_for("admin.dashboard")
            return redirect(target)
        current_app.logger.warning("Failed admin login from %s", request.remote_addr)
        flash("Incorrect password", "error")
    elif is_admin():
        return redirect(url_for("admin.dashboard"))
    return render_template("admin/login.html")


@bp.route("/logout", methods=["GET", "POST"])
def logout():
    log_out_admin()
    flash("Logged out", "success")
    return redirect(url_for("main.timeline"))


@bp.route("/")
@admin_required
def dashboard():
    counts = {
        "events": Event.query.count(),
        "players": Player.query.count(),
        "roles": Role.query.count(),
        "categories": Category.query.count(),
    }
    return render_template("admin/dashboard.html", counts=counts)


# ============================================================
# PLAYERS
# ============================================================
@bp.route("/players")
@admin_required
def players_page():
    players = Player.query.order_by(Player.current_ign).all()
    roles = {r.id: r for r in Role.query.all()}
    term = request.args.get("q", "")
    selected = None
    selected_id = request.args.get("id")
    if selected_id:
        selected = db.session.get(Player, selected_id)
    by_uuid = {p.uuid: p for p in players}
    return render_template(
        "admin/players.html",
        players=search_players(players, term),
        selected=selected,
        roles=roles,
        sorted_roles=[roles[r] for r in sort_roles_by_priority(roles)],
        by_uuid=by_uuid,
        primary_role=primary_role,
        term=term,
    )


@bp.route("/players/save", methods=["POST"])
@admin_required
def save_player_route():
    player_id = request.form.get("player_id") or None
    form = PlayerForm(
        current_ign=request.form.get("current_ign", ""),
        uuid=request.form.get("uuid", ""),
        past_igns=form_lines("past_igns"),
        role_ids=request.form.getlist("roles"),
        alt_accounts=form_lines("alt_accounts"),
    )
    try:
        player, created = save_player(form, player_id=player_id)
    except ValidationError as e:
        flash(str(e), "error")
        return redirect(url_for("admin.players_page", id=player_id) if player_id else url_for("admin.players_page"))
    except IdentityLookupError as e:
        flash(f"Failed to fetch player data: {e}", "error")
        return redirect(url_for("admin.players_page", id=player_id) if player_id else url_for("admin.players_page"))
    except StoreError as e:
        current_app.logger.error(f"Player save error: {e}")
        flash("Failed to save player. Please try again.", "error")
        return redirect(url_for("admin.players_page"))

    current_app.logger.info("Player %s saved (%d alt(s))", player.uuid, len(player.alt_accounts))
    flash("Player added successfully" if created else "Player updated successfully", "success")
    return redirect(url_for("admin.players_page"))


@bp.route("/players/<player_id>/delete", methods=["POST"])
@admin_required
def delete_player_route(player_id):
    try:
        delete_player(player_id)
    except (ValidationError, StoreError) as e:
        flash(str(e), "error")
    else:
        flash("Player deleted successfully", "success")
    return redirect(url_for("admin.players_page"))


# ============================================================
# ROLES
# ============================================================
@bp.route("/roles")
@admin_required
def roles_page():
    roles = Role.query.all()
    ordered = sort_roles_by_priority([r.id for r in roles])
    by_id = {r.id: r for r in roles}
    return render_template("admin/roles.html", roles=[by_id[i] for i in ordered])


@bp.route("/roles/save", methods=["POST"])
@admin_required
def save_role():
    try:
        role_id = clean_slug(request.form.get("id"))
        tag = request.form.get("tag", "").strip()
        if not tag:
            raise ValidationError("Tag is required")
        color = clean_color(request.form.get("color"))
    except ValidationError as e:
        flash(str(e), "error")
        return redirect(url_for("admin.roles_page"))

    role = db.session.get(Role, role_id)
    if role is None:
        role = Role(id=role_id)
        db.session.add(role)
    role.tag = tag
    role.color = color
    commit_or_flash(f"Role {tag} saved")
    return redirect(url_for("admin.roles_page"))


@bp.route("/roles/<role_id>/delete", methods=["POST"])
@admin_required
def delete_role(role_id):
    role = db.session.get(Role, role_id)
    if role is None:
        flash("Role not found", "error")
        return redirect(url_for("admin.roles_page"))

    for player in Player.query.filter(Player.role.isnot(None)).all():
        if role_id in player.role_ids:
            player.role = ",".join(r for r in player.role_ids if r != role_id) or None
    tag = role.tag
    db.session.delete(role)
    commit_or_flash(f"Role {tag} deleted")
    return redirect(url_for("admin.roles_page"))


# ============================================================
# CATEGORIES
# ============================================================
@bp.route("/categories")
@admin_required
def categories_page():
    return render_template("admin/categories.html", categories=Category.query.order_by(Category.name).all())


@bp.route("/categories/save", methods=["POST"])
@admin_required
def save_category():
    try:
        category_id = clean_slug(request.form.get("id"))
        name = request.form.get("name", "").strip()
        if not name:
            raise ValidationError("Name is required")
        color = clean_color(request.form.get("color"))
    except ValidationError as e:
        flash(str(e), "error")
        return redirect(url_for("admin.categories_page"))

    category = db.session.get(Category, category_id)
    if category is None:
        category = Category(id=category_id)
        db.session.add(category)
    category.name = name
    category.color = color
    commit_or_flash(f"Category {name} saved")
    return redirect(url_for("admin.categories_page"))


@bp.route("/categories/<category_id>/delete", methods=["POST"])
@admin_required
def delete_category(category_id):
    category = db.session.get(Category, category_id)
    if category is None:
        flash("Category not found", "error")
        return redirect(url_for("admin.categories_page"))

    Event.query.filter_by(category=category_id).update({Event.category: None})
    name = category.name
    db.session.delete(category)
    if commit_or_flash(f"Category {name} deleted"):
        try:
            get_event_store().refresh()
        except StoreError as e:
            flash(str(e), "error")
    return redirect(url_for("admin.categories_page"))


# ============================================================
# EVENTS
# ============================================================
@bp.route("/events")
@admin_required
def events_page():
    try:
        events = get_event_store().snapshot()
    except StoreError as e:
        flash(str(e), "error")
        events = ()
    return render_template("admin/events.html", events=events, categories=CategoryRegistry.load())


@bp.route("/events/new")
@bp.route("/events/<event_id>")
@admin_required
def event_form(event_id=None):
    event = None
    if event_id:
        try:
            event = get_event_store().get(event_id)
        except EventNotFound:
            flash("Event not found", "error")
            return redirect(url_for("admin.events_page"))
        except StoreError as e:
            flash(str(e), "error")
            return redirect(url_for("admin.events_page"))
    return render_template("admin/event_form.html", event=event,
                           categories=Category.query.order_by(Category.name).all())


@bp.route("/events/save", methods=["POST"])
@admin_required
def save_event():
    event_id = request.form.get("event_id") or None
    fields = {
        "title": request.form.get("title", ""),
        "date": request.form.get("date", ""),
        "category": request.form.get("category") or None,
        "description": request.form.get("description", ""),
        "players": form_lines("players"),
        "sources": form_lines("sources"),
    }
    store = get_event_store()
    try:
        if event_id:
            store.update_event(event_id, **fields)
            flash("Event updated", "success")
        else:
            store.add_event(**fields)
            flash("Event added", "success")
    except ValidationError as e:
        flash(str(e), "error")
        if event_id:
            return redirect(url_for("admin.event_form", event_id=event_id))
        return redirect(url_for("admin.event_form"))
    except EventNotFound:
        flash("Event not found", "error")
    except StoreError as e:
        current_app.logger.error(f"Event save error: {e}")
        flash("Failed to save event. Please try again.", "error")
    return redirect(url_for("admin.events_page"))


@bp.route("/events/<event_id>/delete", methods=["POST"])
@admin_required
def delete_event(event_id):
    try:
        get_event_store().delete_event(event_id)
    except EventNotFound:
        flash("Event not found", "error")
    except StoreError as e:
        flash(str(e), "error")
    else:
        flash("Event deleted", "success")
    return redirect(url_for("admin.events_page"))


@bp.route("/events/reset_columns", methods=["POST"])
@admin_required
def reset_columns():
    try:
        count = get_event_store().clear_columns()
    except StoreError as e:
        flash(str(e), "error")
    else:
        flash(f"Cleared manual columns on {count} event(s)", "success")
    return redirect(url_for("admin.events_page"))
