import functools

from flask import current_app, flash, redirect, request, session, url_for
from werkzeug.security import check_password_hash


def is_admin():
    return bool(session.get("admin"))


def check_admin_password(password):
    """Compare against ADMIN_PASSWORD_HASH; an unset hash never matches."""
    pw_hash = current_app.config.get("ADMIN_PASSWORD_HASH") or ""
    if not pw_hash or not password:
        return False
    return check_password_hash(pw_hash, password)


def log_in_admin():
    session.permanent = True
    session["admin"] = True


def log_out_admin():
    session.pop("admin", None)


def admin_required(view):
    """Redirect to the admin login page unless the session is an admin one."""
    @functools.wraps(view)
    def wrapped(*args, **kwargs):
        if not is_admin():
            if request.headers.get("HX-Request") or request.is_json:
                return {"error": "Unauthorized"}, 401
            flash("Please log in to access the admin section.", "error")
            return redirect(url_for("admin.login", next=request.path))
        return view(*args, **kwargs)
    return wrapped
