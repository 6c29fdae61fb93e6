"""
Seed data for the TNT Tag History site.
Pre-populates the reference tables (categories and roles) on an empty database.
"""
from flask import current_app

from .extensions import db
from .models import Category, Role

DEFAULT_CATEGORIES = [
    ("update", "Game Update", "E74C3C"),
    ("tournament", "Tournament", "F1C40F"),
    ("record", "Record", "2ECC71"),
    ("community", "Community", "3498DB"),
    ("staff", "Staff", "9B59B6"),
]

DEFAULT_ROLES = [
    ("owner", "OWNER", "AA0000"),
    ("admin", "ADMIN", "FF5555"),
    ("developer", "DEV", "55FFFF"),
    ("moderator", "MOD", "00AA00"),
    ("helper", "HELPER", "5555FF"),
    ("champion", "CHAMPION", "FFAA00"),
    ("youtuber", "YOUTUBE", "FF5555"),
    ("contributor", "CONTRIB", "AAAAAA"),
]


def seed_database():
    """
    Insert the default categories and roles if their tables are empty.
    Existing rows are never touched.
    """
    seeded = False

    if not Category.query.first():
        current_app.logger.info("Seeding %d categories", len(DEFAULT_CATEGORIES))
        db.session.add_all([Category(id=i, name=n, color=c) for i, n, c in DEFAULT_CATEGORIES])
        seeded = True

    if not Role.query.first():
        current_app.logger.info("Seeding %d roles", len(DEFAULT_ROLES))
        db.session.add_all([Role(id=i, tag=t, color=c) for i, t, c in DEFAULT_ROLES])
        seeded = True

    if seeded:
        db.session.commit()
    return seeded
