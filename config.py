import os

class Config:
    SECRET_KEY = os.environ.get('TNT_SECRET_KEY') or 'dev_key_change_in_production'

    # Database - fix for Render's postgres:// URL (SQLAlchemy requires postgresql://)
    basedir = os.path.abspath(os.path.dirname(__file__))
    _db_url = os.environ.get('DATABASE_URL')
    if _db_url and _db_url.startswith('postgres://'):
        _db_url = _db_url.replace('postgres://', 'postgresql://', 1)
    SQLALCHEMY_DATABASE_URI = _db_url or 'sqlite:///' + os.path.join(basedir, 'history.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Session security
    SESSION_COOKIE_SECURE = os.environ.get('SESSION_COOKIE_SECURE', 'False').lower() == 'true'
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = 'Lax'
    PERMANENT_SESSION_LIFETIME = 60 * 60 * 24 * 30  # 30 days

    # Ensure generated links use HTTPS
    PREFERRED_URL_SCHEME = 'https'

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Admin login (werkzeug password hash, see `flask --app flask_app hash-password`)
    ADMIN_PASSWORD_HASH = os.environ.get('ADMIN_PASSWORD_HASH', '')

    # Identity service: name -> uuid and uuid -> profile lookups
    IDENTITY_NAME_URL = os.environ.get('IDENTITY_NAME_URL', 'https://api.ashcon.app/mojang/v2/user/{name}')
    IDENTITY_PROFILE_URL = os.environ.get(
        'IDENTITY_PROFILE_URL', 'https://sessionserver.mojang.com/session/minecraft/profile/{uuid}'
    )
    IDENTITY_TIMEOUT = float(os.environ.get('IDENTITY_TIMEOUT', '10'))

    # Timeline layout overrides; any key left out uses the LayoutConfig default
    TIMELINE_DEFAULT_YEAR_SPACING = float(os.environ.get('TIMELINE_DEFAULT_YEAR_SPACING', '200'))
    TIMELINE_MAX_COLUMNS = int(os.environ.get('TIMELINE_MAX_COLUMNS', '20'))


class DevelopmentConfig(Config):
    DEBUG = True
    SESSION_COOKIE_SECURE = False


class ProductionConfig(Config):
    DEBUG = False
    SESSION_COOKIE_SECURE = True


class TestingConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SESSION_COOKIE_SECURE = False
    PREFERRED_URL_SCHEME = 'http'
    SEED_DATABASE = False
