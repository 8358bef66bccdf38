"""
Barangay Document Request API Package

Extensions are created here unbound and attached to the app in
``app.create_app``; models and utils import them from this module.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

__version__ = '1.0.0'

db = SQLAlchemy()
migrate = Migrate()
jwt = JWTManager()

# Default limits and storage come from RATELIMIT_DEFAULT / RATELIMIT_STORAGE_URI
limiter = Limiter(
    key_func=get_remote_address,
    strategy="fixed-window",
)

__all__ = ['db', 'migrate', 'jwt', 'limiter', '__version__']
