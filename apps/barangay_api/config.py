"""
Barangay Document Requests - Configuration
Application configuration management
"""
import os
import logging
import tempfile
from datetime import timedelta
from pathlib import Path
from urllib.parse import urlparse, parse_qs, urlencode, urlunparse

# Resolve base directory for both monorepo and API-only deployments.
# Monorepo layout: <repo>/apps/barangay_api/config.py -> BASE_DIR=<repo>
# API-only layout: /app/config.py -> BASE_DIR=/app
_THIS_DIR = Path(__file__).parent.resolve()
_MONOREPO_ROOT = _THIS_DIR.parent.parent
if (_MONOREPO_ROOT / 'apps' / 'barangay_api').exists():
    BASE_DIR = _MONOREPO_ROOT.resolve()
else:
    BASE_DIR = _THIS_DIR


def _require_env(name: str, default: str = None, allow_default_in_dev: bool = True) -> str:
    """
    Get environment variable, failing loudly in production if not set.

    Args:
        name: Environment variable name
        default: Default value (only used in development)
        allow_default_in_dev: Whether to allow default in development mode

    Returns:
        The environment variable value

    Raises:
        RuntimeError: If variable is not set in production
    """
    value = os.getenv(name)
    is_production = os.getenv('FLASK_ENV', 'development') == 'production'

    if value:
        return value

    if is_production:
        # In production, signing secrets MUST be set
        if default is None or name in ('SECRET_KEY', 'JWT_SECRET_KEY'):
            raise RuntimeError(
                f"SECURITY ERROR: {name} environment variable is required in production. "
                f"Set it in your deployment environment."
            )
        logging.warning(f"Using default value for {name} in production - consider setting explicitly")
        return default

    # Development mode - allow defaults
    if default is not None and allow_default_in_dev:
        logging.debug(f"Using default value for {name} in development")
        return default

    raise RuntimeError(f"{name} environment variable is required")


def get_database_url():
    """
    Get and process the database URL for proper connection handling.
    - Handles URL scheme conversion (postgres:// -> postgresql://)
    - Ensures SSL is enabled for hosted PostgreSQL connections
    """
    url = os.getenv('DATABASE_URL')

    if not url:
        fallback = f"sqlite:///{BASE_DIR / 'barangay_docs.db'}"
        logging.warning("DATABASE_URL not set; using local fallback %s", fallback)
        return fallback

    # Handle Heroku/Render style postgres:// URLs (SQLAlchemy requires postgresql://)
    if url.startswith('postgres://'):
        url = url.replace('postgres://', 'postgresql://', 1)

    if url.startswith('postgresql://') and os.getenv('DATABASE_SSLMODE', 'require'):
        try:
            parsed = urlparse(url)
            query_params = parse_qs(parsed.query)
            if 'sslmode' not in query_params:
                query_params['sslmode'] = [os.getenv('DATABASE_SSLMODE', 'require')]
            new_query = urlencode(query_params, doseq=True)
            url = urlunparse((
                parsed.scheme,
                parsed.netloc,
                parsed.path,
                parsed.params,
                new_query,
                parsed.fragment
            ))
        except ValueError as e:
            # URL parsing failed - likely due to special characters in password
            logging.warning(f"Could not parse DATABASE_URL (special chars?): {e}")
            if 'sslmode=' not in url:
                separator = '&' if '?' in url else '?'
                url = f"{url}{separator}sslmode=require"

    return url


def get_engine_options():
    """SQLAlchemy engine options based on the database type."""
    db_url = get_database_url()

    options = {
        'pool_pre_ping': True,  # Verify connections before use (handles stale connections)
    }

    if db_url.startswith('postgresql://'):
        options.update({
            'pool_recycle': 180,
            'pool_timeout': 20,
            'pool_size': 5,
            'max_overflow': 5,
            'connect_args': {
                'connect_timeout': 20,
                'options': '-c statement_timeout=20000',  # 20 second query timeout
                'application_name': 'barangay-docs-api',
            }
        })

    return options


class Config:
    """Base configuration"""

    # Flask - SECRET_KEY is REQUIRED in production
    SECRET_KEY = _require_env('SECRET_KEY', 'dev-secret-key-for-local-development-only')
    DEBUG = os.getenv('DEBUG', 'False') == 'True'
    FLASK_ENV = os.getenv('FLASK_ENV', 'development')

    # Database
    SQLALCHEMY_DATABASE_URI = get_database_url()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = DEBUG
    SQLALCHEMY_ENGINE_OPTIONS = get_engine_options()

    # Supabase Storage (optional - payment proofs fall back to local disk without it)
    SUPABASE_URL = os.getenv('SUPABASE_URL', '')
    SUPABASE_SERVICE_KEY = os.getenv('SUPABASE_SERVICE_KEY', '')
    SUPABASE_PROOF_BUCKET = os.getenv('SUPABASE_PROOF_BUCKET', 'payment-proofs')

    # JWT - JWT_SECRET_KEY is REQUIRED in production
    JWT_SECRET_KEY = _require_env('JWT_SECRET_KEY', 'jwt-dev-secret-for-local-development-only')
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(
        seconds=int(os.getenv('JWT_ACCESS_TOKEN_EXPIRES', 86400))
    )
    JWT_ALGORITHM = 'HS256'
    JWT_TOKEN_LOCATION = ['headers']

    # Rate Limiting Configuration
    RATELIMIT_ENABLED = os.getenv('RATELIMIT_ENABLED', 'True') == 'True'
    RATELIMIT_STORAGE_URI = os.getenv('RATELIMIT_STORAGE_URI', 'memory://')
    RATELIMIT_DEFAULT = os.getenv('RATELIMIT_DEFAULT', '2000 per day, 500 per hour')
    RATELIMIT_HEADERS_ENABLED = True

    # Payment proof uploads (images only; size enforced before submit_payment)
    MAX_PROOF_SIZE_MB = int(os.getenv('MAX_PROOF_SIZE_MB', 5))
    MAX_CONTENT_LENGTH = int(os.getenv('MAX_FILE_SIZE', 10 * 1024 * 1024))  # 10MB
    UPLOAD_FOLDER = BASE_DIR / os.getenv('UPLOAD_FOLDER', 'uploads')

    # Request lifecycle
    TRACKING_NUMBER_PREFIX = os.getenv('TRACKING_NUMBER_PREFIX', 'DR')
    TRACKING_NUMBER_ATTEMPTS = int(os.getenv('TRACKING_NUMBER_ATTEMPTS', 5))

    # Application
    APP_NAME = os.getenv('APP_NAME', 'Barangay Document Services')

    # Frontend URLs (for CORS)
    WEB_URL = os.getenv('WEB_URL', 'http://localhost:3000')
    ADMIN_URL = os.getenv('ADMIN_URL', 'http://localhost:3001')

    @staticmethod
    def init_app(app):
        """Initialize application configuration"""
        # Create the upload directory if missing. If the configured path is
        # not writable in container runtime, fall back to /tmp.
        configured_upload = app.config.get('UPLOAD_FOLDER', Config.UPLOAD_FOLDER)
        upload_dir = Path(configured_upload)
        try:
            upload_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            fallback_dir = Path(tempfile.gettempdir()) / 'barangay_docs_uploads'
            fallback_dir.mkdir(parents=True, exist_ok=True)
            app.config['UPLOAD_FOLDER'] = fallback_dir
            app.logger.warning(
                "UPLOAD_FOLDER '%s' is not writable (%s); using fallback '%s'",
                configured_upload,
                exc,
                fallback_dir,
            )
        else:
            app.config['UPLOAD_FOLDER'] = upload_dir


class DevelopmentConfig(Config):
    """Development configuration"""
    DEBUG = True
    SQLALCHEMY_ECHO = True


class ProductionConfig(Config):
    """Production configuration"""
    DEBUG = False
    SQLALCHEMY_ECHO = False


class TestingConfig(Config):
    """Testing configuration"""
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}
    SQLALCHEMY_ECHO = False
    JWT_SECRET_KEY = 'test-secret-key-for-barangay-docs-test-suite'
    RATELIMIT_ENABLED = False
    UPLOAD_FOLDER = Path(tempfile.gettempdir()) / 'barangay_docs_test_uploads'


# Config dictionary
config_by_name = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}
