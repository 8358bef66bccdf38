"""
Barangay Document Requests - Flask API Application
Main application entry point
"""
import sys
import os
import json
from pathlib import Path
from dotenv import load_dotenv

# Determine project root (2 levels up from this file)
API_DIR = Path(__file__).parent.resolve()
PROJECT_ROOT = API_DIR.parent.parent.resolve()

# Load environment variables from .env file at project root
env_path = PROJECT_ROOT / '.env'
if env_path.exists():
    load_dotenv(env_path)

# Add project root to path for absolute imports
sys.path.insert(0, str(PROJECT_ROOT))

from flask import Flask, jsonify
from flask_cors import CORS
from flask_limiter.errors import RateLimitExceeded

from apps.barangay_api.config import Config
from apps.barangay_api import db, migrate, jwt, limiter, __version__
from apps.barangay_api.utils.security import WorkflowError, workflow_error_response


def create_app(config_class=Config):
    """Application factory pattern"""
    app = Flask(__name__)
    app.config.from_object(config_class)

    db_url = app.config.get('SQLALCHEMY_DATABASE_URI', '')
    if 'postgresql' in db_url:
        app.logger.info("Database: PostgreSQL")
    elif 'sqlite' in db_url:
        app.logger.info("Database: SQLite (local)")

    config_class.init_app(app)

    # Initialize extensions with app
    db.init_app(app)
    migrate.init_app(app, db, directory=str(API_DIR / 'migrations'))
    jwt.init_app(app)

    # Flask-Limiter honours RATELIMIT_ENABLED itself
    limiter.init_app(app)
    if app.config.get('RATELIMIT_ENABLED', True):
        app.logger.info("Rate limiting enabled")
    else:
        app.logger.warning("Rate limiting is DISABLED - not recommended for production")

    # Make sure every model is registered before migrations or create_all
    from apps.barangay_api import models  # noqa: F401

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        response.headers['Permissions-Policy'] = 'geolocation=(), microphone=(), camera=()'

        if not app.config.get('DEBUG'):
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        csp_directives = [
            "default-src 'self'",
            "img-src 'self' data: blob: https:",
            "frame-ancestors 'none'",
            "base-uri 'self'",
            "form-action 'self'",
        ]
        response.headers['Content-Security-Policy'] = '; '.join(csp_directives)

        # Never leak raw exception details in non-debug environments.
        if not app.config.get('DEBUG') and response.status_code >= 400 and response.is_json:
            payload = response.get_json(silent=True)
            if isinstance(payload, dict) and 'details' in payload:
                payload.pop('details', None)
                response.set_data(json.dumps(payload))
                response.headers['Content-Type'] = 'application/json'

        return response

    # CORS configuration
    # NOTE: Cannot use wildcard ("*") with supports_credentials=True
    cors_origins = []
    is_production = (app.config.get('FLASK_ENV') == 'production') and not app.config.get('DEBUG')

    for key in ('WEB_URL', 'ADMIN_URL'):
        value = (app.config.get(key) or '').strip()
        if value:
            cors_origins.append(value)

    # Optional explicit allowlist: comma-separated origins.
    extra_origins = (os.getenv('CORS_ALLOWED_ORIGINS') or '').split(',')
    cors_origins.extend([o.strip() for o in extra_origins if o.strip()])

    if not is_production:
        cors_origins.extend([
            "http://localhost:3000",
            "http://localhost:3001",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:3001",
            "http://127.0.0.1:5173",
        ])

    cors_origins = [origin for origin in dict.fromkeys(cors_origins) if origin]

    if is_production and not cors_origins:
        raise RuntimeError(
            "CORS configuration error: set WEB_URL/ADMIN_URL or CORS_ALLOWED_ORIGINS in production."
        )

    CORS(app,
         origins=cors_origins,
         methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
         allow_headers=["Content-Type", "Authorization", "X-Requested-With", "If-Match"],
         supports_credentials=True,
         expose_headers=["Content-Type", "Authorization", "ETag"])

    # Register blueprints
    from apps.barangay_api.routes import documents_bp, admin_bp, superadmin_bp

    app.register_blueprint(documents_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(superadmin_bp)

    @app.route('/health', methods=['GET'])
    def health_check():
        """Health check endpoint for monitoring"""
        return jsonify({
            'status': 'ok',
            'service': app.config.get('APP_NAME', 'Barangay Document Services'),
            'version': __version__,
        }), 200

    @app.route('/', methods=['GET'])
    def root():
        """API root endpoint"""
        return jsonify({
            'message': app.config.get('APP_NAME', 'Barangay Document Services'),
            'version': __version__,
        }), 200

    # Error handlers
    @app.errorhandler(WorkflowError)
    def handle_workflow_error(error):
        db.session.rollback()
        return workflow_error_response(error)

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Resource not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        limit = app.config.get('MAX_PROOF_SIZE_MB', 5)
        return jsonify({'error': f'File size exceeds {limit}MB limit'}), 413

    @app.errorhandler(500)
    def internal_error(error):
        db.session.rollback()
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(401)
    def unauthorized(error):
        return jsonify({'error': 'Unauthorized'}), 401

    @app.errorhandler(403)
    def forbidden(error):
        return jsonify({'error': 'Forbidden'}), 403

    # Flask-Limiter rate limit handler (ensure JSON, not HTML)
    @app.errorhandler(RateLimitExceeded)
    def ratelimit_handler(error):  # pragma: no cover
        payload = {'error': 'Rate limit exceeded'}
        desc = getattr(error, 'description', None)
        if desc:
            payload['details'] = str(desc)
        resp = jsonify(payload)
        resp.status_code = 429
        return resp

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(
        host='0.0.0.0',
        port=int(os.getenv('PORT', 5000)),
        debug=app.config['DEBUG']
    )
