import logging
import os

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException

from config import Config
from extensions import limiter, login_manager, mail, migrate, user_or_address
from models.models import db, User

logging.basicConfig(
    level=getattr(logging, str(Config.LOG_LEVEL).upper(), logging.INFO),
    format='%(asctime)s %(name)s %(levelname)s %(message)s',
)
logger = logging.getLogger(__name__)

# Initialize Flask app
app = Flask(__name__)
app.config.from_object(Config)
os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

# Initialize extensions
db.init_app(app)
login_manager.init_app(app)
mail.init_app(app)
migrate.init_app(app, db)
limiter.init_app(app)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, int(user_id))


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Authentication required'}), 401


# Import blueprints
from routes.auth import auth_bp
from routes.reports import reports_bp
from routes.comments import comments_bp
from routes.user_management import user_mgmt_bp
from routes.logs import logs_bp
from routes.files import files_bp

# Per-user limit on the JSON API; /login carries its own stricter limit
api_limit = limiter.limit(lambda: current_app.config['API_RATE_LIMIT'], key_func=user_or_address)
for bp in (reports_bp, comments_bp, user_mgmt_bp, logs_bp, files_bp):
    api_limit(bp)

# Register blueprints
app.register_blueprint(auth_bp)
app.register_blueprint(reports_bp)
app.register_blueprint(comments_bp)
app.register_blueprint(user_mgmt_bp)
app.register_blueprint(logs_bp)
app.register_blueprint(files_bp)


@app.after_request
def security_headers(response):
    response.headers.setdefault('X-Content-Type-Options', 'nosniff')
    response.headers.setdefault('X-Frame-Options', 'DENY')
    response.headers.setdefault('Referrer-Policy', 'strict-origin-when-cross-origin')
    response.headers.setdefault('Permissions-Policy', 'camera=(), microphone=(), geolocation=()')
    return response


@app.errorhandler(413)
def too_large(e):
    return jsonify({'error': 'Upload too large'}), 413


@app.errorhandler(429)
def rate_limited(e):
    return jsonify({'error': 'Too many requests, please try again later'}), 429


@app.errorhandler(500)
def internal_error(e):
    db.session.rollback()
    logger.error('Unhandled error', exc_info=getattr(e, 'original_exception', None) or e)
    return jsonify({'error': 'Internal server error'}), 500


@app.errorhandler(HTTPException)
def http_error(e):
    return jsonify({'error': e.description or e.name}), e.code


if __name__ == "__main__":
    app.run(debug=True)
