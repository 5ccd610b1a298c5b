"""
Pytest configuration and fixtures for the shift log API.

The environment is set before ``app`` is imported so Config picks up an
in-memory database, suppressed mail and a disabled rate limiter.
"""
import os
import shutil
import sys
import tempfile

import pytest

UPLOAD_DIR = tempfile.mkdtemp(prefix='shift_log_uploads_')

os.environ['DATABASE_URI'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret-key-not-for-production'
os.environ['RATELIMIT_ENABLED'] = 'false'
os.environ['MAIL_SUPPRESS_SEND'] = 'true'
os.environ['UPLOAD_FOLDER'] = UPLOAD_DIR

# Add parent dir to path
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from werkzeug.security import generate_password_hash  # noqa: E402

from app import app as flask_app  # noqa: E402
from models.models import db, User, ROLE_ADMIN, ROLE_EMPLOYEE, ROLE_MANAGER  # noqa: E402

TEST_PASSWORD = 'password123'


@pytest.fixture(scope='session', autouse=True)
def upload_dir():
    yield UPLOAD_DIR
    shutil.rmtree(UPLOAD_DIR, ignore_errors=True)


@pytest.fixture
def app():
    flask_app.config['TESTING'] = True
    with flask_app.app_context():
        db.create_all()
        yield flask_app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username, role=ROLE_EMPLOYEE, name=None, email=None, archived=False, alerts=False):
        user = User(
            username=username,
            name=name or username.title(),
            email=email,
            # Low iteration count keeps the suite fast
            password=generate_password_hash(TEST_PASSWORD, method='pbkdf2:sha256:1000'),
            role=role,
            is_archived=archived,
            receives_high_priority_emails=alerts,
        )
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def employee(make_user):
    return make_user('david', ROLE_EMPLOYEE, name='David Thompson', email='david@example.com')


@pytest.fixture
def manager(make_user):
    return make_user('michael', ROLE_MANAGER, name='Michael Rodriguez', email='michael@example.com', alerts=True)


@pytest.fixture
def admin(make_user):
    return make_user('sarah', ROLE_ADMIN, name='Sarah Johnson', email='sarah@example.com')


@pytest.fixture
def login(client):
    """Log in through the real endpoint; call again to switch accounts."""
    def _login(user, password=TEST_PASSWORD):
        response = client.post('/login', json={'username': user.username, 'password': password})
        assert response.status_code == 200, response.get_json()
        return response
    return _login
