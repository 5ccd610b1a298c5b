from flask_login import LoginManager, current_user
from flask_mail import Mail
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

login_manager = LoginManager()
mail = Mail()
migrate = Migrate()
limiter = Limiter(get_remote_address)


def user_or_address():
    """Rate limit key: the logged in user, falling back to the client address."""
    if current_user.is_authenticated:
        return f'user:{current_user.id}'
    return get_remote_address()
