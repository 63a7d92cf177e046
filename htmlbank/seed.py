import os
import secrets

from flask import current_app

from .contexts import ContextResolver
from .models import User, db


def seed_database():
    contexts = ContextResolver()
    contexts.system_context()

    username = current_app.config.get('ADMIN_USERNAME') or 'admin'
    env_password = os.environ.get('ADMIN_PASSWORD') or ''

    existing_admin = User.query.filter_by(username=username).first()
    if existing_admin:
        # Always sync admin password with env var on startup
        if env_password:
            existing_admin.set_password(env_password)
            db.session.commit()
        return existing_admin

    if not env_password:
        env_password = secrets.token_urlsafe(16)
        current_app.logger.warning(
            'ADMIN_PASSWORD not set. Seeded %s with a random password. '
            'Set ADMIN_PASSWORD and restart to rotate it to a known value.',
            username,
        )
    admin = User(username=username, email=current_app.config.get('ADMIN_EMAIL') or 'admin@localhost')
    admin.set_password(env_password)
    db.session.add(admin)
    db.session.commit()
    contexts.user_context(admin)
    return admin
