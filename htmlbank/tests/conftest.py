import re
import uuid

import pytest

from htmlbank import create_app
from htmlbank.contexts import ContextResolver
from htmlbank.models import CONTEXT_COURSE, User

CSRF_TOKEN_RE = re.compile(r'name="_csrf_token" value="([^"]+)"')


def extract_csrf_token(html):
    match = CSRF_TOKEN_RE.search(html or "")
    return match.group(1) if match else None


def build_test_app(tmp_path, monkeypatch, overrides=None):
    db_path = tmp_path / f"contentbank_test_{uuid.uuid4().hex[:8]}.db"
    file_root = tmp_path / f"filedir_{uuid.uuid4().hex[:8]}"

    monkeypatch.setenv("ADMIN_PASSWORD", "admin123")

    config = {
        "TESTING": True,
        "SECRET_KEY": "test-secret-key",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
        "FILE_STORAGE_ROOT": str(file_root),
        "LOG_JSON": False,
    }
    if overrides:
        config.update(overrides)
    return create_app(config)


@pytest.fixture()
def app(tmp_path, monkeypatch):
    return build_test_app(tmp_path, monkeypatch)


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def app_ctx(app):
    with app.app_context():
        yield app


@pytest.fixture()
def admin_user(app_ctx):
    return User.query.filter_by(username="admin").one()


@pytest.fixture()
def course_context(app_ctx):
    contexts = ContextResolver()
    return contexts.create_child(contexts.system_context(), CONTEXT_COURSE, 2)


def login(client, username="admin", password="admin123"):
    login_page = client.get("/auth/login")
    csrf_token = extract_csrf_token(login_page.get_data(as_text=True))
    assert csrf_token

    response = client.post(
        "/auth/login",
        data={
            "_csrf_token": csrf_token,
            "username": username,
            "password": password,
        },
        follow_redirects=False,
    )
    assert response.status_code in (302, 303)
