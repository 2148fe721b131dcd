"""
Pytest configuration and fixtures.

Every test gets a fresh app bound to an in-memory SQLite database, so nothing
leaks between tests.
"""
from datetime import datetime

import pytest
from flask_jwt_extended import create_access_token

from config import TestConfig
from treino import create_app, db
from treino.models.user import User, generate_affiliate_code


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = {"n": 0}

    def _make(email=None, password="secret123", plan_type="free", created_at=None, **fields):
        counter["n"] += 1
        user = User(
            email=email or f"user{counter['n']}@example.com",
            plan_type=plan_type,
            affiliate_code=generate_affiliate_code(),
            created_at=created_at or datetime.utcnow(),
            **fields,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def user(make_user):
    return make_user(email="ana@example.com")


@pytest.fixture
def headers(user, auth_headers):
    return auth_headers(user)


@pytest.fixture
def admin(make_user):
    return make_user(email="admin@example.com", plan_type="admin")
