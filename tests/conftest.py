import os
import sys
from pathlib import Path

# Configure an in-memory database and the testing config before any app import
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("APP_ENV", "testing")

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest  # noqa: E402

from api import create_app  # noqa: E402
from api.config import TestingConfig  # noqa: E402
from models import storage  # noqa: E402
from models.user import Role, User  # noqa: E402
from utils.security import hash_password  # noqa: E402
from utils.sessions import build_auth_services  # noqa: E402
from tests.helpers import PASSWORD  # noqa: E402


def _config_mapping():
    return {key: getattr(TestingConfig, key) for key in dir(TestingConfig) if key.isupper()}


@pytest.fixture(autouse=True)
def clean_db():
    storage.reset()
    yield
    storage.close()


@pytest.fixture
def config():
    return _config_mapping()


@pytest.fixture
def services(config):
    """Codec, registry, issuer and rotation engine without a Flask app."""
    return build_auth_services(config, storage=storage)


@pytest.fixture
def reset_tokens():
    return []


@pytest.fixture
def app(reset_tokens):
    return create_app("testing", reset_notifier=lambda user, token: reset_tokens.append((user.id, token)))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user():
    """Create and persist a user; returns its id."""
    counter = {"n": 0}

    def _make(role=Role.PATIENT, email=None, password=PASSWORD, is_active=True, **fields):
        counter["n"] += 1
        user = User.create(
            name=fields.pop("name", f"User {counter['n']}"),
            email=email or f"user{counter['n']}@example.com",
            password_hash=hash_password(password) if password else None,
            role=role,
            is_active=is_active,
            **fields,
        )
        return user.id

    return _make
