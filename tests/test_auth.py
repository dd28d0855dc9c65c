"""Tests for accounts and session tokens."""

import pytest

from unscroll import auth
from unscroll.auth import AuthService, hash_password, verify_password
from unscroll.constants import SESSIONS_COLLECTION, USERS_COLLECTION
from unscroll.errors import InvalidInputError, ProviderUnavailableError, UnauthenticatedError


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch):
    monkeypatch.setattr(auth, "BCRYPT_ROUNDS", 4)


@pytest.fixture
def auth_service(store):
    return AuthService(store, demo_email="demo@example.com", demo_password="demo-pass")


def test_password_hashing():
    password_hash = hash_password("hunter22")

    assert password_hash.startswith("$2b$04$")
    assert verify_password("hunter22", password_hash)
    assert not verify_password("hunter23", password_hash)
    assert hash_password("hunter22") != password_hash


def test_verify_password_rejects_unusable_hashes():
    assert not verify_password("hunter22", "")
    assert not verify_password("hunter22", "not-a-bcrypt-hash")
    assert not verify_password("x" * 73, hash_password("hunter22"))


def test_register_stores_only_bcrypt_hash(store, auth_service):
    profile = auth_service.register("ada@example.com", "ada", "secret1")

    doc = store.get(USERS_COLLECTION, profile.id)
    assert "password_salt" not in doc
    assert verify_password("secret1", doc["password_hash"])


def test_register(store, auth_service):
    profile = auth_service.register(" Ada@Example.com ", "ada", "secret1")

    assert profile.email == "ada@example.com"
    assert profile.username == "ada"
    assert not profile.is_demo

    doc = store.get(USERS_COLLECTION, profile.id)
    assert doc["password_hash"] != "secret1"
    assert "password_hash" not in profile.model_dump()


@pytest.mark.parametrize(
    "email, username, password",
    [
        ("not-an-email", "ada", "secret1"),
        ("ada@example.com", "ad", "secret1"),
        ("ada@example.com", "ada", "short"),
        ("ada@example.com", "ada", "é" * 40),
    ],
)
def test_register_validation(auth_service, email, username, password):
    with pytest.raises(InvalidInputError):
        auth_service.register(email, username, password)


def test_register_rejects_duplicates(auth_service):
    auth_service.register("ada@example.com", "ada", "secret1")

    with pytest.raises(InvalidInputError, match="Username"):
        auth_service.register("other@example.com", "ada", "secret1")
    with pytest.raises(InvalidInputError, match="Email"):
        auth_service.register("ADA@example.com", "ada2", "secret1")


def test_login_verify_logout(store, auth_service):
    profile = auth_service.register("ada@example.com", "ada", "secret1")

    token = auth_service.login("ADA@example.com", "secret1")
    user = auth_service.verify(token)

    assert user.id == profile.id
    assert user.username == "ada"
    assert store.get(SESSIONS_COLLECTION, token) is None

    assert auth_service.logout(token) is True
    with pytest.raises(UnauthenticatedError):
        auth_service.verify(token)


def test_login_rejects_bad_credentials(auth_service):
    auth_service.register("ada@example.com", "ada", "secret1")

    with pytest.raises(UnauthenticatedError):
        auth_service.login("ada@example.com", "wrong-pass")
    with pytest.raises(UnauthenticatedError):
        auth_service.login("nobody@example.com", "secret1")


def test_verify_rejects_missing_and_unknown_tokens(auth_service):
    with pytest.raises(UnauthenticatedError):
        auth_service.verify(None)
    with pytest.raises(UnauthenticatedError):
        auth_service.verify("made-up-token")


def test_expired_session_is_removed(store):
    service = AuthService(store, session_ttl_hours=0)
    service.register("ada@example.com", "ada", "secret1")
    token = service.login("ada@example.com", "secret1")

    with pytest.raises(UnauthenticatedError, match="expired"):
        service.verify(token)
    assert store.query(SESSIONS_COLLECTION) == []


def test_demo_login_creates_account_once(store, auth_service):
    first = auth_service.verify(auth_service.demo_login())
    second = auth_service.verify(auth_service.demo_login())

    assert first.is_demo
    assert first.id == second.id
    assert len(store.query(USERS_COLLECTION)) == 1


def test_demo_login_follows_password_change(store, auth_service):
    auth_service.demo_login()
    changed = AuthService(store, demo_email="demo@example.com", demo_password="new-demo-pass")

    user = changed.verify(changed.demo_login())

    assert user.is_demo
    with pytest.raises(UnauthenticatedError):
        changed.login("demo@example.com", "demo-pass")


def test_demo_login_requires_configuration(store):
    with pytest.raises(ProviderUnavailableError):
        AuthService(store).demo_login()
