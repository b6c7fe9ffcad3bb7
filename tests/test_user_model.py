# File: tests/test_user_model.py

import pytest
from sqlalchemy import func, select

from app.core.errors import ValidationError
from app.core.security import CredentialManager
from app.models.user import CREDENTIAL_MANAGER_KEY, User, password_changed


def create_user(db, password="Sup3rSecret!", **overrides) -> User:
    fields = dict(
        username="alice",
        email="alice@mailbox.org",
        full_name="Alice Example",
        password=password,
    )
    fields.update(overrides)
    user = User(**fields)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def count_users(db) -> int:
    return db.scalar(select(func.count()).select_from(User))


def test_password_hashed_on_insert(db):
    user = create_user(db)
    assert user.password != "Sup3rSecret!"
    assert len(user.password) > len("Sup3rSecret!")
    assert user.verify_password("Sup3rSecret!")
    assert not user.verify_password("wrong")


def test_unrelated_update_keeps_hash(db):
    user = create_user(db)
    before = user.password

    user.email = "alice@newmail.org"
    db.commit()
    db.refresh(user)

    assert user.email == "alice@newmail.org"
    assert user.password == before


def test_refresh_token_update_keeps_hash(db):
    user = create_user(db)
    before = user.password

    user.refresh_token = "some-token"
    db.commit()
    db.refresh(user)

    assert user.password == before


def test_reassigning_stored_hash_does_not_rehash(db):
    user = create_user(db)
    before = user.password

    user.password = before
    assert not password_changed(user)
    db.commit()
    db.refresh(user)

    assert user.password == before


def test_password_change_rehashes(db):
    user = create_user(db)
    before = user.password

    user.password = "N3wSecret!"
    assert password_changed(user)
    db.commit()
    db.refresh(user)

    assert user.password != before
    assert user.verify_password("N3wSecret!")
    assert not user.verify_password("Sup3rSecret!")


def test_empty_password_aborts_insert(db):
    user = User(username="bob", email="bob@mailbox.org", full_name="Bob", password="")
    db.add(user)
    with pytest.raises(ValidationError):
        db.commit()
    db.rollback()
    assert count_users(db) == 0


def test_missing_password_aborts_insert(db):
    db.add(User(username="bob", email="bob@mailbox.org", full_name="Bob"))
    with pytest.raises(ValidationError):
        db.commit()
    db.rollback()
    assert count_users(db) == 0


def test_timestamps_populated(db):
    user = create_user(db)
    assert user.created_at is not None
    assert user.updated_at is not None


def test_session_manager_sets_cost_factor(session_factory, token_config):
    cheap = CredentialManager(token_config.model_copy(update={"bcrypt_rounds": 4}))
    with session_factory(info={CREDENTIAL_MANAGER_KEY: cheap}) as db:
        user = create_user(db)
        assert user.password.startswith("$2b$04$")
        assert user.verify_password("Sup3rSecret!")

        user.password = "N3wSecret!"
        db.commit()
        db.refresh(user)
        assert user.password.startswith("$2b$04$")


def test_cost_factor_defaults_to_process_manager(db):
    user = create_user(db)
    assert user.password.startswith("$2b$10$")
