"""Identity store and token service: registration rules, login, admin-only user management, JWT round trip."""
from datetime import timedelta

import pytest

from app.errors import (
    EmailAlreadyRegistered,
    Forbidden,
    InvalidInput,
    InvalidToken,
    LastAdminRemoval,
    NotFound,
    TokenExpired,
    Unauthenticated,
)
from app.models.project import Project, ProjectMember
from app.models.user import User
from app.schemas.auth import UserUpdateRequest
from app.services import projects, users
from app.services.auth import TokenService, hash_password, verify_password

def test_hash_and_verify():
    hashed = hash_password("hunter22")
    assert hashed != "hunter22"
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)
    assert not verify_password("hunter22", "not-a-bcrypt-hash")


def test_register_user_normalizes_email(db):
    user = users.register_user(db, "  Dana ", "Dana@Example.COM ", "s3cret!")
    assert user.name == "Dana"
    assert user.email == "dana@example.com"
    assert user.role == "user"
    assert user.password_hash != "s3cret!"


def test_register_admin_email(db):
    assert users.register_user(db, "Root", "ROOT@example.com", "s3cret!").role == "admin"


def test_register_duplicate_email(db):
    users.register_user(db, "Dana", "dana@example.com", "s3cret!")
    with pytest.raises(EmailAlreadyRegistered):
        users.register_user(db, "Other", "DANA@example.com", "s3cret!")
    assert db.query(User).count() == 1


@pytest.mark.parametrize(
    "name,email,password",
    [("Al", "al@example.com", "s3cret!"), ("Alan", "not-an-email", "s3cret!"), ("Alan", "al@example.com", "12345")],
)
def test_register_rejects_bad_input(db, name, email, password):
    with pytest.raises(InvalidInput):
        users.register_user(db, name, email, password)


def test_authenticate(db, make_user, user_password):
    user = make_user()
    assert users.authenticate(db, user.email.upper(), user_password).id == user.id
    with pytest.raises(Unauthenticated):
        users.authenticate(db, user.email, "wrong-password")
    with pytest.raises(Unauthenticated):
        users.authenticate(db, "nobody@example.com", user_password)


def test_list_users_admin_only(db, make_user):
    admin, plain = make_user(role="admin"), make_user()
    items, total = users.list_users(db, admin)
    assert total == 2
    assert [u.id for u in items] == [admin.id, plain.id]
    with pytest.raises(Forbidden):
        users.list_users(db, plain)


def test_update_user_self_or_admin(db, make_user):
    admin, alice, bob = make_user(role="admin"), make_user(), make_user()
    with pytest.raises(Forbidden):
        users.update_user(db, bob, alice.id, UserUpdateRequest(name="Mallory"))
    with pytest.raises(Forbidden):
        users.update_user(db, alice, alice.id, UserUpdateRequest(role="admin"))

    updated = users.update_user(db, alice, alice.id, UserUpdateRequest(name="Alice Liddell", password="n3wpass"))
    assert updated.name == "Alice Liddell"
    assert users.authenticate(db, alice.email, "n3wpass").id == alice.id

    promoted = users.update_user(db, admin, bob.id, UserUpdateRequest(role="admin"))
    assert promoted.role == "admin"
    with pytest.raises(InvalidInput):
        users.update_user(db, admin, bob.id, UserUpdateRequest(role="superuser"))


def test_update_user_email_stays_unique(db, make_user):
    alice, bob = make_user(), make_user()
    with pytest.raises(EmailAlreadyRegistered):
        users.update_user(db, alice, alice.id, UserUpdateRequest(email=bob.email.upper()))
    same = users.update_user(db, alice, alice.id, UserUpdateRequest(email=alice.email))
    assert same.email == alice.email


def test_delete_user_rules(db, make_user):
    admin, alice, bob = make_user(role="admin"), make_user(), make_user()
    with pytest.raises(Forbidden):
        users.delete_user(db, alice, bob.id)
    with pytest.raises(Forbidden):
        users.delete_user(db, admin, admin.id)
    with pytest.raises(NotFound):
        users.delete_user(db, admin, 9999)
    users.delete_user(db, admin, bob.id)
    assert db.query(User).filter(User.id == bob.id).count() == 0


def test_delete_user_blocked_when_sole_admin_elsewhere(db, make_user, make_project):
    admin, alice, bob = make_user(role="admin"), make_user(), make_user()
    project = make_project(alice)
    projects.add_member(db, project.id, alice.id, bob.id, "admin")
    projects.remove_member(db, project.id, alice.id, alice.id)
    with pytest.raises(LastAdminRemoval):
        users.delete_user(db, admin, bob.id)


def test_delete_user_takes_created_projects(db, make_user, make_project):
    admin, alice, bob = make_user(role="admin"), make_user(), make_user()
    project_id = make_project(alice, members=(bob,)).id
    users.delete_user(db, admin, alice.id)
    assert db.query(Project).filter(Project.id == project_id).count() == 0
    assert db.query(ProjectMember).count() == 0


def test_token_round_trip():
    tokens = TokenService("test-secret", "HS256", 1)
    claims = tokens.decode(tokens.issue(42, "a@example.com", "admin"))
    assert claims["sub"] == "42"
    assert claims["email"] == "a@example.com"
    assert claims["role"] == "admin"


def test_token_expired_and_invalid():
    tokens = TokenService("test-secret")
    expired = tokens.issue(1, "a@example.com", "user", expires_in=timedelta(seconds=-30))
    with pytest.raises(TokenExpired):
        tokens.decode(expired)
    with pytest.raises(InvalidToken):
        tokens.decode("not.a.jwt")
    forged = TokenService("other-secret").issue(1, "a@example.com", "user")
    with pytest.raises(InvalidToken):
        tokens.decode(forged)
