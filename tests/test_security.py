import pytest
from bson import ObjectId

from errors import NotAuthorizedError, UnauthenticatedError
from security import (
    can_manage,
    create_token,
    decode_token,
    extract_token,
    has_role,
    hash_password,
    require_owner_or_admin,
    require_role,
    resolve_session,
    verify_password,
)

from conftest import make_user

SECRET = "unit-secret"


def test_password_hash_roundtrip():
    hashed = hash_password("Secret123")
    assert hashed != "Secret123"
    assert verify_password("Secret123", hashed)
    assert not verify_password("secret123", hashed)
    assert not verify_password("Secret123", "")


def test_token_carries_user_and_role():
    user = {"_id": ObjectId(), "role": "wholesaler"}
    claims = decode_token(create_token(user, SECRET, 5), SECRET)
    assert claims["sub"] == str(user["_id"])
    assert claims["role"] == "wholesaler"


def test_expired_token_is_rejected():
    token = create_token({"_id": ObjectId(), "role": "customer"}, SECRET, -1)
    with pytest.raises(UnauthenticatedError, match="expired"):
        decode_token(token, SECRET)


def test_tampered_token_is_rejected():
    token = create_token({"_id": ObjectId(), "role": "customer"}, "other-secret", 5)
    with pytest.raises(UnauthenticatedError):
        decode_token(token, SECRET)


def test_extract_token_prefers_bearer_header():
    assert extract_token("Bearer abc", "legacy") == "abc"
    assert extract_token(None, "legacy") == "legacy"
    assert extract_token("Basic abc", None) is None


def test_resolve_session_requires_existing_user(database):
    user = make_user(database, "Almaz")
    token = create_token(user, SECRET, 5)
    assert resolve_session(database, token, SECRET)["_id"] == user["_id"]

    database["user"].delete_one({"_id": user["_id"]})
    with pytest.raises(UnauthenticatedError, match="no longer exists"):
        resolve_session(database, token, SECRET)


def test_resolve_session_without_token():
    with pytest.raises(UnauthenticatedError):
        resolve_session(None, None, SECRET)


def test_role_and_ownership_predicates():
    owner = {"_id": ObjectId(), "role": "wholesaler"}
    other = {"_id": ObjectId(), "role": "wholesaler"}
    admin = {"_id": ObjectId(), "role": "admin"}

    assert has_role(owner, "wholesaler", "admin")
    assert not has_role(owner, "customer")
    assert can_manage(owner, owner["_id"])
    assert can_manage(admin, owner["_id"])
    assert not can_manage(other, owner["_id"])

    require_owner_or_admin(admin, str(owner["_id"]))
    with pytest.raises(NotAuthorizedError):
        require_owner_or_admin(other, owner["_id"])
    with pytest.raises(NotAuthorizedError):
        require_role(other, "admin")


def test_resolve_session_refuses_deactivated_user(database):
    user = make_user(database, "Almaz")
    token = create_token(user, SECRET, 5)
    database.update_document("user", user["_id"], {"is_active": False})
    with pytest.raises(NotAuthorizedError, match="deactivated"):
        resolve_session(database, token, SECRET)
