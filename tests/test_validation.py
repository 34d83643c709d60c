from schemas import LoginRequest, ProfileUpdateRequest, RegisterRequest
from validation import (
    validate_login,
    validate_order_status,
    validate_product,
    validate_profile_update,
    validate_registration,
)

VALID_PRODUCT = {
    "name": "Red onion",
    "description": "Fresh red onions from Adama farms",
    "category": "vegetables",
    "price": 35.5,
    "unit": "kg",
    "minimum_order": 5,
    "available_quantity": 400,
}


def fields(issues):
    return {i.field for i in issues}


def test_registration_accepts_valid_payload():
    payload = RegisterRequest(name="Abebe", email="abebe@example.com", password="Passw0rd", role="wholesaler")
    assert validate_registration(payload) == []


def test_registration_reports_every_failing_field():
    payload = RegisterRequest(name="A", email="not-an-email", password="short", role="admin")
    assert fields(validate_registration(payload)) == {"name", "email", "password", "role"}


def test_registration_password_complexity():
    payload = RegisterRequest(name="Abebe", email="abebe@example.com", password="alllowercase1")
    issues = validate_registration(payload)
    assert fields(issues) == {"password"}
    assert "uppercase" in issues[0].message


def test_login_requires_password():
    assert fields(validate_login(LoginRequest(email="a@example.com", password=""))) == {"password"}


def test_profile_phone_format():
    assert validate_profile_update(ProfileUpdateRequest(phone="0911223344")) == []
    assert fields(validate_profile_update(ProfileUpdateRequest(phone="12345"))) == {"phone"}


def test_product_valid():
    assert validate_product(VALID_PRODUCT) == []


def test_product_reports_all_failures():
    bad = {
        "name": "R",
        "description": "short",
        "category": "toys",
        "price": -1,
        "unit": "bag",
        "minimum_order": 0,
        "available_quantity": -5,
    }
    assert fields(validate_product(bad)) == {
        "name", "description", "category", "price", "unit", "minimum_order", "available_quantity",
    }


def test_product_missing_required_fields():
    assert fields(validate_product({})) == {"name", "description", "category", "price", "unit", "available_quantity"}


def test_product_partial_update_checks_only_supplied_fields():
    assert validate_product({"price": 40}, partial=True) == []
    assert fields(validate_product({"unit": "bag"}, partial=True)) == {"unit"}


def test_product_owner_is_immutable():
    assert fields(validate_product({"wholesaler": "abc"}, partial=True)) == {"wholesaler"}


def test_product_rejects_booleans_as_numbers():
    assert "price" in fields(validate_product({**VALID_PRODUCT, "price": True}))


def test_product_expiry_after_harvest():
    data = {**VALID_PRODUCT, "harvest_date": "2026-05-01", "expiry_date": "2026-04-01"}
    assert fields(validate_product(data)) == {"expiry_date"}


def test_order_status_values():
    assert validate_order_status("shipped") == []
    assert fields(validate_order_status("lost")) == {"status"}


def test_product_location_shape():
    assert validate_product({**VALID_PRODUCT, "location": {"region": "Oromia", "city": "Adama"}}) == []
    assert fields(validate_product({**VALID_PRODUCT, "location": {"city": 5}})) == {"location.city"}
    assert fields(validate_product({"location": {"junk": [1, 2]}}, partial=True)) == {"location.junk"}
    assert fields(validate_product({"location": "Adama"}, partial=True)) == {"location"}
