import pytest

from reservacion.errors import AuthenticationRequired, ValidationError

PASSWORD = "Sup3rSecret!"


def test_create_and_authenticate(cognito):
    created = cognito.create_user("Pat@Example.com", "Pat", PASSWORD)

    assert created["uid"]
    assert created["email"] == "pat@example.com"
    assert created["username"] == "Pat"

    tokens = cognito.authenticate_user("pat@example.com", PASSWORD)
    assert tokens["token"]
    assert tokens["access_token"]


def test_duplicate_email(cognito):
    cognito.create_user("pat@example.com", "Pat", PASSWORD)
    with pytest.raises(ValidationError) as exc:
        cognito.create_user("pat@example.com", "Pat again", PASSWORD)
    assert exc.value.message == "Email already exists"


def test_wrong_password(cognito):
    cognito.create_user("pat@example.com", "Pat", PASSWORD)
    with pytest.raises(AuthenticationRequired) as exc:
        cognito.authenticate_user("pat@example.com", "Wr0ngPassword!")
    assert exc.value.message == "Invalid credentials"


def test_set_password(cognito):
    cognito.create_user("pat@example.com", "Pat", PASSWORD)
    cognito.set_password("pat@example.com", "An0therSecret!")

    assert cognito.authenticate_user("pat@example.com", "An0therSecret!")["token"]


def test_delete_user(cognito):
    cognito.create_user("pat@example.com", "Pat", PASSWORD)

    assert cognito.delete_user("pat@example.com") is True
    assert cognito.delete_user("pat@example.com") is False
    with pytest.raises(AuthenticationRequired):
        cognito.authenticate_user("pat@example.com", PASSWORD)
