import pytest
from pydantic import ValidationError

from affiliate_pipeline.api_fetcher.credentials import Credentials
from affiliate_pipeline.api_fetcher.errors import DaisyconConfigError


@pytest.mark.unit
def test_credentials_are_immutable():
    creds = Credentials(username="user", password="secret", publisher_id="123")

    with pytest.raises(ValidationError):
        creds.username = "other"


@pytest.mark.unit
def test_password_is_not_exposed_in_repr():
    creds = Credentials(username="user", password="secret", publisher_id="123")

    assert "secret" not in repr(creds)
    assert creds.password.get_secret_value() == "secret"


@pytest.mark.unit
def test_publisher_id_accepts_numbers():
    creds = Credentials(username="user", password="secret", publisher_id=123)
    assert creds.publisher_id == "123"


@pytest.mark.unit
@pytest.mark.parametrize(
    "kwargs",
    [
        {"username": "", "password": "secret", "publisher_id": "1"},
        {"username": "  ", "password": "secret", "publisher_id": "1"},
        {"username": "user", "password": "", "publisher_id": "1"},
        {"username": "user", "password": "secret", "publisher_id": ""},
    ],
)
def test_empty_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        Credentials(**kwargs)


@pytest.mark.unit
def test_from_env(monkeypatch):
    monkeypatch.setenv("DAISYCON_USERNAME", "user")
    monkeypatch.setenv("DAISYCON_PASSWORD", "secret")
    monkeypatch.setenv("DAISYCON_PUBLISHER_ID", " 42 ")

    creds = Credentials.from_env()

    assert creds.username == "user"
    assert creds.publisher_id == "42"


@pytest.mark.unit
def test_from_env_reports_missing_variables(monkeypatch):
    monkeypatch.setenv("DAISYCON_USERNAME", "user")
    monkeypatch.delenv("DAISYCON_PASSWORD", raising=False)
    monkeypatch.delenv("DAISYCON_PUBLISHER_ID", raising=False)

    with pytest.raises(DaisyconConfigError) as e:
        Credentials.from_env()

    assert "DAISYCON_PASSWORD" in str(e.value)
    assert "DAISYCON_PUBLISHER_ID" in str(e.value)
    assert "DAISYCON_USERNAME" not in str(e.value)
