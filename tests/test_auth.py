import pytest
from itsdangerous import URLSafeTimedSerializer

import auth
from auth import issue_token, verify_token
from config import get_settings

PREVIOUS_DEFAULT_SECRET = (
    "3f0c2a9d58e14b7a9c6e21d4b80f57aa1d9e6c3b72f84a05b1e93d6c4f28a7e1"
)


@pytest.fixture
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_unset_secret_rejects_tokens_signed_with_known_key(
    monkeypatch, fresh_settings
) -> None:
    monkeypatch.delenv("FINANCE_AUTH_SECRET", raising=False)

    forged = URLSafeTimedSerializer(PREVIOUS_DEFAULT_SECRET, salt="api-token").dumps(
        {"u": 42}
    )

    assert get_settings().auth_secret != PREVIOUS_DEFAULT_SECRET
    assert verify_token(forged) is None
    # Tokens issued by this process still verify.
    assert verify_token(issue_token(42)) == 42


def test_configured_secret_signs_tokens(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("FINANCE_AUTH_SECRET", "test-secret")

    token = URLSafeTimedSerializer("test-secret", salt="api-token").dumps({"u": 7})

    assert verify_token(token) == 7
    assert verify_token(token + "x") is None


def test_token_without_user_id_is_rejected(monkeypatch, fresh_settings) -> None:
    monkeypatch.setenv("FINANCE_AUTH_SECRET", "test-secret")
    token = URLSafeTimedSerializer("test-secret", salt="api-token").dumps({"u": "7"})
    assert verify_token(token) is None


def test_token_cli_requires_configured_secret(monkeypatch, capsys) -> None:
    monkeypatch.delenv("FINANCE_AUTH_SECRET", raising=False)
    monkeypatch.setattr("sys.argv", ["finance-token", "3"])

    with pytest.raises(SystemExit):
        auth.main()
    assert "FINANCE_AUTH_SECRET" in capsys.readouterr().err
