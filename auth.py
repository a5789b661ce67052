import logging
import os
import sys
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from config import get_settings

logger = logging.getLogger(__name__)


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.auth_secret, salt="api-token")


def issue_token(user_id: int) -> str:
    return _serializer().dumps({"u": user_id})


def verify_token(token: str) -> Optional[int]:
    """Return the user id carried by ``token``, or None when it is invalid
    or older than the configured max age."""
    max_age = get_settings().token_max_age_hours * 3600
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        logger.info("auth_failed: reason=expired")
        return None
    except BadSignature:
        logger.info("auth_failed: reason=bad_signature")
        return None

    user_id = data.get("u") if isinstance(data, dict) else None
    if not isinstance(user_id, int):
        return None
    return user_id


def main() -> None:
    if len(sys.argv) != 2 or not sys.argv[1].isdigit():
        print("usage: finance-token <user_id>", file=sys.stderr)
        raise SystemExit(2)
    if not os.getenv("FINANCE_AUTH_SECRET"):
        print("FINANCE_AUTH_SECRET must be set to issue tokens", file=sys.stderr)
        raise SystemExit(2)
    print(issue_token(int(sys.argv[1])))


if __name__ == "__main__":
    main()
