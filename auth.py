import argparse
import logging
from typing import Optional

from fastapi import Header, HTTPException
from itsdangerous import BadData, URLSafeTimedSerializer

from config import get_settings

logger = logging.getLogger(__name__)


class InvalidToken(ValueError):
    pass


def _serializer() -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.auth_secret, salt="auth-token")


def issue_token(user_id: str) -> str:
    return _serializer().dumps({"u": str(user_id)})


def resolve_token(token: str, max_age_hours: Optional[int] = None) -> str:
    if max_age_hours is None:
        max_age_hours = get_settings().token_max_age_hours
    try:
        data = _serializer().loads(token, max_age=max_age_hours * 3600)
    except BadData as exc:
        raise InvalidToken("Token signature is invalid or expired") from exc

    user_id = data.get("u") if isinstance(data, dict) else None
    if not user_id:
        raise InvalidToken("Token carries no user")
    return str(user_id)


def get_current_user_id(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authorized, no token")
    token = authorization[len("Bearer ") :].strip()
    try:
        return resolve_token(token)
    except InvalidToken as exc:
        logger.warning(f"auth_rejected: reason={exc}")
        raise HTTPException(
            status_code=401, detail="Not authorized, token failed"
        ) from exc


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Issue a bearer token for a user id")
    parser.add_argument("user_id")
    args = parser.parse_args(argv)
    print(issue_token(args.user_id))


if __name__ == "__main__":
    main()
