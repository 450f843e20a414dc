import time

from itsdangerous import BadSignature, URLSafeTimedSerializer

from config import get_settings

FORM_PURPOSE = "budget-form"


def _serializer(purpose: str) -> URLSafeTimedSerializer:
    settings = get_settings()
    return URLSafeTimedSerializer(settings.csrf_secret, salt=f"csrf-{purpose}")


def generate_csrf_token(purpose: str = FORM_PURPOSE, max_age_hours: int = 2) -> str:
    expiry = int(time.time()) + (max_age_hours * 3600)
    return _serializer(purpose).dumps({"p": purpose, "exp": expiry})


def validate_csrf_token(
    token: str, purpose: str = FORM_PURPOSE, max_age_hours: int = 2
) -> bool:
    if not token:
        return False
    try:
        data = _serializer(purpose).loads(token, max_age=max_age_hours * 3600)
    except BadSignature:
        return False
    if data.get("p") != purpose:
        return False
    return int(time.time()) <= data.get("exp", 0)
