import secrets
import string
import time
from uuid import uuid4

_ALPHABET = string.ascii_lowercase + string.digits


def random_password(length: int = 8) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def new_meeting_id() -> str:
    return str(uuid4())


def new_friendly_id() -> str:
    return "-".join(random_password(3) for _ in range(4))


def new_record_id(meeting_id: str) -> str:
    return f"{meeting_id}-{int(time.time())}"
