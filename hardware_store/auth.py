import secrets
from typing import Any

from .errors import Forbidden


def verify_admin_code(supplied: Any, expected: str) -> None:
    """Shared-secret gate for organizer endpoints.

    An unset admin code matches nothing, and neither does anything that is not a string.
    """
    if not expected or not isinstance(supplied, str):
        raise Forbidden("Invalid admin code")
    if not secrets.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
        raise Forbidden("Invalid admin code")
