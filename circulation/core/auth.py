import logging
from typing import Optional
from itsdangerous import URLSafeTimedSerializer, BadSignature
from circulation.configs import SEED
from circulation.core.models import Role
from circulation.schemas.operator import Operator

logger = logging.getLogger(__name__)

SERIALIZER = None  # Will be initialized lazily
COOKIE_TTL = 604800

def _get_serializer():
    """Get or initialize the SERIALIZER lazily."""
    global SERIALIZER
    if SERIALIZER is None:
        SERIALIZER = URLSafeTimedSerializer(SEED, salt="operator-session")
    return SERIALIZER

def create_session_cookie(operator_id: str, role: Role = Role.OPERATOR) -> str:
    """Returns a signed session token naming the operator and their role."""
    serializer = _get_serializer()
    return serializer.dumps({"operator": operator_id, "role": Role(role).value})

def verify_session_cookie(session: Optional[str]) -> Optional[Operator]:
    """Verifies a session token; returns the Operator or None if the token
    is missing, tampered with, expired or malformed."""
    if not session:
        return None
    try:
        data = _get_serializer().loads(session, max_age=COOKIE_TTL)
    except BadSignature:
        return None
    if not isinstance(data, dict) or not data.get("operator"):
        return None
    try:
        return Operator(operator_id=data["operator"], role=Role(data.get("role", Role.OPERATOR.value)))
    except ValueError:
        logger.warning(f"Rejected session with unknown role {data.get('role')!r}")
        return None
