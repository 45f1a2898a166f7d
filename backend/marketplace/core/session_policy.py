"""
Session lifetime policy per role

Each role gets an idle timeout (time since last activity) and an absolute
lifetime (time since the session was created).
"""
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Tuple

SESSION_POLICY: Dict[str, Tuple[timedelta, timedelta]] = {
    "ADMIN": (timedelta(minutes=30), timedelta(hours=12)),
    "SUPER_ADMIN": (timedelta(minutes=30), timedelta(hours=12)),
    "SHOPPER": (timedelta(days=7), timedelta(days=30)),
    "SUPPLIER": (timedelta(minutes=60), timedelta(days=7)),
    "SUPPLIER_RIDER": (timedelta(minutes=60), timedelta(days=7)),
}
DEFAULT_POLICY = (timedelta(hours=24), timedelta(days=30))


def norm_role(role: Optional[str]) -> str:
    return (role or "").strip().upper()


def policy_for(role: Optional[str]) -> Tuple[timedelta, timedelta]:
    """Return (idle, absolute) limits for a role."""
    return SESSION_POLICY.get(norm_role(role), DEFAULT_POLICY)


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def session_expiry_reason(
    role: Optional[str],
    created_at: datetime,
    last_seen_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> Optional[str]:
    """
    Check a session against the policy for its role.

    Returns:
        None when the session is still valid, otherwise "idle" or "absolute"
    """
    now = _aware(now or datetime.now(timezone.utc))
    idle, absolute = policy_for(role)

    if now - _aware(created_at) > absolute:
        return "absolute"
    if now - _aware(last_seen_at or created_at) > idle:
        return "idle"
    return None
