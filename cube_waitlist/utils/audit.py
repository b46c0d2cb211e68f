import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

_logger = logging.getLogger("audit")


def email_hash(email: Optional[str]) -> Optional[str]:
    if not email:
        return None
    h = hashlib.sha256(email.lower().encode()).hexdigest()
    return h[:12]


def audit(event: str, *, email: Optional[str] = None, **fields: Any) -> None:
    """Emit one waitlist event as a single JSON line on the ``audit`` logger.

    The address itself never reaches the log; only a short hash of it does.
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
    }
    if email:
        payload["email_hash"] = email_hash(email)
    if fields:
        payload.update(fields)
    try:
        _logger.info(json.dumps(payload, ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        _logger.info(f"AUDIT {event} email_hash={payload.get('email_hash')} fields={fields}")
