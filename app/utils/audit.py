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


def audit(event: str, *, email: Optional[str] = None, entry_id: Optional[str] = None, **fields: Any) -> None:
    """Emit a minimally structured audit log as a single JSON line.

    Never include verification tokens or signatures. Email is hashed to limit PII exposure.
    """
    payload: Dict[str, Any] = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": event,
    }
    if email:
        payload["email_hash"] = email_hash(email)
    if entry_id:
        payload["entry_id"] = str(entry_id)
    if fields:
        payload.update(fields)
    try:
        _logger.info(json.dumps(payload, ensure_ascii=False, default=str))
    except (TypeError, ValueError):
        # Fallback to plain message if JSON encoding fails
        _logger.info(f"AUDIT {event} email_hash={payload.get('email_hash')} entry_id={entry_id} fields={fields}")
