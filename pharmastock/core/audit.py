# pharmastock/core/audit.py

"""
Audit trail for inventory and procurement events.

Events are written after the business transaction has committed and are
fire-and-forget: a failure to emit one is logged, never raised back into the
request. Persistence of the trail belongs to the log shipping pipeline that
consumes the "audit" logger.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

audit_logger = logging.getLogger("audit")
logger = logging.getLogger("pharmastock.audit")


class AuditAction:
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    SEND = "SEND"
    RECEIVE = "RECEIVE"
    CANCEL = "CANCEL"
    SALE = "SALE"
    ADJUST = "ADJUST"


class AuditLog:
    """Central audit logging for stock-affecting events."""

    @staticmethod
    def record(
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        actor_id: Optional[int],
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Emit one audit event.

        Usage:
            AuditLog.record(AuditAction.RECEIVE, "purchase_order", 12, user.id,
                            {"batches": [31, 32]})
        """
        try:
            log_entry = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "event_type": f"{entity_type}.{action.lower()}",
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "actor_id": actor_id,
            }

            if details:
                log_entry["details"] = details

            audit_logger.info(json.dumps(log_entry, default=str))
        except Exception:
            logger.warning(
                f"Failed to record audit event {action} {entity_type}#{entity_id}",
                exc_info=True,
            )
