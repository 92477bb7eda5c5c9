"""
Audit Service - audit trail and analytics events.

Both helpers take the caller's open session so the record commits (or rolls
back) together with the mutation it describes.
"""

import json
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.orm import Session

from capstone.core.config import get_settings

settings = get_settings()


def _as_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, str):
        return value
    return json.dumps(value, default=str)


def log_audit(db: Session, user: Optional[dict], action: str, entity_type: Optional[str] = None,
              entity_id: Optional[int] = None, old_value: Any = None, new_value: Any = None,
              ip_address: Optional[str] = None) -> None:
    """Insert one audit_log row."""
    if not settings.audit_enabled:
        return
    db.execute(
        text("""
            INSERT INTO audit_log (user_type, user_id, action, entity_type, entity_id,
                old_value, new_value, ip_address)
            VALUES (:user_type, :user_id, :action, :entity_type, :entity_id,
                :old_value, :new_value, :ip)
        """),
        {
            "user_type": user["type"] if user else None,
            "user_id": user["id"] if user else None,
            "action": action, "entity_type": entity_type, "entity_id": entity_id,
            "old_value": _as_text(old_value), "new_value": _as_text(new_value), "ip": ip_address
        }
    )


def log_analytics(db: Session, event_type: str, user: Optional[dict] = None,
                  project_id: Optional[int] = None, search_query: Optional[str] = None,
                  filter_type: Optional[str] = None, filter_value: Optional[str] = None) -> None:
    """Insert one analytics row (no-op when analytics are disabled)."""
    if not settings.analytics_enabled:
        return
    db.execute(
        text("""
            INSERT INTO analytics (event_type, user_type, user_id, project_id, search_query,
                filter_type, filter_value)
            VALUES (:event_type, :user_type, :user_id, :project_id, :search_query,
                :filter_type, :filter_value)
        """),
        {
            "event_type": event_type,
            "user_type": user["type"] if user else None,
            "user_id": user["id"] if user else None,
            "project_id": project_id, "search_query": search_query,
            "filter_type": filter_type,
            "filter_value": str(filter_value) if filter_value is not None else None
        }
    )
