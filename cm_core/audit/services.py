# cm_core/audit/services.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from cm_core.audit.models import CaseLog


@dataclass(frozen=True)
class AuditRecord:
    id: int
    case_id: UUID
    actor_id: int | None
    action: str
    description: str
    created_at: datetime
    metadata: Dict[str, Any]


class AuditService:
    """
    Central audit writer. Append-only.

    Callers that change case state must call append() inside the same
    transaction as the case write, so the trail is never ahead of or behind
    the case.
    """

    @staticmethod
    @transaction.atomic
    def append(
        *,
        case_id: UUID,
        actor_id: int | None,
        action: str,
        description: str = "",
        metadata: Optional[Dict[str, Any]] = None,
        created_at: datetime | None = None,
    ) -> AuditRecord:
        metadata = metadata or {}

        entry = CaseLog.objects.create(
            case_id=case_id,
            actor_id=actor_id,
            action=action,
            description=description,
            metadata=metadata,
            created_at=created_at or timezone.now(),
        )

        return AuditRecord(
            id=entry.id,
            case_id=case_id,
            actor_id=actor_id,
            action=action,
            description=description,
            created_at=entry.created_at,
            metadata=metadata,
        )
