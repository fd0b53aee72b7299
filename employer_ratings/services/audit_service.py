"""
Audit Service

Immutable, hash-chained audit trail for rating and policy changes.
Every published rating and every policy version change writes one entry.
"""

import hashlib
import json
from uuid import uuid4

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from employer_ratings.models import AuditLog


class AuditService:
    """Immutable, hash-chained audit trail."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _calculate_hash(self, content: dict, previous_hash: str | None) -> str:
        """SHA-256 hash of entry contents + previous hash."""
        payload = {
            "content": content,
            "previous_hash": previous_hash or "",
        }
        raw = json.dumps(payload, sort_keys=True, default=str)
        return hashlib.sha256(raw.encode()).hexdigest()

    async def _get_latest_hash(self) -> str | None:
        result = await self.session.execute(
            select(AuditLog.current_hash)
            .order_by(AuditLog.id.desc())
            .limit(1)
        )
        return result.scalar()

    async def log_event(
        self,
        event_type: str,
        actor: str,
        action: str,
        resource_type: str | None = None,
        resource_id: str | None = None,
        details: dict | None = None,
    ) -> AuditLog:
        """
        Write an immutable audit entry.

        Args:
            event_type: e.g. "rating_published", "policy_published"
            actor: e.g. "system", "admin@example.com", "batch"
            action: Human-readable description
            resource_type: "organization", "weight_set", "threshold_table", ...
            resource_id: The ID of the affected resource
            details: Full event details as dict
        """
        previous_hash = await self._get_latest_hash()

        # Round-trip through JSON so the hashed content matches what is stored
        entry_details = json.loads(json.dumps(details or {}, default=str))
        content_for_hash = {
            "event_type": event_type,
            "actor": actor,
            "action": action,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "details": entry_details,
        }
        current_hash = self._calculate_hash(content_for_hash, previous_hash)

        entry = AuditLog(
            event_id=str(uuid4()),
            event_type=event_type,
            actor=actor,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            details=entry_details,
            previous_hash=previous_hash,
            current_hash=current_hash,
        )
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def log_rating_published(
        self,
        organization_id: int,
        rating_date,
        final_rating: str,
        final_score,
        gate_reason: str | None,
        replaced: bool,
        actor: str = "system",
    ) -> AuditLog:
        verb = "Recalculated" if replaced else "Published"
        return await self.log_event(
            event_type="rating_published",
            actor=actor,
            action=f"{verb} rating {final_rating} for organization {organization_id} on {rating_date}",
            resource_type="organization",
            resource_id=str(organization_id),
            details={
                "rating_date": rating_date,
                "final_rating": final_rating,
                "final_score": final_score,
                "gate_reason": gate_reason,
                "replaced": replaced,
            },
        )

    async def log_policy_published(self, kind: str, name: str, version: int, actor: str, details: dict) -> AuditLog:
        return await self.log_event(
            event_type="policy_published",
            actor=actor,
            action=f"Published {kind} '{name}' version {version}",
            resource_type=kind,
            resource_id=f"{name}:{version}",
            details=details,
        )

    async def log_policy_deactivated(self, kind: str, name: str, version: int, actor: str) -> AuditLog:
        return await self.log_event(
            event_type="policy_deactivated",
            actor=actor,
            action=f"Deactivated {kind} '{name}' version {version}",
            resource_type=kind,
            resource_id=f"{name}:{version}",
            details={"name": name, "version": version},
        )

    async def log_batch_recalculated(self, summary: dict, actor: str = "system") -> AuditLog:
        return await self.log_event(
            event_type="batch_recalculated",
            actor=actor,
            action=(
                f"Batch recalculation for {summary.get('as_of_date')}: "
                f"{summary.get('succeeded', 0)} succeeded, {summary.get('failed', 0)} failed"
            ),
            resource_type="batch",
            resource_id=str(summary.get("as_of_date")),
            details=summary,
        )

    async def verify_chain_integrity(self) -> dict:
        """Walk the full chain and verify each entry's hash."""
        result = await self.session.execute(
            select(AuditLog).order_by(AuditLog.id.asc())
        )
        entries = list(result.scalars())

        if not entries:
            return {"valid": True, "entries_checked": 0, "first_invalid": None}

        for i, entry in enumerate(entries):
            expected_prev = entries[i - 1].current_hash if i > 0 else None
            if entry.previous_hash != expected_prev:
                return {
                    "valid": False,
                    "entries_checked": i + 1,
                    "first_invalid": entry.event_id,
                    "reason": "previous_hash mismatch",
                }

            content = {
                "event_type": entry.event_type,
                "actor": entry.actor,
                "action": entry.action,
                "resource_type": entry.resource_type,
                "resource_id": entry.resource_id,
                "details": entry.details,
            }
            if entry.current_hash != self._calculate_hash(content, entry.previous_hash):
                return {
                    "valid": False,
                    "entries_checked": i + 1,
                    "first_invalid": entry.event_id,
                    "reason": "current_hash mismatch (data tampered)",
                }

        return {"valid": True, "entries_checked": len(entries), "first_invalid": None}

    async def get_entries(
        self,
        event_type: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AuditLog]:
        query = select(AuditLog).order_by(AuditLog.id.desc())

        if event_type:
            query = query.where(AuditLog.event_type == event_type)
        if resource_type:
            query = query.where(AuditLog.resource_type == resource_type)
        if resource_id:
            query = query.where(AuditLog.resource_id == resource_id)

        query = query.offset(offset).limit(limit)
        result = await self.session.execute(query)
        return list(result.scalars())

    async def get_entry_count(self, event_type: str | None = None) -> int:
        query = select(func.count()).select_from(AuditLog)
        if event_type:
            query = query.where(AuditLog.event_type == event_type)
        result = await self.session.execute(query)
        return result.scalar() or 0
