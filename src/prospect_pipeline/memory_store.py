"""
In-memory prospect store.

Same contract as the SQL repository, for tests and single-process use.
Records are copied on the way in and out so callers never share state
with the store.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from domain.repositories import IProspectStore

from .conversion import mark_converted
from .email_dispatch import SentEmail
from .errors import ConcurrentModification, ProspectNotFound, ValidationError
from .models import Investor, InvestorDraft, Prospect, ValidationDocument
from .states import ProspectStatus

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class InMemoryProspectStore(IProspectStore):
    """Dictionary-backed store; an asyncio.Lock makes each write atomic."""

    def __init__(self):
        self._prospects: Dict[str, Prospect] = {}
        self._investors: Dict[str, Investor] = {}
        self._emails: Dict[str, List[SentEmail]] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _snapshot(prospect: Prospect) -> Prospect:
        return prospect.copy(
            documents=[replace(d) for d in prospect.documents],
            accreditation_bases=list(prospect.accreditation_bases),
            investment_goals=list(prospect.investment_goals),
        )

    def _get(self, prospect_id: str) -> Prospect:
        prospect = self._prospects.get(prospect_id)
        if prospect is None:
            raise ProspectNotFound(prospect_id)
        return prospect

    async def find_by_id(self, prospect_id: str) -> Optional[Prospect]:
        prospect = self._prospects.get(prospect_id)
        return self._snapshot(prospect) if prospect else None

    async def find_by_email(self, email: str, fund_id: str) -> Optional[Prospect]:
        for prospect in self._prospects.values():
            if prospect.fund_id == fund_id and prospect.email == email:
                return self._snapshot(prospect)
        return None

    async def list_by_fund(
        self,
        fund_id: str,
        status: Optional[ProspectStatus] = None,
    ) -> List[Prospect]:
        matches = [
            self._snapshot(p) for p in self._prospects.values()
            if p.fund_id == fund_id and (status is None or p.status == status)
        ]
        return sorted(matches, key=lambda p: p.created_at or _EPOCH, reverse=True)

    async def create(self, prospect: Prospect) -> Prospect:
        async with self._lock:
            if prospect.id in self._prospects:
                raise ValidationError(f"Prospect {prospect.id} already exists", field="id")
            if any(
                p.fund_id == prospect.fund_id and p.email == prospect.email
                for p in self._prospects.values()
            ):
                raise ValidationError(
                    f"A prospect with email {prospect.email} already exists for this fund",
                    field="email",
                )
            self._prospects[prospect.id] = self._snapshot(prospect)
        return self._snapshot(prospect)

    def _apply_status(
        self,
        prospect_id: str,
        new_status: ProspectStatus,
        now: datetime,
        extra_fields: Optional[Dict[str, Any]],
        expected_status: ProspectStatus,
        documents: Sequence[ValidationDocument],
    ) -> Prospect:
        current = self._get(prospect_id)
        if current.status != expected_status:
            raise ConcurrentModification(prospect_id, expected_status.value)

        changes = dict(extra_fields or {})
        changes.pop("documents", None)
        changes.update({"status": new_status, "updated_at": now})

        merged = {d.id: d for d in current.documents}
        for document in documents:
            merged[document.id] = replace(document)

        updated = current.copy(documents=list(merged.values()), **changes)
        self._prospects[prospect_id] = updated
        return updated

    async def update_status(
        self,
        prospect_id: str,
        new_status: ProspectStatus,
        now: datetime,
        extra_fields: Optional[Dict[str, Any]] = None,
        *,
        expected_status: ProspectStatus,
        documents: Sequence[ValidationDocument] = (),
    ) -> Prospect:
        async with self._lock:
            updated = self._apply_status(
                prospect_id, new_status, now, extra_fields, expected_status, documents,
            )
        return self._snapshot(updated)

    async def update_fields(self, prospect_id: str, fields: Dict[str, Any], now: datetime) -> Prospect:
        if "status" in fields:
            raise ValidationError("Use update_status to change the status", field="status")
        async with self._lock:
            updated = self._get(prospect_id).copy(updated_at=now, **fields)
            self._prospects[prospect_id] = updated
        return self._snapshot(updated)

    async def create_investor_from_prospect(self, draft: InvestorDraft, now: datetime) -> Investor:
        async with self._lock:
            current = self._get(draft.prospect_id)
            if current.status != ProspectStatus.DOCUSIGN_SIGNED:
                raise ConcurrentModification(draft.prospect_id, ProspectStatus.DOCUSIGN_SIGNED.value)

            self._prospects[draft.prospect_id] = mark_converted(current, draft.id, now).unwrap()
            investor = Investor.from_draft(draft)
            self._investors[investor.id] = investor
        logger.info(f"Investor {investor.id} created from prospect {draft.prospect_id}")
        return replace(investor)

    async def find_investor(self, investor_id: str) -> Optional[Investor]:
        investor = self._investors.get(investor_id)
        return replace(investor) if investor else None

    async def list_investors(self, fund_id: Optional[str] = None) -> List[Investor]:
        return [
            replace(i) for i in self._investors.values()
            if fund_id is None or i.fund_id == fund_id
        ]

    async def record_email(self, sent: SentEmail) -> None:
        async with self._lock:
            self._emails.setdefault(sent.prospect_id, []).append(sent)

    async def list_emails(self, prospect_id: str) -> List[SentEmail]:
        return list(self._emails.get(prospect_id, []))
