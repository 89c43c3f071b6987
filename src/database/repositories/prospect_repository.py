"""Async Prospect Repository Implementation.

Implements IProspectStore using SQLAlchemy async sessions and plain SQL.
Each public method runs in its own transaction; status writes are
conditional on the status the caller read (optimistic concurrency).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from domain.repositories import IProspectStore
from prospect_pipeline.email_dispatch import DecisionPoint, EmailTemplate, SentEmail
from prospect_pipeline.errors import ConcurrentModification, ProspectNotFound, ValidationError
from prospect_pipeline.models import Investor, InvestorDraft, Prospect, ValidationDocument
from prospect_pipeline.states import (
    STAGE_TIMESTAMP_FIELDS,
    DocumentStatus,
    DocumentType,
    InvestorCategory,
    ProspectSource,
    ProspectStatus,
)

logger = logging.getLogger(__name__)


SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS prospects (
        id TEXT PRIMARY KEY,
        fund_id TEXT NOT NULL,
        email TEXT NOT NULL,
        status TEXT NOT NULL,
        source TEXT NOT NULL,
        investor_category TEXT,
        investor_type TEXT,
        first_name TEXT,
        last_name TEXT,
        phone TEXT,
        country TEXT,
        state TEXT,
        city TEXT,
        entity_legal_name TEXT,
        authorized_signer_first_name TEXT,
        authorized_signer_last_name TEXT,
        authorized_signer_title TEXT,
        accreditation_bases TEXT NOT NULL DEFAULT '[]',
        indicative_commitment TEXT,
        timeline TEXT,
        investment_goals TEXT NOT NULL DEFAULT '[]',
        sent_by TEXT,
        kyc_link_token TEXT,
        notes TEXT,
        kyc_sent_at TEXT,
        kyc_submitted_at TEXT,
        pre_qualified_at TEXT,
        not_eligible_at TEXT,
        meeting_scheduled_at TEXT,
        meeting_completed_at TEXT,
        account_invite_sent_at TEXT,
        account_created_at TEXT,
        onboarding_submitted_at TEXT,
        documents_submitted_at TEXT,
        documents_approved_at TEXT,
        documents_rejected_at TEXT,
        docusign_sent_at TEXT,
        docusign_signed_at TEXT,
        converted_at TEXT,
        document_cycle INTEGER NOT NULL DEFAULT 0,
        document_rejection_reason TEXT,
        docusign_envelope_id TEXT,
        converted_to_investor INTEGER NOT NULL DEFAULT 0,
        investor_id TEXT,
        created_at TEXT,
        updated_at TEXT,
        UNIQUE (fund_id, email)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS validation_documents (
        id TEXT PRIMARY KEY,
        prospect_id TEXT NOT NULL REFERENCES prospects(id),
        document_type TEXT NOT NULL,
        file_name TEXT NOT NULL,
        cycle INTEGER NOT NULL,
        validation_status TEXT NOT NULL,
        uploaded_at TEXT NOT NULL,
        reviewed_at TEXT,
        rejection_reason TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS investors (
        id TEXT PRIMARY KEY,
        prospect_id TEXT NOT NULL UNIQUE REFERENCES prospects(id),
        fund_id TEXT NOT NULL,
        email TEXT NOT NULL,
        first_name TEXT NOT NULL,
        last_name TEXT NOT NULL,
        phone TEXT,
        entity_type TEXT,
        entity_name TEXT,
        commitment_amount TEXT NOT NULL,
        joined_at TEXT NOT NULL,
        status TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS prospect_email_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        prospect_id TEXT NOT NULL REFERENCES prospects(id),
        template TEXT NOT NULL,
        decision_point TEXT NOT NULL,
        cycle INTEGER NOT NULL,
        sent_at TEXT NOT NULL,
        message_id TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_prospects_fund_status ON prospects(fund_id, status)",
    "CREATE INDEX IF NOT EXISTS idx_documents_prospect ON validation_documents(prospect_id)",
    "CREATE INDEX IF NOT EXISTS idx_email_log_prospect ON prospect_email_log(prospect_id)",
)


PROSPECT_COLUMNS = (
    "id", "fund_id", "email", "status", "source",
    "investor_category", "investor_type",
    "first_name", "last_name", "phone", "country", "state", "city",
    "entity_legal_name", "authorized_signer_first_name",
    "authorized_signer_last_name", "authorized_signer_title",
    "accreditation_bases", "indicative_commitment", "timeline", "investment_goals",
    "sent_by", "kyc_link_token", "notes",
    *STAGE_TIMESTAMP_FIELDS.values(),
    "document_cycle", "document_rejection_reason", "docusign_envelope_id",
    "converted_to_investor", "investor_id",
    "created_at", "updated_at",
)

_DATETIME_COLUMNS = frozenset(STAGE_TIMESTAMP_FIELDS.values()) | {"created_at", "updated_at"}
_LIST_COLUMNS = frozenset({"accreditation_bases", "investment_goals"})
_ENUM_COLUMNS = {
    "status": ProspectStatus,
    "source": ProspectSource,
    "investor_category": InvestorCategory,
}

DOCUMENT_COLUMNS = (
    "id", "prospect_id", "document_type", "file_name", "cycle",
    "validation_status", "uploaded_at", "reviewed_at", "rejection_reason",
)

INVESTOR_COLUMNS = (
    "id", "prospect_id", "fund_id", "email", "first_name", "last_name", "phone",
    "entity_type", "entity_name", "commitment_amount", "joined_at", "status",
)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _to_column(name: str, value: Any) -> Any:
    """Convert a Prospect attribute to its column representation."""
    if value is None:
        return None
    if name in _DATETIME_COLUMNS:
        return _iso(value)
    if name in _LIST_COLUMNS:
        return json.dumps(list(value))
    if name in _ENUM_COLUMNS:
        return value.value
    if name == "indicative_commitment":
        return str(value)
    if name == "converted_to_investor":
        return int(value)
    return value


def _from_column(name: str, value: Any) -> Any:
    if name in _LIST_COLUMNS:
        return json.loads(value) if value else []
    if value is None:
        return None
    if name in _DATETIME_COLUMNS:
        return _parse_dt(value)
    if name in _ENUM_COLUMNS:
        return _ENUM_COLUMNS[name](value)
    if name == "indicative_commitment":
        return Decimal(value)
    if name == "converted_to_investor":
        return bool(value)
    return value


class ProspectRepository(IProspectStore):
    """
    Async implementation of IProspectStore.

    Takes a session factory rather than a session: every operation opens its
    own session and transaction.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize repository with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory.
        """
        self._session_factory = session_factory

    async def create_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        async with self._session_factory() as session:
            async with session.begin():
                for statement in SCHEMA_STATEMENTS:
                    await session.execute(text(statement))

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    @staticmethod
    def _row_to_prospect(row, documents: List[ValidationDocument]) -> Prospect:
        data = row._mapping
        values = {name: _from_column(name, data[name]) for name in PROSPECT_COLUMNS}
        return Prospect(documents=documents, **values)

    @staticmethod
    def _row_to_document(row) -> ValidationDocument:
        data = row._mapping
        return ValidationDocument(
            id=data["id"],
            prospect_id=data["prospect_id"],
            document_type=DocumentType(data["document_type"]),
            file_name=data["file_name"],
            cycle=data["cycle"],
            validation_status=DocumentStatus(data["validation_status"]),
            uploaded_at=_parse_dt(data["uploaded_at"]),
            reviewed_at=_parse_dt(data["reviewed_at"]),
            rejection_reason=data["rejection_reason"],
        )

    @staticmethod
    def _row_to_investor(row) -> Investor:
        data = row._mapping
        return Investor(
            id=data["id"],
            prospect_id=data["prospect_id"],
            fund_id=data["fund_id"],
            email=data["email"],
            first_name=data["first_name"],
            last_name=data["last_name"],
            phone=data["phone"],
            entity_type=data["entity_type"],
            entity_name=data["entity_name"],
            commitment_amount=Decimal(data["commitment_amount"]),
            joined_at=_parse_dt(data["joined_at"]),
            status=data["status"],
        )

    async def _load_documents(self, session: AsyncSession, prospect_id: str) -> List[ValidationDocument]:
        result = await session.execute(
            text(f"""
                SELECT {", ".join(DOCUMENT_COLUMNS)} FROM validation_documents
                WHERE prospect_id = :prospect_id
                ORDER BY cycle, uploaded_at, id
            """),
            {"prospect_id": prospect_id},
        )
        return [self._row_to_document(row) for row in result.fetchall()]

    async def _load(self, session: AsyncSession, prospect_id: str) -> Optional[Prospect]:
        result = await session.execute(
            text(f"SELECT {', '.join(PROSPECT_COLUMNS)} FROM prospects WHERE id = :id"),
            {"id": prospect_id},
        )
        row = result.fetchone()
        if row is None:
            return None
        return self._row_to_prospect(row, await self._load_documents(session, prospect_id))

    async def _upsert_documents(
        self,
        session: AsyncSession,
        documents: Sequence[ValidationDocument],
    ) -> None:
        # Reviews may change a document's status; nothing else about it changes
        query = text(f"""
            INSERT INTO validation_documents ({", ".join(DOCUMENT_COLUMNS)})
            VALUES ({", ".join(":" + c for c in DOCUMENT_COLUMNS)})
            ON CONFLICT(id) DO UPDATE SET
                validation_status = excluded.validation_status,
                reviewed_at = excluded.reviewed_at,
                rejection_reason = excluded.rejection_reason
        """)
        for document in documents:
            await session.execute(query, {
                "id": document.id,
                "prospect_id": document.prospect_id,
                "document_type": document.document_type.value,
                "file_name": document.file_name,
                "cycle": document.cycle,
                "validation_status": document.validation_status.value,
                "uploaded_at": _iso(document.uploaded_at),
                "reviewed_at": _iso(document.reviewed_at),
                "rejection_reason": document.rejection_reason,
            })

    async def _conditional_update(
        self,
        session: AsyncSession,
        prospect_id: str,
        expected_status: ProspectStatus,
        fields: Dict[str, Any],
    ) -> None:
        forbidden = (set(fields) - set(PROSPECT_COLUMNS) - {"documents"}) | (set(fields) & {"id", "fund_id"})
        if forbidden:
            raise ValidationError(f"Cannot update prospect fields: {sorted(forbidden)}")

        columns = [name for name in fields if name != "documents"]
        params = {name: _to_column(name, fields[name]) for name in columns}
        params.update({"_id": prospect_id, "_expected": expected_status.value})

        result = await session.execute(
            text(f"""
                UPDATE prospects SET {", ".join(f"{c} = :{c}" for c in columns)}
                WHERE id = :_id AND status = :_expected
            """),
            params,
        )

        if result.rowcount == 0:
            exists = await session.execute(
                text("SELECT status FROM prospects WHERE id = :id"), {"id": prospect_id}
            )
            if exists.fetchone() is None:
                raise ProspectNotFound(prospect_id)
            raise ConcurrentModification(prospect_id, expected_status.value)

    # =========================================================================
    # IProspectStore
    # =========================================================================

    async def find_by_id(self, prospect_id: str) -> Optional[Prospect]:
        async with self._session_factory() as session:
            return await self._load(session, prospect_id)

    async def find_by_email(self, email: str, fund_id: str) -> Optional[Prospect]:
        async with self._session_factory() as session:
            result = await session.execute(
                text("SELECT id FROM prospects WHERE fund_id = :fund_id AND email = :email"),
                {"fund_id": fund_id, "email": email},
            )
            row = result.fetchone()
            if row is None:
                return None
            return await self._load(session, row.id)

    async def list_by_fund(
        self,
        fund_id: str,
        status: Optional[ProspectStatus] = None,
    ) -> List[Prospect]:
        query = f"SELECT {', '.join(PROSPECT_COLUMNS)} FROM prospects WHERE fund_id = :fund_id"
        params: Dict[str, Any] = {"fund_id": fund_id}
        if status is not None:
            query += " AND status = :status"
            params["status"] = status.value
        query += " ORDER BY created_at DESC"

        async with self._session_factory() as session:
            result = await session.execute(text(query), params)
            prospects = []
            for row in result.fetchall():
                documents = await self._load_documents(session, row.id)
                prospects.append(self._row_to_prospect(row, documents))
            return prospects

    async def create(self, prospect: Prospect) -> Prospect:
        params = {name: _to_column(name, getattr(prospect, name)) for name in PROSPECT_COLUMNS}
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        text(f"""
                            INSERT INTO prospects ({", ".join(PROSPECT_COLUMNS)})
                            VALUES ({", ".join(":" + c for c in PROSPECT_COLUMNS)})
                        """),
                        params,
                    )
                    await self._upsert_documents(session, prospect.documents)
                    created = await self._load(session, prospect.id)
        except IntegrityError as e:
            raise ValidationError(
                f"A prospect with email {prospect.email} already exists for this fund",
                field="email",
            ) from e

        logger.debug(f"Inserted prospect {prospect.id}")
        return created

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
        fields = dict(extra_fields or {})
        fields.update({"status": new_status, "updated_at": now})

        async with self._session_factory() as session:
            async with session.begin():
                # The conditional UPDATE goes first so the write lock is taken
                # before anything else in the transaction
                await self._conditional_update(session, prospect_id, expected_status, fields)
                await self._upsert_documents(session, documents)
                return await self._load(session, prospect_id)

    async def update_fields(self, prospect_id: str, fields: Dict[str, Any], now: datetime) -> Prospect:
        if "status" in fields:
            raise ValidationError("Use update_status to change the status", field="status")
        forbidden = (set(fields) - set(PROSPECT_COLUMNS)) | (set(fields) & {"id", "fund_id"})
        if forbidden:
            raise ValidationError(f"Cannot update prospect fields: {sorted(forbidden)}")

        changes = dict(fields, updated_at=now)
        params = {name: _to_column(name, value) for name, value in changes.items()}
        params["_id"] = prospect_id

        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    text(f"""
                        UPDATE prospects SET {", ".join(f"{c} = :{c}" for c in changes)}
                        WHERE id = :_id
                    """),
                    params,
                )
                if result.rowcount == 0:
                    raise ProspectNotFound(prospect_id)
                return await self._load(session, prospect_id)

    async def create_investor_from_prospect(self, draft: InvestorDraft, now: datetime) -> Investor:
        investor = Investor.from_draft(draft)

        async with self._session_factory() as session:
            async with session.begin():
                await self._conditional_update(
                    session,
                    draft.prospect_id,
                    ProspectStatus.DOCUSIGN_SIGNED,
                    {
                        "status": ProspectStatus.CONVERTED,
                        "converted_to_investor": True,
                        "investor_id": draft.id,
                        "converted_at": now,
                        "updated_at": now,
                    },
                )
                await session.execute(
                    text(f"""
                        INSERT INTO investors ({", ".join(INVESTOR_COLUMNS)})
                        VALUES ({", ".join(":" + c for c in INVESTOR_COLUMNS)})
                    """),
                    {
                        "id": investor.id,
                        "prospect_id": investor.prospect_id,
                        "fund_id": investor.fund_id,
                        "email": investor.email,
                        "first_name": investor.first_name,
                        "last_name": investor.last_name,
                        "phone": investor.phone,
                        "entity_type": investor.entity_type,
                        "entity_name": investor.entity_name,
                        "commitment_amount": str(investor.commitment_amount),
                        "joined_at": _iso(investor.joined_at),
                        "status": investor.status,
                    },
                )

        logger.info(f"Investor {investor.id} created from prospect {draft.prospect_id}")
        return investor

    async def find_investor(self, investor_id: str) -> Optional[Investor]:
        async with self._session_factory() as session:
            result = await session.execute(
                text(f"SELECT {', '.join(INVESTOR_COLUMNS)} FROM investors WHERE id = :id"),
                {"id": investor_id},
            )
            row = result.fetchone()
            return self._row_to_investor(row) if row else None

    async def list_investors(self, fund_id: Optional[str] = None) -> List[Investor]:
        query = f"SELECT {', '.join(INVESTOR_COLUMNS)} FROM investors"
        params: Dict[str, Any] = {}
        if fund_id is not None:
            query += " WHERE fund_id = :fund_id"
            params["fund_id"] = fund_id
        query += " ORDER BY joined_at, id"

        async with self._session_factory() as session:
            result = await session.execute(text(query), params)
            return [self._row_to_investor(row) for row in result.fetchall()]

    async def record_email(self, sent: SentEmail) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    text("""
                        INSERT INTO prospect_email_log
                            (prospect_id, template, decision_point, cycle, sent_at, message_id)
                        VALUES
                            (:prospect_id, :template, :decision_point, :cycle, :sent_at, :message_id)
                    """),
                    {
                        "prospect_id": sent.prospect_id,
                        "template": sent.template.value,
                        "decision_point": sent.decision_point.value,
                        "cycle": sent.cycle,
                        "sent_at": _iso(sent.sent_at),
                        "message_id": sent.message_id,
                    },
                )

    async def list_emails(self, prospect_id: str) -> List[SentEmail]:
        async with self._session_factory() as session:
            result = await session.execute(
                text("""
                    SELECT prospect_id, template, decision_point, cycle, sent_at, message_id
                    FROM prospect_email_log
                    WHERE prospect_id = :prospect_id
                    ORDER BY id
                """),
                {"prospect_id": prospect_id},
            )
            return [
                SentEmail(
                    prospect_id=row.prospect_id,
                    template=EmailTemplate(row.template),
                    decision_point=DecisionPoint(row.decision_point),
                    cycle=row.cycle,
                    sent_at=_parse_dt(row.sent_at),
                    message_id=row.message_id,
                )
                for row in result.fetchall()
            ]
