"""
Repository Interfaces for the Prospect Pipeline.

Repository interfaces define the contract for data access, following the
Repository pattern from Domain-Driven Design. Implementations are provided
in the infrastructure layer.

This abstraction allows:
1. Swapping storage backends (SQLite -> PostgreSQL)
2. Testing with in-memory implementations
3. Clear separation between pipeline decisions and persistence
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from prospect_pipeline.email_dispatch import SentEmail
from prospect_pipeline.models import Investor, InvestorDraft, Prospect, ValidationDocument
from prospect_pipeline.states import ProspectStatus


class IProspectStore(ABC):
    """
    Prospect Store Interface.

    Every status write is conditional on the status the caller read: the
    store applies it only if the row still holds ``expected_status`` and
    raises ConcurrentModification otherwise.
    """

    @abstractmethod
    async def find_by_id(self, prospect_id: str) -> Optional[Prospect]:
        """
        Get a prospect, with its documents, by ID.

        Args:
            prospect_id: Prospect identifier

        Returns:
            The prospect if found, None otherwise
        """
        pass

    @abstractmethod
    async def find_by_email(self, email: str, fund_id: str) -> Optional[Prospect]:
        """
        Get a prospect by email within a fund.

        Args:
            email: Normalized (lower-case) email address
            fund_id: Owning fund

        Returns:
            The prospect if found, None otherwise
        """
        pass

    @abstractmethod
    async def list_by_fund(
        self,
        fund_id: str,
        status: Optional[ProspectStatus] = None,
    ) -> List[Prospect]:
        """List a fund's prospects, newest first, optionally filtered by status."""
        pass

    @abstractmethod
    async def create(self, prospect: Prospect) -> Prospect:
        """Insert a new prospect."""
        pass

    @abstractmethod
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
        """
        Move a prospect from ``expected_status`` to ``new_status``.

        Args:
            prospect_id: Prospect identifier
            new_status: Status to write
            now: Value for ``updated_at``
            extra_fields: Other prospect columns to write in the same update
            expected_status: Status the caller validated against
            documents: Documents to insert or update in the same transaction

        Returns:
            The prospect as persisted

        Raises:
            ProspectNotFound: If no such prospect exists
            ConcurrentModification: If the prospect is no longer in ``expected_status``
        """
        pass

    @abstractmethod
    async def update_fields(
        self,
        prospect_id: str,
        fields: Dict[str, Any],
        now: datetime,
    ) -> Prospect:
        """Write non-status fields such as notes."""
        pass

    @abstractmethod
    async def create_investor_from_prospect(self, draft: InvestorDraft, now: datetime) -> Investor:
        """
        Insert the investor and mark its prospect converted, atomically.

        The prospect must still be DOCUSIGN_SIGNED; otherwise nothing is
        written and ConcurrentModification is raised.
        """
        pass

    @abstractmethod
    async def find_investor(self, investor_id: str) -> Optional[Investor]:
        pass

    @abstractmethod
    async def list_investors(self, fund_id: Optional[str] = None) -> List[Investor]:
        pass

    @abstractmethod
    async def record_email(self, sent: SentEmail) -> None:
        """Append to the prospect's sent-email ledger."""
        pass

    @abstractmethod
    async def list_emails(self, prospect_id: str) -> List[SentEmail]:
        """Sent-email ledger for a prospect, oldest first."""
        pass
