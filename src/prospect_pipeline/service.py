"""
Prospect Pipeline Service

Orchestrates the pipeline: reads the prospect, asks the pure decision
functions whether the requested change is legal, persists it with an
optimistic-concurrency write, then plans reminders and sends the resulting
email.

Business-rule violations raise PipelineError subclasses. Email delivery is a
post-commit side effect: its failure is reported on the returned outcome and
never undoes the committed transition.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional

from config.settings import PipelineSettings, get_settings
from domain.repositories import IProspectStore

from .conversion import can_convert_to_investor, prepare_investor_conversion
from .documents import approve_documents, reject_documents, submit_documents
from .email_dispatch import (
    EmailContext,
    EmailIntent,
    SentEmail,
    decide_email,
    decide_invitation_email,
    decide_reminder,
)
from .errors import EmailError, ProspectNotFound, ValidationError
from .intake import (
    apply_kyc_submission,
    normalize_email,
    prepare_interest_form_prospect,
    prepare_kyc_send,
    prepare_website_prospect,
)
from .metrics import PipelineMetrics, calculate_pipeline_metrics
from .models import Investor, Prospect
from .reminders import (
    ReminderKind,
    ScheduledReminder,
    plan_kyc_reminders,
    plan_onboarding_reminders,
    reminders_to_cancel,
    reminders_to_plan,
)
from .runtime import Clock, IdGenerator, SystemClock, UuidGenerator
from .schemas import (
    ConvertToInvestorInput,
    InterestFormInput,
    KYCSubmissionInput,
    SendKYCInput,
    UpdateProspectStatusInput,
    UploadDocumentsInput,
    WebsiteKYCInput,
    parse_input,
)
from .states import ProspectEvent, ProspectStatus
from .transitions import apply_transition, can_pre_qualify, next_status_for_event

logger = logging.getLogger(__name__)


@dataclass
class FundProfile:
    """Per-fund values used in prospect emails."""
    name: str
    manager_name: Optional[str] = None
    manager_email: Optional[str] = None
    calendly_url: Optional[str] = None
    docusign_url: Optional[str] = None


@dataclass
class TransitionOutcome:
    """What a pipeline operation committed and what it triggered."""
    prospect: Prospect
    previous_status: Optional[ProspectStatus]
    email: Optional[EmailIntent] = None
    email_error: Optional[EmailError] = None
    reminders_scheduled: List[ScheduledReminder] = field(default_factory=list)
    reminders_cancelled: List[ReminderKind] = field(default_factory=list)
    investor: Optional[Investor] = None

    @property
    def email_sent(self) -> bool:
        return self.email is not None and self.email_error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prospect": self.prospect.to_dict(),
            "previous_status": self.previous_status.value if self.previous_status else None,
            "email": self.email.template.value if self.email else None,
            "email_sent": self.email_sent,
            "email_error": self.email_error.to_dict() if self.email_error else None,
            "reminders_scheduled": [r.job_name for r in self.reminders_scheduled],
            "reminders_cancelled": [k.value for k in self.reminders_cancelled],
            "investor_id": self.investor.id if self.investor else None,
        }


class ProspectPipelineService:
    """
    Entry point for every prospect pipeline operation.

    Dependencies are injected: the store, the email service (anything with
    an async ``send(template, recipient, variables) -> Result``), the clock
    and the id generator.
    """

    def __init__(
        self,
        store: IProspectStore,
        email_service,
        clock: Optional[Clock] = None,
        ids: Optional[IdGenerator] = None,
        settings: Optional[PipelineSettings] = None,
        funds: Optional[Mapping[str, FundProfile]] = None,
    ):
        self._store = store
        self._email = email_service
        self._clock = clock or SystemClock()
        self._ids = ids or UuidGenerator()
        self._settings = settings or get_settings()
        self._funds = dict(funds or {})

    @property
    def store(self) -> IProspectStore:
        return self._store

    # =========================================================================
    # QUERIES
    # =========================================================================

    async def get_prospect(self, prospect_id: str) -> Prospect:
        prospect = await self._store.find_by_id(prospect_id)
        if prospect is None:
            raise ProspectNotFound(prospect_id)
        return prospect

    async def list_prospects(
        self,
        fund_id: str,
        status: Optional[ProspectStatus] = None,
    ) -> List[Prospect]:
        return await self._store.list_by_fund(fund_id, status)

    async def pipeline_metrics(self, fund_id: str) -> PipelineMetrics:
        prospects = await self._store.list_by_fund(fund_id)
        return calculate_pipeline_metrics(prospects, self._clock.now())

    # =========================================================================
    # INTAKE
    # =========================================================================

    async def _ensure_unique_email(self, email: str, fund_id: str) -> None:
        if await self._store.find_by_email(normalize_email(email), fund_id):
            raise ValidationError(
                f"A prospect with email {normalize_email(email)} already exists for this fund",
                field="email",
            )

    async def _create(self, prospect: Prospect) -> TransitionOutcome:
        created = await self._store.create(prospect)
        logger.info(
            f"Prospect {created.id} created for fund {created.fund_id} "
            f"({created.source.value}, {created.status.value})"
        )

        outcome = TransitionOutcome(prospect=created, previous_status=None)
        for kind in reminders_to_plan(created.status):
            outcome.reminders_scheduled.extend(self._plan(kind, created.id))

        context = await self._email_context(created)
        await self._dispatch(outcome, decide_invitation_email(created, context))
        return outcome

    async def send_kyc(self, fund_id: str, data, sent_by: Optional[str] = None) -> TransitionOutcome:
        """Manager sends a KYC invitation; creates the prospect at KYC_SENT."""
        data = parse_input(SendKYCInput, data)
        await self._ensure_unique_email(data.email, fund_id)
        prospect = prepare_kyc_send(
            data, fund_id, sent_by, self._ids.generate(), self._ids.token(), self._clock.now(),
        )
        return await self._create(prospect)

    async def submit_interest_form(self, data) -> TransitionOutcome:
        """Public interest form; the KYC link is sent automatically."""
        data = parse_input(InterestFormInput, data)
        await self._ensure_unique_email(data.email, data.fund_id)
        prospect = prepare_interest_form_prospect(
            data, self._ids.generate(), self._ids.token(), self._clock.now(),
        )
        return await self._create(prospect)

    async def register_website_prospect(self, data) -> TransitionOutcome:
        """KYC form submitted on the fund website, without an invitation."""
        data = parse_input(WebsiteKYCInput, data)
        await self._ensure_unique_email(data.email, data.fund_id)
        prospect = prepare_website_prospect(data, self._ids.generate(), self._clock.now())
        return await self._create(prospect)

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    async def submit_kyc(self, prospect_id: str, answers) -> TransitionOutcome:
        """Prospect completes the KYC form they were invited to."""
        answers = parse_input(KYCSubmissionInput, answers)
        prospect = await self.get_prospect(prospect_id)
        after = apply_transition(
            apply_kyc_submission(prospect, answers),
            ProspectStatus.KYC_SUBMITTED,
            self._clock.now(),
        ).unwrap()
        return await self._commit(prospect, after)

    async def approve_kyc(self, prospect_id: str) -> TransitionOutcome:
        """Pre-qualify the prospect; requires at least one accreditation basis."""
        prospect = await self.get_prospect(prospect_id)
        can_pre_qualify(prospect).unwrap()
        after = apply_transition(prospect, ProspectStatus.PRE_QUALIFIED, self._clock.now()).unwrap()
        return await self._commit(prospect, after)

    async def mark_not_eligible(self, prospect_id: str, reason: Optional[str] = None) -> TransitionOutcome:
        """Terminal rejection, available from any non-terminal status. Sends no email."""
        prospect = await self.get_prospect(prospect_id)
        extra = {}
        if reason and reason.strip():
            note = f"Not eligible: {reason.strip()}"
            extra["notes"] = f"{prospect.notes}\n{note}" if prospect.notes else note
        after = apply_transition(
            prospect, ProspectStatus.NOT_ELIGIBLE, self._clock.now(), **extra,
        ).unwrap()
        return await self._commit(prospect, after)

    async def schedule_meeting(self, prospect_id: str) -> TransitionOutcome:
        return await self._advance(prospect_id, ProspectStatus.MEETING_SCHEDULED)

    async def complete_meeting(self, prospect_id: str) -> TransitionOutcome:
        return await self._advance(prospect_id, ProspectStatus.MEETING_COMPLETE)

    async def send_account_invite(self, prospect_id: str) -> TransitionOutcome:
        return await self._advance(prospect_id, ProspectStatus.ACCOUNT_INVITE_SENT)

    async def record_account_created(self, prospect_id: str) -> TransitionOutcome:
        return await self._advance(prospect_id, ProspectStatus.ACCOUNT_CREATED)

    async def submit_onboarding(self, prospect_id: str) -> TransitionOutcome:
        return await self._advance(prospect_id, ProspectStatus.ONBOARDING_SUBMITTED)

    async def upload_documents(self, prospect_id: str, data) -> TransitionOutcome:
        """First submission or re-submission of validation documents."""
        data = parse_input(UploadDocumentsInput, data)
        prospect = await self.get_prospect(prospect_id)
        after = submit_documents(
            prospect, data.documents, self._clock.now(), self._ids.generate,
        ).unwrap()
        return await self._commit(prospect, after)

    async def approve_documents(
        self,
        prospect_id: str,
        commitment_amount: Optional[Decimal] = None,
    ) -> TransitionOutcome:
        prospect = await self.get_prospect(prospect_id)
        after = approve_documents(prospect, self._clock.now()).unwrap()
        return await self._commit(prospect, after, commitment_amount=commitment_amount)

    async def reject_documents(self, prospect_id: str, reason: str) -> TransitionOutcome:
        prospect = await self.get_prospect(prospect_id)
        after = reject_documents(prospect, reason, self._clock.now()).unwrap()
        return await self._commit(prospect, after)

    async def send_docusign(self, prospect_id: str, envelope_id: Optional[str] = None) -> TransitionOutcome:
        extra = {"docusign_envelope_id": envelope_id} if envelope_id else {}
        return await self._advance(prospect_id, ProspectStatus.DOCUSIGN_SENT, **extra)

    async def record_docusign_signed(self, prospect_id: str) -> TransitionOutcome:
        return await self._advance(prospect_id, ProspectStatus.DOCUSIGN_SIGNED)

    async def convert_to_investor(self, prospect_id: str, data) -> TransitionOutcome:
        """
        Create the Investor and seal the prospect as CONVERTED.

        The store writes both in one transaction, conditional on the prospect
        still being DOCUSIGN_SIGNED, so concurrent calls convert at most once.

        Raises:
            InvalidState: If the prospect is not DOCUSIGN_SIGNED or already converted
            ConcurrentModification: If another request converted it first
        """
        data = parse_input(ConvertToInvestorInput, data)
        prospect = await self.get_prospect(prospect_id)
        can_convert_to_investor(prospect).unwrap()

        now = self._clock.now()
        draft = prepare_investor_conversion(prospect, data, self._ids.generate(), now)
        investor = await self._store.create_investor_from_prospect(draft, now)
        converted = await self.get_prospect(prospect_id)

        logger.info(
            f"Prospect {prospect_id}: {prospect.status.value} -> {converted.status.value} "
            f"(investor {investor.id})"
        )
        outcome = TransitionOutcome(
            prospect=converted,
            previous_status=prospect.status,
            investor=investor,
        )
        await self._after_commit(outcome, commitment_amount=data.commitment_amount)
        return outcome

    async def change_status(self, prospect_id: str, data) -> TransitionOutcome:
        """
        Manual status change by a manager.

        Statuses with their own preconditions go through the matching
        operation; CONVERTED needs a commitment amount and must use
        ``convert_to_investor``.
        """
        data = parse_input(UpdateProspectStatusInput, data)
        status = data.status

        if status == ProspectStatus.PRE_QUALIFIED:
            return await self.approve_kyc(prospect_id)
        if status == ProspectStatus.NOT_ELIGIBLE:
            return await self.mark_not_eligible(prospect_id, data.reason)
        if status == ProspectStatus.DOCUMENTS_APPROVED:
            return await self.approve_documents(prospect_id)
        if status == ProspectStatus.DOCUMENTS_REJECTED:
            return await self.reject_documents(prospect_id, data.reason or "")
        if status == ProspectStatus.CONVERTED:
            raise ValidationError(
                "Conversion requires a commitment amount; use convert_to_investor",
                field="status",
            )
        return await self._advance(prospect_id, status)

    async def handle_event(
        self,
        prospect_id: str,
        event: ProspectEvent,
        reason: Optional[str] = None,
        commitment_amount: Optional[Decimal] = None,
    ) -> Optional[TransitionOutcome]:
        """
        Apply an external event (webhook, form callback) if it is still relevant.

        Returns None when the event does not lead anywhere from the current
        status, e.g. a duplicate or late webhook.
        """
        event = ProspectEvent(event)
        prospect = await self.get_prospect(prospect_id)
        target = next_status_for_event(prospect.status, event)
        if target is None:
            logger.warning(
                f"Ignored event {event.value} for prospect {prospect_id} in status {prospect.status.value}"
            )
            return None

        if target == ProspectStatus.CONVERTED:
            return await self.convert_to_investor(prospect_id, {"commitment_amount": commitment_amount})
        return await self.change_status(prospect_id, {"status": target, "reason": reason})

    # =========================================================================
    # OTHER OPERATIONS
    # =========================================================================

    async def send_reminder(self, prospect_id: str, kind: ReminderKind) -> TransitionOutcome:
        """
        Send one reminder email now.

        Raises:
            ReminderNotApplicable: If the prospect is not in the reminder's target status
        """
        kind = ReminderKind(kind)
        prospect = await self.get_prospect(prospect_id)
        context = await self._email_context(prospect)
        intent = decide_reminder(kind, prospect, context).unwrap()

        outcome = TransitionOutcome(prospect=prospect, previous_status=prospect.status)
        await self._dispatch(outcome, intent)
        return outcome

    async def update_notes(self, prospect_id: str, notes: Optional[str]) -> Prospect:
        await self.get_prospect(prospect_id)
        return await self._store.update_fields(prospect_id, {"notes": notes}, self._clock.now())

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    async def _advance(self, prospect_id: str, new_status: ProspectStatus, **extra: Any) -> TransitionOutcome:
        prospect = await self.get_prospect(prospect_id)
        after = apply_transition(prospect, new_status, self._clock.now(), **extra).unwrap()
        return await self._commit(prospect, after)

    async def _commit(
        self,
        before: Prospect,
        after: Prospect,
        commitment_amount: Optional[Decimal] = None,
    ) -> TransitionOutcome:
        """Persist ``after`` conditional on ``before.status``, then run side effects."""
        changed_documents = [d for d in after.documents if d not in before.documents]
        persisted = await self._store.update_status(
            before.id,
            after.status,
            after.updated_at,
            before.diff(after),
            expected_status=before.status,
            documents=changed_documents,
        )
        logger.info(f"Prospect {before.id}: {before.status.value} -> {persisted.status.value}")

        outcome = TransitionOutcome(prospect=persisted, previous_status=before.status)
        await self._after_commit(outcome, commitment_amount=commitment_amount)
        return outcome

    async def _after_commit(
        self,
        outcome: TransitionOutcome,
        commitment_amount: Optional[Decimal] = None,
    ) -> None:
        previous, prospect = outcome.previous_status, outcome.prospect

        outcome.reminders_cancelled = reminders_to_cancel(previous, prospect.status)
        for kind in reminders_to_plan(prospect.status):
            outcome.reminders_scheduled.extend(self._plan(kind, prospect.id))

        context = await self._email_context(prospect, commitment_amount)
        await self._dispatch(outcome, decide_email(previous, prospect.status, prospect, context))

    def _plan(self, kind: ReminderKind, prospect_id: str) -> List[ScheduledReminder]:
        now = self._clock.now()
        if kind == ReminderKind.KYC:
            return plan_kyc_reminders(prospect_id, now, self._settings.kyc_reminder_delays)
        return plan_onboarding_reminders(prospect_id, now, self._settings.onboarding_reminder_delays)

    def _fund(self, fund_id: str) -> FundProfile:
        return self._funds.get(fund_id) or FundProfile(name="our fund")

    async def _email_context(
        self,
        prospect: Prospect,
        commitment_amount: Optional[Decimal] = None,
    ) -> EmailContext:
        fund = self._fund(prospect.fund_id)
        return EmailContext(
            fund_name=fund.name,
            base_url=self._settings.frontend_url,
            manager_name=fund.manager_name,
            manager_email=fund.manager_email,
            calendly_url=fund.calendly_url,
            docusign_url=fund.docusign_url,
            commitment_amount=commitment_amount,
            sent_emails=await self._store.list_emails(prospect.id),
        )

    async def _dispatch(self, outcome: TransitionOutcome, intent: Optional[EmailIntent]) -> None:
        """Send ``intent`` and record it in the ledger; failures land on the outcome."""
        if intent is None:
            return

        outcome.email = intent
        prospect_id = outcome.prospect.id
        try:
            result = await self._email.send(intent.template, intent.recipient, intent.variables)
        except Exception as e:
            logger.exception(f"Email service raised sending {intent.template.value} for prospect {prospect_id}")
            outcome.email_error = EmailError(intent.template.value, intent.recipient, str(e))
            return

        if not result.is_ok:
            outcome.email_error = result.error
            logger.warning(
                f"Email {intent.template.value} for prospect {prospect_id} failed; "
                f"status change kept: {result.error}"
            )
            return

        await self._store.record_email(SentEmail(
            prospect_id=prospect_id,
            template=intent.template,
            decision_point=intent.decision_point,
            cycle=intent.cycle,
            sent_at=self._clock.now(),
            message_id=getattr(result.value, "message_id", None),
        ))
        logger.info(f"Email {intent.template.value} sent to {intent.recipient} for prospect {prospect_id}")
