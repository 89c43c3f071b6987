"""Pipeline summary counts for the manager dashboard."""

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable

from .models import Prospect
from .states import ProspectStatus


@dataclass
class PipelineMetrics:
    total_prospects: int = 0
    kyc_sent: int = 0
    kyc_submitted: int = 0
    kyc_submitted_this_week: int = 0
    pre_qualified: int = 0
    meetings_scheduled: int = 0
    meetings_completed: int = 0
    onboarding_in_progress: int = 0
    documents_pending: int = 0
    documents_approved: int = 0
    documents_rejected: int = 0
    docusign_pending: int = 0
    ready_to_convert: int = 0
    converted_this_month: int = 0
    not_eligible: int = 0
    awaiting_manager_action: int = 0

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


# Status -> counter incremented for prospects currently in that status
_STATUS_COUNTERS: Dict[ProspectStatus, str] = {
    ProspectStatus.KYC_SENT: "kyc_sent",
    ProspectStatus.KYC_SUBMITTED: "kyc_submitted",
    ProspectStatus.PRE_QUALIFIED: "pre_qualified",
    ProspectStatus.MEETING_SCHEDULED: "meetings_scheduled",
    ProspectStatus.MEETING_COMPLETE: "meetings_completed",
    ProspectStatus.ACCOUNT_INVITE_SENT: "onboarding_in_progress",
    ProspectStatus.ACCOUNT_CREATED: "onboarding_in_progress",
    ProspectStatus.ONBOARDING_SUBMITTED: "onboarding_in_progress",
    ProspectStatus.DOCUMENTS_PENDING: "documents_pending",
    ProspectStatus.DOCUMENTS_APPROVED: "documents_approved",
    ProspectStatus.DOCUMENTS_REJECTED: "documents_rejected",
    ProspectStatus.DOCUSIGN_SENT: "docusign_pending",
    ProspectStatus.DOCUSIGN_SIGNED: "ready_to_convert",
    ProspectStatus.NOT_ELIGIBLE: "not_eligible",
}


def calculate_pipeline_metrics(prospects: Iterable[Prospect], now: datetime) -> PipelineMetrics:
    """
    Aggregate prospects into pipeline counts.

    KYC submissions count toward "this week" when submitted within the last
    7 days; conversions count toward "this month" within the last 30 days.
    """
    one_week_ago = now - timedelta(days=7)
    one_month_ago = now - timedelta(days=30)
    metrics = PipelineMetrics()

    for prospect in prospects:
        metrics.total_prospects += 1
        status = prospect.status

        counter = _STATUS_COUNTERS.get(status)
        if counter:
            setattr(metrics, counter, getattr(metrics, counter) + 1)

        if status.requires_manager_action:
            metrics.awaiting_manager_action += 1

        if status == ProspectStatus.KYC_SUBMITTED:
            submitted_at = prospect.kyc_submitted_at or prospect.created_at
            if submitted_at and submitted_at >= one_week_ago:
                metrics.kyc_submitted_this_week += 1

        elif status == ProspectStatus.CONVERTED:
            if prospect.converted_at and prospect.converted_at >= one_month_ago:
                metrics.converted_this_month += 1

    return metrics
