"""
Tests for Prospect Statuses

Verifies:
1. Terminal statuses have no outgoing edges
2. NOT_ELIGIBLE is reachable from every non-terminal status
3. Every status carries a label, stage group and next action
4. Events map onto pipeline statuses
"""

import pytest

from prospect_pipeline.states import (
    EVENT_TARGETS,
    MANAGER_ACTION_STATUSES,
    STAGE_TIMESTAMP_FIELDS,
    TERMINAL_STATUSES,
    VALID_TRANSITIONS,
    ProspectEvent,
    ProspectStatus,
)


# =============================================================================
# TRANSITION TABLE
# =============================================================================

class TestTransitionTable:
    """Shape of the single transition table."""

    def test_every_status_has_a_row(self):
        assert set(VALID_TRANSITIONS) == set(ProspectStatus)

    @pytest.mark.parametrize("status", sorted(TERMINAL_STATUSES, key=lambda s: s.value))
    def test_terminal_statuses_have_no_edges(self, status):
        assert VALID_TRANSITIONS[status] == frozenset()
        assert status.is_terminal

    @pytest.mark.parametrize(
        "status",
        [s for s in ProspectStatus if s not in TERMINAL_STATUSES],
    )
    def test_not_eligible_reachable_from_non_terminal(self, status):
        assert ProspectStatus.NOT_ELIGIBLE in VALID_TRANSITIONS[status]
        assert not status.is_terminal

    def test_no_self_loops(self):
        for status, targets in VALID_TRANSITIONS.items():
            assert status not in targets

    def test_document_review_branches(self):
        """Documents pending may go either way; rejected only back to pending."""
        assert VALID_TRANSITIONS[ProspectStatus.DOCUMENTS_PENDING] == frozenset({
            ProspectStatus.DOCUMENTS_APPROVED,
            ProspectStatus.DOCUMENTS_REJECTED,
            ProspectStatus.NOT_ELIGIBLE,
        })
        assert VALID_TRANSITIONS[ProspectStatus.DOCUMENTS_REJECTED] == frozenset({
            ProspectStatus.DOCUMENTS_PENDING,
            ProspectStatus.NOT_ELIGIBLE,
        })

    def test_converted_only_from_docusign_signed(self):
        sources = [s for s, targets in VALID_TRANSITIONS.items() if ProspectStatus.CONVERTED in targets]
        assert sources == [ProspectStatus.DOCUSIGN_SIGNED]


# =============================================================================
# DISPLAY PROPERTIES
# =============================================================================

class TestStatusProperties:
    """Labels, stage groups and next actions."""

    @pytest.mark.parametrize("status", list(ProspectStatus))
    def test_every_status_is_described(self, status):
        assert status.label
        assert status.stage_group
        assert status.next_action
        assert status in STAGE_TIMESTAMP_FIELDS

    def test_labels(self):
        assert ProspectStatus.KYC_SENT.label == "KYC Sent"
        assert ProspectStatus.CONVERTED.label == "Converted to Investor"

    def test_manager_action_statuses(self):
        assert ProspectStatus.KYC_SUBMITTED.requires_manager_action
        assert ProspectStatus.DOCUMENTS_PENDING.requires_manager_action
        assert not ProspectStatus.KYC_SENT.requires_manager_action
        assert not any(s.is_terminal for s in MANAGER_ACTION_STATUSES)

    def test_status_is_string_enum(self):
        assert ProspectStatus("documents_pending") is ProspectStatus.DOCUMENTS_PENDING
        assert ProspectStatus.DOCUMENTS_PENDING == "documents_pending"


class TestEventTargets:
    """External events and the statuses they lead to."""

    def test_every_event_has_a_target(self):
        assert set(EVENT_TARGETS) == set(ProspectEvent)

    def test_kyc_rejected_is_not_eligible(self):
        assert EVENT_TARGETS[ProspectEvent.KYC_REJECTED] == ProspectStatus.NOT_ELIGIBLE

    def test_conversion_event(self):
        assert EVENT_TARGETS[ProspectEvent.CONVERTED_TO_INVESTOR] == ProspectStatus.CONVERTED
