"""
Tests for Prospect Intake

Verifies:
1. Manual KYC sends, interest forms and website submissions build new prospects
2. KYC answers only overwrite values that were given
3. Input validation errors name the failing field
"""

from decimal import Decimal

import pytest

from prospect_pipeline.errors import ValidationError
from prospect_pipeline.intake import (
    apply_kyc_submission,
    normalize_email,
    prepare_interest_form_prospect,
    prepare_kyc_send,
    prepare_website_prospect,
    split_name,
)
from prospect_pipeline.schemas import (
    InterestFormInput,
    KYCSubmissionInput,
    RejectDocumentsInput,
    SendKYCInput,
    UploadDocumentsInput,
    WebsiteKYCInput,
    parse_input,
)
from prospect_pipeline.states import InvestorCategory, ProspectSource, ProspectStatus

from tests.helpers.prospects import NOW, make_prospect


class TestNames:

    def test_normalize_email(self):
        assert normalize_email("  Ada@Example.COM ") == "ada@example.com"

    @pytest.mark.parametrize("name,expected", [
        ("Ada Lovelace", ("Ada", "Lovelace")),
        ("Ada King Lovelace", ("Ada", "King Lovelace")),
        ("Ada", ("Ada", None)),
        ("   ", (None, None)),
    ])
    def test_split_name(self, name, expected):
        assert split_name(name) == expected


class TestPrepareProspects:
    """New prospect records for each intake path."""

    def test_kyc_send(self):
        data = SendKYCInput(email="Ada@Example.com", first_name="Ada", notes="Met at conference")

        prospect = prepare_kyc_send(data, "fund-1", "manager-1", "p-1", "tok", NOW)

        assert prospect.status == ProspectStatus.KYC_SENT
        assert prospect.source == ProspectSource.MANUAL
        assert prospect.email == "ada@example.com"
        assert prospect.sent_by == "manager-1"
        assert prospect.kyc_link_token == "tok"
        assert prospect.kyc_sent_at == NOW
        assert prospect.notes == "Met at conference"

    def test_interest_form(self):
        data = InterestFormInput(fund_id="fund-1", email="ada@example.com", name="Ada Lovelace")

        prospect = prepare_interest_form_prospect(data, "p-1", "tok", NOW)

        assert prospect.source == ProspectSource.INTEREST_FORM
        assert prospect.status == ProspectStatus.KYC_SENT
        assert (prospect.first_name, prospect.last_name) == ("Ada", "Lovelace")

    def test_website_submission_skips_invitation(self):
        data = WebsiteKYCInput(
            fund_id="fund-1",
            email="ada@example.com",
            investor_category="individual",
            first_name="Ada",
            accreditation_bases=["net_worth_1m"],
        )

        prospect = prepare_website_prospect(data, "p-1", NOW)

        assert prospect.status == ProspectStatus.KYC_SUBMITTED
        assert prospect.source == ProspectSource.WEBSITE
        assert prospect.kyc_link_token is None
        assert prospect.kyc_sent_at is None
        assert prospect.kyc_submitted_at == NOW
        assert prospect.accreditation_bases == ["net_worth_1m"]


class TestApplyKYCSubmission:

    def test_answers_copied(self):
        answers = KYCSubmissionInput(
            investor_category=InvestorCategory.ENTITY,
            investor_type="llc",
            entity_legal_name="Analytical Engines LLC",
            accreditation_bases=["entity_assets_5m"],
            indicative_commitment=Decimal("500000"),
        )

        updated = apply_kyc_submission(make_prospect(), answers)

        assert updated.investor_category == InvestorCategory.ENTITY
        assert updated.entity_legal_name == "Analytical Engines LLC"
        assert updated.accreditation_bases == ["entity_assets_5m"]
        assert updated.indicative_commitment == Decimal("500000")
        assert updated.status == ProspectStatus.KYC_SENT

    def test_blank_answers_keep_existing_values(self):
        answers = KYCSubmissionInput(investor_category="individual")

        updated = apply_kyc_submission(make_prospect(), answers)

        assert updated.first_name == "Ada"
        assert updated.accreditation_bases == ["income_200k"]


class TestParseInput:
    """Pydantic validation surfaced as pipeline ValidationError."""

    def test_invalid_email(self):
        with pytest.raises(ValidationError) as exc:
            parse_input(SendKYCInput, {"email": "not-an-email"})
        assert exc.value.field == "email"

    def test_missing_category(self):
        with pytest.raises(ValidationError) as exc:
            parse_input(KYCSubmissionInput, {})
        assert exc.value.field == "investor_category"

    def test_blank_rejection_reason(self):
        with pytest.raises(ValidationError):
            parse_input(RejectDocumentsInput, {"reason": "   "})

    def test_upload_requires_a_document(self):
        with pytest.raises(ValidationError) as exc:
            parse_input(UploadDocumentsInput, {"documents": []})
        assert exc.value.field == "documents"

    def test_model_instance_passes_through(self):
        data = SendKYCInput(email="ada@example.com")
        assert parse_input(SendKYCInput, data) is data
