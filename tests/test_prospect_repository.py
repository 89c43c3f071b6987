"""
Tests for the async prospect repository (SQLite via aiosqlite).

Verifies:
1. Prospects and their documents round-trip through the database
2. Status writes are conditional on the status the caller read
3. Conversion writes the investor and the prospect in one transaction
4. The sent-email ledger is persisted per prospect
"""

import asyncio
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from prospect_pipeline.conversion import prepare_investor_conversion
from prospect_pipeline.documents import approve_documents
from prospect_pipeline.email_dispatch import DecisionPoint, EmailTemplate, SentEmail
from prospect_pipeline.errors import ConcurrentModification, ProspectNotFound, ValidationError
from prospect_pipeline.schemas import ConvertToInvestorInput
from prospect_pipeline.states import DocumentStatus, InvestorCategory, ProspectStatus

from tests.helpers.prospects import NOW, make_prospect


def _draft(prospect, investor_id="inv-1"):
    return prepare_investor_conversion(
        prospect, ConvertToInvestorInput(commitment_amount=Decimal("250000")), investor_id, NOW,
    )


class TestCreateAndLoad:
    """Persisting and reading prospects."""

    @pytest.mark.asyncio
    async def test_round_trip(self, sql_store):
        prospect = make_prospect(
            ProspectStatus.DOCUMENTS_PENDING,
            investor_category=InvestorCategory.ENTITY,
            indicative_commitment=Decimal("125000.50"),
            investment_goals=["growth", "income"],
        )

        await sql_store.create(prospect)
        loaded = await sql_store.find_by_id(prospect.id)

        assert loaded == prospect

    @pytest.mark.asyncio
    async def test_missing_prospect(self, sql_store):
        assert await sql_store.find_by_id("nope") is None

    @pytest.mark.asyncio
    async def test_duplicate_email_in_fund(self, sql_store):
        await sql_store.create(make_prospect())

        with pytest.raises(ValidationError) as exc:
            await sql_store.create(make_prospect(id="prospect-2"))
        assert exc.value.field == "email"

    @pytest.mark.asyncio
    async def test_same_email_in_other_fund(self, sql_store):
        await sql_store.create(make_prospect())
        await sql_store.create(make_prospect(id="prospect-2", fund_id="fund-2"))

        found = await sql_store.find_by_email("ada@example.com", "fund-2")
        assert found.id == "prospect-2"

    @pytest.mark.asyncio
    async def test_list_by_fund_newest_first(self, sql_store):
        await sql_store.create(make_prospect(id="old", email="a@example.com", created_at=NOW - timedelta(days=1)))
        await sql_store.create(make_prospect(id="new", email="b@example.com"))
        await sql_store.create(make_prospect(
            ProspectStatus.KYC_SUBMITTED, id="sub", email="c@example.com", created_at=NOW - timedelta(days=2),
        ))
        await sql_store.create(make_prospect(id="other", email="d@example.com", fund_id="fund-2"))

        everything = await sql_store.list_by_fund("fund-1")
        submitted = await sql_store.list_by_fund("fund-1", ProspectStatus.KYC_SUBMITTED)

        assert [p.id for p in everything] == ["new", "old", "sub"]
        assert [p.id for p in submitted] == ["sub"]


class TestConditionalUpdate:
    """Optimistic concurrency on status writes."""

    @pytest.mark.asyncio
    async def test_update_status(self, sql_store):
        await sql_store.create(make_prospect())
        later = NOW + timedelta(hours=1)

        updated = await sql_store.update_status(
            "prospect-1",
            ProspectStatus.KYC_SUBMITTED,
            later,
            {"kyc_submitted_at": later, "accreditation_bases": ["income_300k"]},
            expected_status=ProspectStatus.KYC_SENT,
        )

        assert updated.status == ProspectStatus.KYC_SUBMITTED
        assert updated.kyc_submitted_at == later
        assert updated.updated_at == later
        assert updated.accreditation_bases == ["income_300k"]

    @pytest.mark.asyncio
    async def test_stale_expected_status(self, sql_store):
        await sql_store.create(make_prospect(ProspectStatus.KYC_SUBMITTED))

        with pytest.raises(ConcurrentModification):
            await sql_store.update_status(
                "prospect-1",
                ProspectStatus.KYC_SUBMITTED,
                NOW,
                expected_status=ProspectStatus.KYC_SENT,
            )

        assert (await sql_store.find_by_id("prospect-1")).status == ProspectStatus.KYC_SUBMITTED

    @pytest.mark.asyncio
    async def test_missing_prospect(self, sql_store):
        with pytest.raises(ProspectNotFound):
            await sql_store.update_status(
                "nope", ProspectStatus.KYC_SUBMITTED, NOW, expected_status=ProspectStatus.KYC_SENT,
            )

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self, sql_store):
        await sql_store.create(make_prospect())
        with pytest.raises(ValidationError):
            await sql_store.update_status(
                "prospect-1",
                ProspectStatus.KYC_SUBMITTED,
                NOW,
                {"fund_id": "fund-2"},
                expected_status=ProspectStatus.KYC_SENT,
            )

    @pytest.mark.asyncio
    async def test_documents_written_with_status(self, sql_store):
        prospect = make_prospect(ProspectStatus.DOCUMENTS_PENDING)
        await sql_store.create(prospect)
        approved = approve_documents(prospect, NOW).unwrap()

        updated = await sql_store.update_status(
            prospect.id,
            approved.status,
            NOW,
            prospect.diff(approved),
            expected_status=prospect.status,
            documents=approved.documents,
        )

        assert updated.documents[0].validation_status == DocumentStatus.APPROVED
        assert updated.documents[0].reviewed_at == NOW
        assert updated.documents_approved_at == NOW

    @pytest.mark.asyncio
    async def test_update_fields(self, sql_store):
        await sql_store.create(make_prospect())
        updated = await sql_store.update_fields("prospect-1", {"notes": "Call back Friday"}, NOW)
        assert updated.notes == "Call back Friday"

        with pytest.raises(ValidationError):
            await sql_store.update_fields("prospect-1", {"status": ProspectStatus.CONVERTED}, NOW)
        with pytest.raises(ProspectNotFound):
            await sql_store.update_fields("nope", {"notes": "x"}, NOW)


class TestInvestorConversion:
    """Atomic investor creation."""

    @pytest.mark.asyncio
    async def test_creates_investor_and_seals_prospect(self, sql_store):
        prospect = make_prospect(ProspectStatus.DOCUSIGN_SIGNED)
        await sql_store.create(prospect)

        investor = await sql_store.create_investor_from_prospect(_draft(prospect), NOW)
        converted = await sql_store.find_by_id(prospect.id)

        assert converted.status == ProspectStatus.CONVERTED
        assert converted.investor_id == investor.id
        assert converted.converted_to_investor is True
        assert converted.converted_at == NOW
        assert await sql_store.find_investor(investor.id) == investor
        assert [i.id for i in await sql_store.list_investors("fund-1")] == ["inv-1"]

    @pytest.mark.asyncio
    async def test_second_conversion_refused(self, sql_store):
        prospect = make_prospect(ProspectStatus.DOCUSIGN_SIGNED)
        await sql_store.create(prospect)
        await sql_store.create_investor_from_prospect(_draft(prospect, "inv-1"), NOW)

        with pytest.raises(ConcurrentModification):
            await sql_store.create_investor_from_prospect(_draft(prospect, "inv-2"), NOW)

        assert len(await sql_store.list_investors()) == 1

    @pytest.mark.asyncio
    async def test_concurrent_conversions_create_one_investor(self, sql_store):
        prospect = make_prospect(ProspectStatus.DOCUSIGN_SIGNED)
        await sql_store.create(prospect)

        results = await asyncio.gather(
            sql_store.create_investor_from_prospect(_draft(prospect, "inv-a"), NOW),
            sql_store.create_investor_from_prospect(_draft(prospect, "inv-b"), NOW),
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, Exception)]
        assert len(failures) == 1
        assert isinstance(failures[0], ConcurrentModification)
        investors = await sql_store.list_investors()
        assert len(investors) == 1
        assert (await sql_store.find_by_id(prospect.id)).investor_id == investors[0].id

    @pytest.mark.asyncio
    async def test_not_signed(self, sql_store):
        prospect = make_prospect(ProspectStatus.DOCUSIGN_SENT)
        await sql_store.create(prospect)

        with pytest.raises(ConcurrentModification):
            await sql_store.create_investor_from_prospect(_draft(prospect), NOW)
        assert await sql_store.list_investors() == []


class TestEmailLedger:

    @pytest.mark.asyncio
    async def test_record_and_list(self, sql_store):
        await sql_store.create(make_prospect())
        sent = SentEmail(
            prospect_id="prospect-1",
            template=EmailTemplate.KYC_INVITE,
            decision_point=DecisionPoint.INVITATION,
            cycle=0,
            sent_at=NOW,
            message_id="msg-1",
        )

        await sql_store.record_email(sent)
        await sql_store.record_email(replace(sent, template=EmailTemplate.KYC_REMINDER,
                                             decision_point=DecisionPoint.REMINDER))

        emails = await sql_store.list_emails("prospect-1")
        assert emails[0] == sent
        assert [e.template for e in emails] == [EmailTemplate.KYC_INVITE, EmailTemplate.KYC_REMINDER]
        assert await sql_store.list_emails("other") == []
