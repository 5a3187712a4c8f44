"""
Race safety of the unique-index fallbacks.

Each service reads before it writes (idempotency key, active run, active
plan) and relies on a unique index when a concurrent writer commits between
the read and the insert.  These tests use sequential simulation of that
interleaving: the conflicting row is committed first, then the service's
read is made stale once so its insert reaches the index.

True multi-connection races live in test_true_concurrency.py (PostgreSQL).
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from ledger_kernel.domain.dtos import PostingLine, PostingRequest, reversal_key
from ledger_kernel.exceptions import ActivePlanExistsError, BatchAlreadyVoidError
from ledger_kernel.models.journal import JournalBatch, JournalBatchStatus
from ledger_kernel.services.journal_poster import PostingStatus
from ledger_modules.assets.models import DepreciationMethod, PlanStatus
from ledger_modules.assets.service import DOC_TYPE, DepreciationService

POSTED_AT = datetime(2025, 3, 15, 0, 0, tzinfo=timezone.utc)


def stale_once(monkeypatch, target, name, stale_value=None):
    """Make ``target.name`` return ``stale_value`` on its first call only."""
    real = getattr(target, name)
    calls = []

    def _read(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return stale_value
        return real(*args, **kwargs)

    monkeypatch.setattr(target, name, _read)
    return calls


@pytest.fixture
def cash_sale(standard_accounts, company_id, test_actor_id):
    def _make(doc_id):
        return PostingRequest(
            company_id=company_id,
            outlet_id=None,
            doc_type="SALES_INVOICE",
            doc_id=doc_id,
            lines=(
                PostingLine.dr(standard_accounts["cash"].id, Decimal("50000")),
                PostingLine.cr(standard_accounts["revenue"].id, Decimal("50000")),
            ),
            actor_id=test_actor_id,
            posted_at=POSTED_AT,
        )

    return _make


@pytest.fixture
def depreciation_service(session, deterministic_clock, settings):
    return DepreciationService(session, clock=deterministic_clock, settings=settings)


@pytest.fixture
def asset(depreciation_service, company_id, test_actor_id):
    return depreciation_service.create_asset(
        company_id=company_id,
        name="Grinder",
        actor_id=test_actor_id,
        purchase_date=date(2025, 1, 1),
        purchase_cost=Decimal("1200000"),
    )


@pytest.fixture
def draft_plan(depreciation_service, asset, standard_accounts, test_actor_id):
    def _make():
        return depreciation_service.create_plan(
            asset_id=asset.id,
            method=DepreciationMethod.STRAIGHT_LINE,
            useful_life_months=12,
            expense_account_id=standard_accounts["depr_expense"].id,
            accum_depr_account_id=standard_accounts["accum_depr"].id,
            actor_id=test_actor_id,
        )

    return _make


# ---------------------------------------------------------------------------
# Journal posting
# ---------------------------------------------------------------------------


class TestIdempotencyConcurrency:
    """Two posts of the same document: the loser gets the winner's batch."""

    def test_insert_conflict_resolves_to_already_posted(
        self, poster, cash_sale, journal_selector, company_id, monkeypatch, captured_logs
    ):
        doc_id = uuid4()
        winner = poster.post(cash_sale(doc_id))

        calls = stale_once(monkeypatch, poster, "_get_by_key")
        loser = poster.post(cash_sale(doc_id))

        assert len(calls) == 2
        assert winner.status == PostingStatus.POSTED
        assert loser.status == PostingStatus.ALREADY_POSTED
        assert loser.batch_id == winner.batch_id
        assert journal_selector.count_batches(company_id) == 1
        conflicts = [r for r in captured_logs() if r["message"] == "concurrent_insert_conflict"]
        assert len(conflicts) == 1

    def test_loser_keeps_the_session_usable(
        self, poster, cash_sale, journal_selector, company_id, monkeypatch
    ):
        doc_id = uuid4()
        poster.post(cash_sale(doc_id))
        stale_once(monkeypatch, poster, "_get_by_key")
        poster.post(cash_sale(doc_id))

        # Only the savepoint was rolled back
        other = poster.post(cash_sale(uuid4()))
        assert other.status == PostingStatus.POSTED
        assert journal_selector.count_batches(company_id) == 2

    def test_many_sequential_posts_one_batch(self, poster, cash_sale, journal_selector, company_id):
        doc_id = uuid4()
        results = [poster.post(cash_sale(doc_id)) for _ in range(25)]

        assert sum(1 for r in results if r.status == PostingStatus.POSTED) == 1
        assert len({r.batch_id for r in results}) == 1
        assert journal_selector.count_batches(company_id) == 1


class TestVoidConcurrency:

    def test_reversal_conflict_is_already_void(
        self, session, poster, cash_sale, journal_selector, company_id, test_actor_id
    ):
        request = cash_sale(uuid4())
        posted = poster.post(request)

        # A concurrent void committed its reversal first
        session.add(
            JournalBatch(
                company_id=company_id,
                outlet_id=None,
                doc_type=request.doc_type,
                doc_id=request.doc_id,
                idempotency_key=reversal_key(request.idempotency_key),
                posted_at=POSTED_AT,
                status=JournalBatchStatus.POSTED.value,
                reversal_of_id=posted.batch_id,
                created_by_id=test_actor_id,
            )
        )
        session.commit()

        with pytest.raises(BatchAlreadyVoidError):
            poster.void(posted.batch_id, test_actor_id, "duplicate")
        assert journal_selector.get_batch(posted.batch_id).status == JournalBatchStatus.POSTED


# ---------------------------------------------------------------------------
# Depreciation
# ---------------------------------------------------------------------------


class TestDepreciationRunConcurrency:

    def test_lost_run_race_is_duplicate(
        self, depreciation_service, draft_plan, journal_selector, company_id, test_actor_id, monkeypatch
    ):
        plan = depreciation_service.activate_plan(draft_plan().id, test_actor_id)
        winner = depreciation_service.run_period(plan.id, 2025, 1, test_actor_id)

        stale_once(monkeypatch, depreciation_service, "_active_run")
        loser = depreciation_service.run_period(plan.id, 2025, 1, test_actor_id)

        assert winner.duplicate is False
        assert loser.duplicate is True
        assert loser.run.id == winner.run.id
        assert len(depreciation_service.list_runs(plan.id, include_void=True)) == 1
        assert journal_selector.count_batches(company_id, DOC_TYPE) == 1

    def test_next_period_after_lost_race(
        self, depreciation_service, draft_plan, test_actor_id, monkeypatch
    ):
        plan = depreciation_service.activate_plan(draft_plan().id, test_actor_id)
        depreciation_service.run_period(plan.id, 2025, 1, test_actor_id)
        stale_once(monkeypatch, depreciation_service, "_active_run")
        depreciation_service.run_period(plan.id, 2025, 1, test_actor_id)

        result = depreciation_service.run_period(plan.id, 2025, 2, test_actor_id)
        assert result.duplicate is False
        assert result.run.amount == Decimal("100000.00")


class TestActivePlanConcurrency:

    def test_second_activation_hits_the_index(
        self, depreciation_service, draft_plan, test_actor_id, monkeypatch
    ):
        first = draft_plan()
        second = draft_plan()
        depreciation_service.activate_plan(first.id, test_actor_id)

        calls = stale_once(monkeypatch, depreciation_service, "_other_active_plan")
        with pytest.raises(ActivePlanExistsError):
            depreciation_service.activate_plan(second.id, test_actor_id)

        assert len(calls) == 1
        assert depreciation_service.get_plan(first.id).status == PlanStatus.ACTIVE
        assert depreciation_service.get_plan(second.id).status == PlanStatus.DRAFT
