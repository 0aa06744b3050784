from datetime import datetime, timezone

import pytest

from spicymarg_api.models.guest import Guest, Visit
from spicymarg_api.services.funnel.eligibility import EligibilityEvaluator, EligibilityStatus
from spicymarg_api.services.funnel.offers import Offer


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("offer", "stage", "expected"),
    [
        (Offer.SPICY_MARGARITA, 0, EligibilityStatus.NOT_YET_AVAILABLE),
        (Offer.SPICY_MARGARITA, 1, EligibilityStatus.ELIGIBLE),
        (Offer.SPICY_MARGARITA, 2, EligibilityStatus.ALREADY_PASSED),
        (Offer.ICEY_MARGARITA, 1, EligibilityStatus.NOT_YET_AVAILABLE),
        (Offer.ICEY_MARGARITA, 2, EligibilityStatus.ELIGIBLE),
        (Offer.ICEY_MARGARITA, 3, EligibilityStatus.ALREADY_PASSED),
        (Offer.FREE_COCKTAIL, 2, EligibilityStatus.NOT_YET_AVAILABLE),
        (Offer.FREE_COCKTAIL, 3, EligibilityStatus.ELIGIBLE),
        (Offer.FREE_COCKTAIL, 4, EligibilityStatus.ALREADY_COMPLETED),
        (Offer.SPICY_MARGARITA, 4, EligibilityStatus.ALREADY_COMPLETED),
    ],
)
async def test_stage_gates_each_offer(session_factory, make_guest, offer, stage, expected) -> None:
    guest = await make_guest(session_factory, stage=stage)

    async with session_factory() as session:
        decision = await EligibilityEvaluator(session).evaluate(offer, guest)

    assert decision.status is expected
    assert decision.current_stage == stage
    assert decision.is_eligible is (expected is EligibilityStatus.ELIGIBLE)


@pytest.mark.asyncio
async def test_recorded_visit_overrides_matching_stage(session_factory, make_guest) -> None:
    guest = await make_guest(session_factory, stage=1, full_name="Sam Guest")
    async with session_factory() as session:
        session.add(Visit(guest_id=guest.id, visit_number=1, created_at=datetime.now(timezone.utc)))
        await session.commit()

    async with session_factory() as session:
        decision = await EligibilityEvaluator(session).evaluate(Offer.SPICY_MARGARITA, guest)

    assert decision.status is EligibilityStatus.ALREADY_COMPLETED
    assert decision.visit_recorded is True
    assert decision.message == "This spicy-margarita offer has already been redeemed (Visit 1 recorded)."


@pytest.mark.asyncio
async def test_each_outcome_has_its_own_message(session_factory, make_guest) -> None:
    early = await make_guest(session_factory, email="early@example.com", stage=0)
    passed = await make_guest(session_factory, email="passed@example.com", stage=3, full_name="Pat Passed")
    done = await make_guest(session_factory, email="done@example.com", stage=4, full_name="Dana Done")

    async with session_factory() as session:
        evaluator = EligibilityEvaluator(session)
        not_yet = await evaluator.evaluate(Offer.ICEY_MARGARITA, early)
        already_passed = await evaluator.evaluate(Offer.SPICY_MARGARITA, passed)
        completed = await evaluator.evaluate(Offer.FREE_COCKTAIL, done)

    assert not_yet.message == (
        "This offer (icey-margarita) is not yet available. Please complete the previous step(s). Current stage: 0."
    )
    assert "Pat Passed" in already_passed.message
    assert "already been passed" in already_passed.message
    assert completed.message == "This funnel has already been completed for Dana Done."
    assert len({not_yet.message, already_passed.message, completed.message}) == 3


@pytest.mark.asyncio
async def test_display_name_falls_back_to_email(session_factory) -> None:
    guest = Guest(email="anon@example.com", stage=4, full_name=None)

    async with session_factory() as session:
        decision = await EligibilityEvaluator(session).evaluate(Offer.FREE_COCKTAIL, guest)

    assert decision.message == "This funnel has already been completed for anon@example.com."
