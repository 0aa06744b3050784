import warnings

import pytest
from sqlalchemy.exc import InvalidRequestError, SADeprecationWarning
from sqlalchemy.orm import configure_mappers

from spicymarg_api.models.guest import Guest, OtpChallenge


def test_guest_relationships_use_supported_loader_strategy() -> None:
    with warnings.catch_warnings():
        warnings.simplefilter("error", SADeprecationWarning)
        configure_mappers()

    assert Guest.visits.property.lazy == "raise"
    assert Guest.otp_challenge.property.lazy == "raise"


@pytest.mark.asyncio
async def test_guest_relationships_are_never_loaded_implicitly(session_factory, make_guest, clock) -> None:
    guest = await make_guest(session_factory, stage=0)

    async with session_factory() as session:
        session.add(OtpChallenge(guest_id=guest.id, phone="+61412345678", code_hash="x", expires_at=clock()))
        await session.commit()

    async with session_factory() as session:
        stored = await session.get(Guest, guest.id)
        with pytest.raises(InvalidRequestError):
            stored.visits
        with pytest.raises(InvalidRequestError):
            stored.otp_challenge
        assert stored.stage == 0
