import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine


def _configure_path() -> None:
    src_path = Path(__file__).resolve().parents[1] / "src"
    if src_path.exists():
        sys.path.insert(0, str(src_path))


_configure_path()

from spicymarg_api.api.dependencies.services import get_stage_notifier  # noqa: E402
from spicymarg_api.app import create_app  # noqa: E402
from spicymarg_api.db.base import Base  # noqa: E402
from spicymarg_api.db.session import get_session  # noqa: E402
from spicymarg_api.models.guest import Guest, Visit  # noqa: E402
from spicymarg_api.observability.funnel import get_funnel_store  # noqa: E402
from spicymarg_api.services.notifications import InMemoryCrmBackend, StageNotifier  # noqa: E402


class FrozenClock:
    """Callable clock that tests can move forward."""

    def __init__(self, now: datetime | None = None) -> None:
        self.now = now or datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def reset_funnel_store():
    get_funnel_store().reset()
    yield
    get_funnel_store().reset()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def crm_backend() -> InMemoryCrmBackend:
    return InMemoryCrmBackend()


@pytest.fixture
def notifier(crm_backend: InMemoryCrmBackend) -> StageNotifier:
    return StageNotifier(
        crm_backend,
        public_app_url="https://trap.example",
        review_link="https://g.co/kgs/RFM6TGv",
        signup_list_ids=[7],
        voucher_template_id=49,
        final_thanks_template_id=4,
    )


@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture
async def file_session_factory(tmp_path):
    """Separate connections per session, for tests that race two transactions."""

    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'funnel.db'}",
        future=True,
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    try:
        yield factory
    finally:
        await engine.dispose()


@pytest.fixture
def make_guest():
    """Insert a guest at ``stage`` together with the visits that stage implies."""

    async def _make(
        session_factory,
        *,
        email: str = "guest@example.com",
        stage: int = 0,
        full_name: str | None = None,
        phone: str | None = None,
        date_of_birth: date = date(1995, 5, 17),
        created_at: datetime | None = None,
        voucher_claimed_at: datetime | None = None,
    ) -> Guest:
        async with session_factory() as session:
            now = created_at or datetime.now(timezone.utc)
            guest = Guest(
                email=email,
                stage=stage,
                full_name=full_name if full_name is not None else ("Sam Guest" if stage >= 1 else None),
                phone=phone if phone is not None else ("+61412345678" if stage >= 1 else None),
                date_of_birth=date_of_birth,
                last_stage_at=now,
                created_at=now,
                voucher_claimed_at=voucher_claimed_at or (now if stage >= 1 else None),
            )
            session.add(guest)
            await session.flush()
            for visit_number in range(1, stage):
                session.add(Visit(guest_id=guest.id, visit_number=visit_number, created_at=now))
            await session.commit()
            return guest

    return _make


@pytest_asyncio.fixture
async def app_with_db(session_factory, notifier):
    app = create_app()

    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    app.dependency_overrides[get_stage_notifier] = lambda: notifier

    try:
        yield app, session_factory
    finally:
        app.dependency_overrides.clear()
