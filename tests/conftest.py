import os

# Settings are read at import time
os.environ["APP_DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["APP_PUSH_RETRY_BACKOFF_SECONDS"] = "0"
os.environ["APP_PUSH_ENABLED"] = "true"
os.environ["APP_PUBLIC_BASE_URL"] = "https://gate.example.com"

from typing import Dict, List, Optional, Union

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from apps.api.auth.dependency import authenticate_principal
from apps.api.device.service import TokenDirectory
from apps.api.notification.service import NotificationDispatcher
from apps.api.residency.models import Block, Flat, Residency
from apps.api.user.models import Guard, Resident
from apps.api.user.schema import Principal
from apps.api.visitor.schema import VisitorRequestCreate
from apps.api.visitor.service import RequestStore
from core.db.base import Base
from core.db.core import get_db
from core.exceptions.authentication import UnauthorizedException
from core.fastapi.app import create_app, discover_modules
from core.notifications.dependency import get_push_gateway
from core.notifications.gateway import PushGatewayError, PushSendResult

discover_modules("apps", "models")

BASE_URL = "https://gate.example.com"


class FakePushGateway:
    """
    Records every send. ``failures`` maps a token to an error code returned
    on every attempt, or to a list of codes consumed one per attempt (None
    meaning success). ``refusals`` holds codes raised as PushGatewayError,
    one per call, before any token is tried.
    """

    def __init__(self, failures: Optional[Dict[str, Union[str, List]]] = None):
        self.calls = []
        self.failures = failures or {}
        self.refusals: List[str] = []

    async def send_multicast(self, message, tokens, dry_run=False):
        self.calls.append({"message": message, "tokens": list(tokens), "dry_run": dry_run})
        if self.refusals:
            raise PushGatewayError("refused", push_error_code=self.refusals.pop(0))
        results = []
        for token in tokens:
            code = self._next_error(token)
            if code:
                results.append(
                    PushSendResult(token=token, success=False, error_code=code)
                )
            else:
                results.append(
                    PushSendResult(
                        token=token, success=True, message_id=f"msg-{len(self.calls)}"
                    )
                )
        return results

    def _next_error(self, token):
        planned = self.failures.get(token)
        if isinstance(planned, list):
            return planned.pop(0) if planned else None
        return planned

    @property
    def sent_tokens(self):
        return [token for call in self.calls for token in call["tokens"]]


@pytest.fixture
async def engine(tmp_path):
    # A file database so separate sessions get separate connections
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'visitgate.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        bind=engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def residency(session):
    """
    R1 with Block A / flat 101 (F1) and flat 102 (F2, no block). alice
    lives in F1 by flat id, bob in 'Block A'/101 by name only, carol in F2.
    """
    residency = Residency(id="R1", name="Green Meadows", admin_fcm_token="ADMIN-T")
    block = Block(id="B1", residency_id="R1", name="Block A")
    f1 = Flat(id="F1", residency_id="R1", block_id="B1", number="101")
    f2 = Flat(id="F2", residency_id="R1", number="102")
    session.add_all(
        [
            residency,
            block,
            f1,
            f2,
            Resident(id="res-alice", residency_id="R1", username="alice", flat_id="F1", fcm_tokens=["T1"]),
            Resident(id="res-bob", residency_id="R1", username="bob", block="A", flat="101"),
            Resident(id="res-carol", residency_id="R1", username="carol", flat_id="F2", fcm_token="T-CAROL"),
            Guard(id="grd-gary", residency_id="R1", username="gary", fcm_tokens=["T-GUARD"]),
        ]
    )
    await session.commit()
    return residency


@pytest.fixture
def gateway():
    return FakePushGateway()


@pytest.fixture
def directory(session):
    return TokenDirectory(session=session)


@pytest.fixture
def store(session):
    return RequestStore(session=session)


@pytest.fixture
def dispatcher(session, directory, store, gateway):
    return NotificationDispatcher(
        session=session,
        directory=directory,
        store=store,
        gateway=gateway,
        base_url=BASE_URL,
    )


@pytest.fixture
def make_request(store, residency):
    async def factory(visitor_name="John", flat_id="F1", **fields):
        return await store.create(
            "R1",
            VisitorRequestCreate(
                residency_id="R1", visitor_name=visitor_name, flat_id=flat_id, **fields
            ),
        )

    return factory


@pytest.fixture
def auth():
    """Holder for the principal the fake authentication returns."""
    return {"principal": None}


@pytest.fixture
def login(auth):
    def as_principal(role: str, username: str, residency_id: str = "R1") -> Principal:
        auth["principal"] = Principal(
            residency_id=residency_id, role=role, username=username
        )
        return auth["principal"]

    return as_principal


@pytest.fixture
async def client(session, gateway, auth):
    app = create_app()

    async def override_get_db():
        yield session

    async def override_principal():
        if auth["principal"] is None:
            raise UnauthorizedException("Missing or invalid authentication token.")
        return auth["principal"]

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_push_gateway] = lambda: gateway
    app.dependency_overrides[authenticate_principal] = override_principal

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
