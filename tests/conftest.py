"""
Pytest fixtures for testing.

Provides:
- A file-backed SQLite database per test (condition lookups open their own
  connections, so an in-memory shared connection would not do)
- An enforcer context over the in-memory policy adapter, bootstrapped with
  the shipped policy file
- Test client with the application state wired to both
- Factory fixtures for users and bearer tokens
- An in-memory directory for engine-level tests
"""

from datetime import datetime, timezone
from typing import Any, AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from mra_auth.core.auth import (
    AuthRegistry,
    AuthzContext,
    Enforcer,
    TableDescriptor,
    UserTypeClassifier,
    load_model,
)
from mra_auth.core.auth.adapters.memory import MemoryPolicyAdapter
from mra_auth.core.auth.conditions import ConditionEvaluator
from mra_auth.core.config import AuthzSettings, EmailSettings
from mra_auth.main import create_app
from mra_auth.models import MraUser
from mra_auth.models.database import create_session_factory, init_db
from mra_auth.services.auth import AuthService
from mra_auth.services.crypto import generate_code
from mra_auth.services.directory import DirectoryService
from mra_auth.services.email import EmailService, MemoryEmailBackend

DEFAULT_PASSWORD = "Secret#Pass1"


# ============ Database ============


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Fresh database with all tables and the system table descriptors."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'mra.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(db_engine)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============ Authorization ============


@pytest.fixture
def authz_settings() -> AuthzSettings:
    return AuthzSettings(adapter="memory")


@pytest_asyncio.fixture
async def authz(authz_settings, session_factory) -> AsyncGenerator[AuthzContext, None]:
    context = await AuthzContext.create(
        authz_settings,
        session_factory,
        DirectoryService(session_factory),
        adapter=MemoryPolicyAdapter(),
    )
    yield context
    await context.close()


@pytest.fixture
def resolver(authz: AuthzContext):
    return authz.resolver


# ============ Application ============


@pytest.fixture
def email_backend() -> MemoryEmailBackend:
    return MemoryEmailBackend()


@pytest.fixture
def app(session_factory, authz, email_backend):
    """Application with its lifespan state set directly."""
    application = create_app()
    application.state.session_factory = session_factory
    application.state.authz = authz
    application.state.email = EmailService(email_backend, EmailSettings())
    return application


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client


# ============ Factory Fixtures ============


class UserFactory:
    """Creates committed users and grants their roles."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], resolver):
        self.session_factory = session_factory
        self.resolver = resolver

    async def create(
        self,
        username: str,
        password: str = DEFAULT_PASSWORD,
        email: str | None = None,
        roles: tuple[tuple[str, str], ...] = (("enduser", "0"),),
        active: bool = True,
        **fields: Any,
    ) -> MraUser:
        user = MraUser(
            username=username,
            email=email or f"{username}@example.com",
            password_hash=AuthService.hash_password(password),
            display_name=username.title(),
            confirmation_at=datetime.now(timezone.utc) if active else None,
            activation_code=None if active else generate_code(),
            **fields,
        )
        async with self.session_factory() as session:
            session.add(user)
            await session.commit()

        for role, domain in roles:
            await self.resolver.add_role_for_user_in_domain(username, role, domain)
        return user


@pytest.fixture
def user_factory(session_factory, resolver) -> UserFactory:
    return UserFactory(session_factory, resolver)


@pytest_asyncio.fixture
async def alice(user_factory: UserFactory) -> MraUser:
    """An end user."""
    return await user_factory.create("alice")


@pytest_asyncio.fixture
async def carol(user_factory: UserFactory) -> MraUser:
    """Another end user."""
    return await user_factory.create("carol")


@pytest_asyncio.fixture
async def admin(user_factory: UserFactory) -> MraUser:
    """Internal staff with the super role."""
    return await user_factory.create("staffer", roles=(("super", "0"),))


# ============ Auth Helpers ============


def auth_headers(user: MraUser) -> dict[str, str]:
    """Bearer header for any user."""
    issued = AuthService.create_access_token(user.user_id, user.username, user.email)
    return {"Authorization": f"Bearer {issued.token}"}


@pytest.fixture
def alice_headers(alice: MraUser) -> dict[str, str]:
    return auth_headers(alice)


@pytest.fixture
def admin_headers(admin: MraUser) -> dict[str, str]:
    return auth_headers(admin)


# ============ In-memory Directory ============


class FakeDirectory:
    """Directory lookups served from dictionaries."""

    def __init__(
        self,
        users: dict[str, int] | None = None,
        tables: dict[str, TableDescriptor] | None = None,
        relationships: set[tuple[int, str]] | None = None,
        rows: dict[tuple[str, str, Any], dict[str, Any]] | None = None,
    ):
        self.users = users or {}
        self.tables = tables or {}
        self.relationships = relationships or set()
        self.rows = rows or {}

    async def get_user_id(self, username: str) -> int | None:
        return self.users.get(username)

    async def get_table(self, table_name: str) -> TableDescriptor | None:
        return self.tables.get(table_name)

    async def has_valid_relationship(self, user_id: int, customer_id: str) -> bool:
        return (user_id, str(customer_id)) in self.relationships

    async def get_row(self, table_name: str, column: str, value: Any) -> dict[str, Any] | None:
        return self.rows.get((table_name, column, value))


@pytest.fixture
def directory() -> FakeDirectory:
    """Empty in-memory directory; tests fill in what they need."""
    return FakeDirectory()


@pytest.fixture
def make_enforcer(directory: FakeDirectory):
    """
    Build an enforcer over the shipped model and the given rules.

    Usage:
        enforcer = await make_enforcer([PolicyRule.of("p", ...), ...])
    """

    async def factory(rules=(), internal_roles=("super",), directory_override=None) -> Enforcer:
        lookups = directory_override or directory
        strategies = [
            AuthRegistry.get_condition(name, directory=lookups)
            for name in AuthRegistry.list_conditions()
        ]
        enforcer = Enforcer(
            load_model(AuthzSettings().model_path),
            MemoryPolicyAdapter(rules),
            ConditionEvaluator(strategies, lookups),
            UserTypeClassifier(internal_roles=frozenset(internal_roles), global_domain="0"),
        )
        await enforcer.load_policy()
        return enforcer

    return factory


@pytest.fixture
def make_headers():
    return auth_headers
