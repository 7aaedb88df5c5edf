"""
Pytest fixtures for the commerce service.

Integration fixtures run against an in-memory SQLite database and are
parametrized over both persistence profiles, so every service test runs
once with the ORM repositories and once with the hand-written SQL ones.
"""

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.models import Base
from app.repository import PROFILES, Repositories, build_repositories
from app.schemas import Product, User


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture(params=PROFILES)
def repos(request, session) -> Repositories:
    return build_repositories(session, request.param)


@pytest_asyncio.fixture
async def test_user(repos: Repositories) -> User:
    user = await repos.users.save(User(username="test_user", email="test.user@example.com"))
    await repos.commit()
    return user


@pytest_asyncio.fixture
async def test_product(repos: Repositories) -> Product:
    product = await repos.products.save(
        Product(name="Test Product", description="Test Description", price=100.0, stock=50)
    )
    await repos.commit()
    return product
