"""
Tests for application startup and shutdown.
"""

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine

from mra_auth.core.config import AuthzSettings, DatabaseSettings, RedisSettings, Settings
from mra_auth.main import create_app


@pytest.fixture
def lifespan_settings(tmp_path) -> Settings:
    return Settings(
        environment="testing",
        database=DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path / 'lifespan.db'}"),
        redis=RedisSettings(url=None),
        authz=AuthzSettings(adapter="sqlalchemy"),
    )


@pytest.mark.asyncio
async def test_storage_released_once(lifespan_settings, monkeypatch):
    disposed: list[AsyncEngine] = []
    original = AsyncEngine.dispose

    async def counting_dispose(self, *args, **kwargs):
        disposed.append(self)
        return await original(self, *args, **kwargs)

    monkeypatch.setattr(AsyncEngine, "dispose", counting_dispose)
    app = create_app(lifespan_settings)

    async with app.router.lifespan_context(app):
        assert app.state.authz.enforcer.snapshot.rules
        assert disposed == []

    assert disposed == [app.state.engine]
