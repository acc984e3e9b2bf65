"""
Authorization context.

Holds the process-wide enforcer and everything it was assembled from.
Built once in the application lifespan, stored on ``app.state.authz`` and
closed at shutdown.

Usage:
    authz = await AuthzContext.create(settings.authz, session_factory, directory)
    app.state.authz = authz
    ...
    await authz.close()
"""

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from mra_auth.core.config import AuthzSettings

from . import conditions  # noqa: F401  registers the built-in conditions
from .adapters import MemoryPolicyAdapter, SQLAlchemyPolicyAdapter
from .bootstrap import bootstrap_policies
from .conditions import ConditionEvaluator
from .enforcer import Enforcer
from .interfaces import Directory, PolicyAdapter
from .model import AuthzModel, load_model
from .registry import AuthRegistry
from .resolver import RoleResolver
from .roles import UserTypeClassifier

logger = logging.getLogger(__name__)


def build_adapter(
    config: AuthzSettings,
    session_factory: async_sessionmaker[AsyncSession],
    engine: AsyncEngine | None = None,
) -> PolicyAdapter:
    if config.adapter == "memory":
        return MemoryPolicyAdapter()
    return SQLAlchemyPolicyAdapter(session_factory, engine=engine)


@dataclass
class AuthzContext:
    config: AuthzSettings
    model: AuthzModel
    enforcer: Enforcer
    resolver: RoleResolver
    directory: Directory
    _closed: bool = False

    @classmethod
    async def create(
        cls,
        config: AuthzSettings,
        session_factory: async_sessionmaker[AsyncSession],
        directory: Directory,
        engine: AsyncEngine | None = None,
        adapter: PolicyAdapter | None = None,
    ) -> "AuthzContext":
        """
        Load the model and rules, then import the bootstrap policy file.

        A bad model file or unreachable storage raises; the application
        must not start without a working enforcer.
        """
        model = load_model(config.model_path)
        if adapter is None:
            adapter = build_adapter(config, session_factory, engine)

        strategies = [
            AuthRegistry.get_condition(name, directory=directory)
            for name in AuthRegistry.list_conditions()
        ]
        evaluator = ConditionEvaluator(strategies, directory, config.public_username)
        classifier = UserTypeClassifier(
            internal_roles=frozenset(config.internal_roles),
            global_domain=config.global_domain,
        )
        enforcer = Enforcer(model, adapter, evaluator, classifier, config.public_username)
        resolver = RoleResolver(enforcer)

        await enforcer.load_policy()
        if config.bootstrap_policies and config.policy_path is not None:
            await bootstrap_policies(resolver, config.policy_path, config.global_domain)

        logger.info(
            f"Authorization ready: model={config.model_path}, "
            f"adapter={type(adapter).__name__}, conditions={sorted(evaluator.strategies)}"
        )
        return cls(
            config=config,
            model=model,
            enforcer=enforcer,
            resolver=resolver,
            directory=directory,
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.enforcer.close()
