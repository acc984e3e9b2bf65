"""
Policy storage adapters.

- memory: development and unit tests, lost on restart
- sqlalchemy: ``casbin_rule`` table through an async engine
"""

from .memory import MemoryPolicyAdapter
from .sqlalchemy import SQLAlchemyPolicyAdapter

__all__ = [
    "MemoryPolicyAdapter",
    "SQLAlchemyPolicyAdapter",
]
