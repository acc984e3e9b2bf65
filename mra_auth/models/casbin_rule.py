"""Policy and role-grant storage."""

from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

RULE_FIELDS = ("v0", "v1", "v2", "v3", "v4", "v5", "v6")


class CasbinRule(Base):
    """
    One ``p``, ``g`` or ``g2`` rule.

    Unused positions hold ``""`` rather than NULL so the unique constraint
    also covers short rules such as role grants.
    """

    __tablename__ = "casbin_rule"
    __table_args__ = (
        UniqueConstraint("ptype", *RULE_FIELDS, name="casbin_rule_unique"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ptype: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    v0: Mapped[str] = mapped_column(String(255), nullable=False, default="", index=True)
    v1: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    v2: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    v3: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    v4: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    v5: Mapped[str] = mapped_column(String(1023), nullable=False, default="")
    v6: Mapped[str] = mapped_column(String(255), nullable=False, default="")

    def values(self) -> tuple[str, ...]:
        return tuple(getattr(self, name) or "" for name in RULE_FIELDS)

    def __repr__(self) -> str:
        return f"<CasbinRule {self.ptype} {','.join(v for v in self.values() if v)}>"
