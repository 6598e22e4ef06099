from typing import Optional

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field

RULE_COLUMNS = ("v0", "v1", "v2", "v3", "v4", "v5")


class CasbinRule(SQLModel, table=True):
    """
    Represents one stored Casbin rule.

    Policy type (`ptype`):
    - "p", "p2", ...  -> permission rules
    - "g", "g2", ...  -> grouping (role) rules

    Field meanings depend on the model definition, for example:

    For ptype = "p" (permissions):
        - v0: subject
        - v1: object
        - v2: action

    For ptype = "g" (role assignment):
        - v0: user
        - v1: role
        - v2: domain (optional)

    Unused trailing slots hold the empty string, never NULL.
    """

    __tablename__ = "casbin_rule"
    __table_args__ = (
        UniqueConstraint("ptype", *RULE_COLUMNS, name="uq_casbin_rule"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    ptype: str = Field(index=True, max_length=12)
    v0: str = Field(default="", max_length=128)
    v1: str = Field(default="", max_length=128)
    v2: str = Field(default="", max_length=128)
    v3: str = Field(default="", max_length=128)
    v4: str = Field(default="", max_length=128)
    v5: str = Field(default="", max_length=128)

    def values(self) -> list[str]:
        return [getattr(self, column) or "" for column in RULE_COLUMNS]

    def to_rule(self) -> list[str]:
        """Rule fields with trailing empty slots removed."""
        rule = self.values()
        while rule and rule[-1] == "":
            rule.pop()
        return rule

    def __str__(self) -> str:
        return ", ".join([self.ptype, *self.to_rule()])

    def __repr__(self) -> str:
        return f'<CasbinRule {self.id}: "{str(self)}">'


class Filter(SQLModel):
    """
    Patterns restricting a filtered load.

    `p` applies to permission rules and `g` to grouping rules. Each entry
    constrains the slot at the same position; an empty entry matches anything.
    """

    p: list[str] = Field(default_factory=list)
    g: list[str] = Field(default_factory=list)

    @classmethod
    def from_any(cls, value) -> "Filter":
        """Accept a Filter, a mapping, or an object with p/g (or P/G) lists."""
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(p=list(value.get("p", [])), g=list(value.get("g", [])))
        p = getattr(value, "p", None)
        if p is None:
            p = getattr(value, "P", None)
        g = getattr(value, "g", None)
        if g is None:
            g = getattr(value, "G", None)
        return cls(p=list(p or []), g=list(g or []))

    def patterns_for(self, section: str) -> list[str]:
        if section == "p":
            return self.p
        if section == "g":
            return self.g
        return []
