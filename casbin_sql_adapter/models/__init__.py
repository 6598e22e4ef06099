from sqlmodel import SQLModel

from .casbin_rule import CasbinRule, Filter, RULE_COLUMNS
