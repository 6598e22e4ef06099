from .casbin_rule import CasbinRuleCrud
