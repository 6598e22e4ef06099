import logging
import threading
from typing import Iterable, Optional, Sequence

from casbin.persist.adapters.asyncio import AsyncAdapter
from sqlalchemy.ext.asyncio import AsyncEngine

from casbin_sql_adapter.core.filters import SECTIONS, matches_filter
from casbin_sql_adapter.core.rule_codec import decode_rule, encode_rule
from casbin_sql_adapter.crud import CasbinRuleCrud
from casbin_sql_adapter.models import CasbinRule, Filter

logger = logging.getLogger(__name__)


class Adapter(AsyncAdapter):
    """
    Async Casbin adapter storing policy rules in a SQL table.

    Usage:
        engine = get_engine()
        adapter = Adapter(engine)
        await adapter.create_table()
        enforcer = casbin.AsyncEnforcer("rbac_model.conf", adapter)
        await enforcer.load_policy()

    Once a load leaves out at least one stored rule the adapter reports
    `is_filtered()` for the rest of its life, which stops the enforcer from
    saving an incomplete policy over the full one.
    """

    def __init__(self, engine: AsyncEngine, filter_pushdown: Optional[bool] = None):
        if filter_pushdown is None:
            from casbin_sql_adapter.core.config import settings

            filter_pushdown = settings.FILTER_PUSHDOWN
        self.crud = CasbinRuleCrud(engine)
        self.filter_pushdown = filter_pushdown
        self._filtered = threading.Event()

    async def create_table(self) -> None:
        await self.crud.create_table()

    def is_filtered(self) -> bool:
        return self._filtered.is_set()

    def _mark_filtered(self) -> None:
        if not self._filtered.is_set():
            logger.info("[_mark_filtered] Adapter now holds a partial policy")
        self._filtered.set()

    @staticmethod
    def _load_rule(model, row: CasbinRule, rule: list[str]) -> None:
        sec = row.ptype[:1]
        if sec not in model.model or row.ptype not in model.model[sec]:
            logger.debug(
                f"[_load_rule] Skipping rule not declared by the model | rule='{row}'"
            )
            return
        model.add_policy(sec, row.ptype, rule)

    async def load_policy(self, model) -> None:
        """Load every stored rule into `model`."""
        rows = await self.crud.load_all()
        loaded = 0
        for row in rows:
            rule = decode_rule(row)
            if rule is None:
                logger.debug(f"[load_policy] Skipping blank rule | id={row.id}")
                continue
            self._load_rule(model, row, rule)
            loaded += 1
        logger.info(f"[load_policy] Policy loaded | rules={loaded}")

    async def load_filtered_policy(self, model, filter) -> None:
        """Load the stored rules matching `filter`; None loads everything."""
        if filter is None:
            await self.load_policy(model)
            return

        filter = Filter.from_any(filter)
        if self.filter_pushdown:
            rows, stored = await self.crud.load_filtered_with_total(filter)
        else:
            rows = await self.crud.load_all()
            stored = sum(1 for row in rows if decode_rule(row) is not None)

        # blank rows hold no rule, so they are neither loaded nor excluded
        loaded = 0
        for row in rows:
            rule = decode_rule(row)
            if rule is None or not matches_filter(row.ptype, rule, filter):
                continue
            self._load_rule(model, row, rule)
            loaded += 1

        excluded = stored - loaded
        if excluded > 0:
            self._mark_filtered()
        logger.info(
            f"[load_filtered_policy] Filtered policy loaded | rules={loaded} | "
            f"excluded={excluded} | pushdown={self.filter_pushdown}"
        )

    async def save_policy(self, model) -> bool:
        """Replace the stored rules with the p and g rules held by `model`."""
        rules = []
        for sec in SECTIONS:
            for ptype, assertion in model.model.get(sec, {}).items():
                for rule in assertion.policy:
                    rules.append(encode_rule(ptype, rule))
        await self.crud.replace_all(rules)
        return True

    async def add_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        return await self.crud.insert_one(encode_rule(ptype, rule))

    async def add_policies(
        self, sec: str, ptype: str, rules: Iterable[Sequence[str]]
    ) -> bool:
        return await self.crud.insert_many(encode_rule(ptype, rule) for rule in rules)

    async def remove_policy(self, sec: str, ptype: str, rule: Sequence[str]) -> bool:
        return await self.crud.delete_one(ptype, rule)

    async def remove_policies(
        self, sec: str, ptype: str, rules: Iterable[Sequence[str]]
    ) -> bool:
        return await self.crud.delete_many(ptype, rules)

    async def remove_filtered_policy(
        self, sec: str, ptype: str, field_index: int, *field_values: str
    ) -> bool:
        return await self.crud.delete_filtered(ptype, field_index, list(field_values))

    async def clear_policy(self) -> None:
        await self.crud.clear()
