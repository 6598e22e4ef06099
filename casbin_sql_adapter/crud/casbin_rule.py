import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, Optional, Sequence

from sqlalchemy import delete, func, insert, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlmodel import SQLModel

from casbin_sql_adapter.core.exceptions import (
    ConstraintViolationError,
    NotFoundError,
    StorageIOError,
)
from casbin_sql_adapter.core.filters import (
    filter_clause,
    filtered_removal_clause,
    non_blank_clause,
)
from casbin_sql_adapter.core.rule_codec import pad_rule
from casbin_sql_adapter.models import CasbinRule, Filter, RULE_COLUMNS

logger = logging.getLogger(__name__)

rule_table = CasbinRule.__table__


class CasbinRuleCrud:
    """
    Row-level operations on the casbin_rule table.

    Single-row calls report "nothing matched" as False. Batch calls run in
    one transaction and raise when any statement affects a row count other
    than one, so a failed batch never leaves partial changes behind.

    Usage:
        crud = CasbinRuleCrud(engine)
        await crud.insert_one(encode_rule("p", ["alice", "data1", "read"]))
        rows = await crud.load_all()
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine

    @asynccontextmanager
    async def _unit_of_work(
        self, operation: str, transactional: bool = True
    ) -> AsyncIterator[AsyncConnection]:
        """
        Yield a connection, translating driver errors into adapter errors.

        In transactional mode the work is committed on success and rolled
        back on any exception, including task cancellation.
        """
        try:
            if transactional:
                async with self.engine.begin() as conn:
                    yield conn
            else:
                async with self.engine.connect() as conn:
                    yield conn
        except IntegrityError as e:
            logger.error(
                f"[{operation}] Unique constraint violated | {e.orig}", exc_info=True
            )
            raise ConstraintViolationError(
                f"{operation}: rule already exists ({e.orig})"
            ) from e
        except SQLAlchemyError as e:
            logger.error(f"[{operation}] Storage error | {e}", exc_info=True)
            raise StorageIOError(f"{operation}: {e}") from e

    @staticmethod
    def _row_values(rule: CasbinRule) -> dict:
        return {
            "ptype": rule.ptype,
            **{column: getattr(rule, column) or "" for column in RULE_COLUMNS},
        }

    @staticmethod
    def _exact_match(ptype: str, fields: Sequence[str]):
        values = pad_rule(fields)
        return [rule_table.c.ptype == ptype] + [
            rule_table.c[column] == value
            for column, value in zip(RULE_COLUMNS, values)
        ]

    @staticmethod
    def _to_models(result) -> list[CasbinRule]:
        return [CasbinRule(**row._mapping) for row in result]

    async def create_table(self) -> None:
        async with self._unit_of_work("create_table") as conn:
            await conn.run_sync(
                SQLModel.metadata.create_all, tables=[rule_table], checkfirst=True
            )

    async def insert_one(self, rule: CasbinRule) -> bool:
        async with self._unit_of_work("insert_one") as conn:
            result = await conn.execute(
                insert(rule_table).values(**self._row_values(rule))
            )
        logger.info(f"[insert_one] Rule inserted | rule='{rule}'")
        return result.rowcount == 1

    async def insert_many(self, rules: Iterable[CasbinRule]) -> bool:
        rules = list(rules)
        async with self._unit_of_work("insert_many") as conn:
            await self._insert_each(conn, rules, "insert_many")
        logger.info(f"[insert_many] Rules inserted | count={len(rules)}")
        return True

    async def _insert_each(
        self, conn: AsyncConnection, rules: Sequence[CasbinRule], operation: str
    ) -> None:
        for rule in rules:
            result = await conn.execute(
                insert(rule_table).values(**self._row_values(rule))
            )
            if result.rowcount != 1:
                raise NotFoundError(
                    f"{operation}: insert of '{rule}' affected {result.rowcount} rows"
                )

    async def delete_one(self, ptype: str, fields: Sequence[str]) -> bool:
        condition = self._exact_match(ptype, fields)
        async with self._unit_of_work("delete_one") as conn:
            result = await conn.execute(delete(rule_table).where(*condition))
        removed = result.rowcount == 1
        logger.info(
            f"[delete_one] Delete finished | ptype={ptype} | removed={removed}"
        )
        return removed

    async def delete_many(
        self, ptype: str, rules: Iterable[Sequence[str]]
    ) -> bool:
        rules = [list(fields) for fields in rules]
        conditions = [self._exact_match(ptype, fields) for fields in rules]
        async with self._unit_of_work("delete_many") as conn:
            for fields, condition in zip(rules, conditions):
                result = await conn.execute(delete(rule_table).where(*condition))
                if result.rowcount != 1:
                    raise NotFoundError(
                        f"delete_many: rule {fields} of ptype '{ptype}' "
                        f"matched {result.rowcount} rows"
                    )
        logger.info(
            f"[delete_many] Rules deleted | ptype={ptype} | count={len(rules)}"
        )
        return True

    async def delete_filtered(
        self, ptype: str, field_index: int, field_values: Sequence[str]
    ) -> bool:
        condition = filtered_removal_clause(ptype, field_index, field_values)
        if condition is None:
            return False
        async with self._unit_of_work("delete_filtered") as conn:
            result = await conn.execute(delete(rule_table).where(condition))
        logger.info(
            f"[delete_filtered] Filtered delete finished | ptype={ptype} | "
            f"field_index={field_index} | removed={result.rowcount}"
        )
        return result.rowcount > 0

    async def load_all(self) -> list[CasbinRule]:
        async with self._unit_of_work("load_all", transactional=False) as conn:
            result = await conn.execute(select(rule_table))
            return self._to_models(result)

    async def load_filtered(self, filter: Filter) -> list[CasbinRule]:
        statement = select(rule_table).where(filter_clause(filter))
        async with self._unit_of_work("load_filtered", transactional=False) as conn:
            result = await conn.execute(statement)
            return self._to_models(result)

    async def load_filtered_with_total(
        self, filter: Filter
    ) -> tuple[list[CasbinRule], int]:
        """
        Rows matching `filter` plus the number of non-blank rows stored.

        Both come from a single statement, so they describe the same
        snapshot of the table even while other tasks write to it. The count
        subquery is outer-joined to the matching rows and still yields one
        row when nothing matches.
        """
        total = (
            select(func.count().label("total"))
            .select_from(rule_table)
            .where(non_blank_clause())
            .subquery()
        )
        statement = select(total.c.total, rule_table).select_from(
            total.outerjoin(rule_table, filter_clause(filter))
        )
        async with self._unit_of_work(
            "load_filtered_with_total", transactional=False
        ) as conn:
            result = await conn.execute(statement)
            rows = result.all()

        stored = rows[0].total if rows else 0
        columns = [column.name for column in rule_table.columns]
        matched = [
            CasbinRule(**{column: row._mapping[column] for column in columns})
            for row in rows
            if row.id is not None
        ]
        return matched, stored or 0

    async def count(self) -> int:
        async with self._unit_of_work("count", transactional=False) as conn:
            total = await conn.scalar(select(func.count()).select_from(rule_table))
        return total or 0

    async def replace_all(
        self,
        rules: Iterable[CasbinRule],
        ptypes: Optional[Iterable[str]] = None,
    ) -> None:
        """
        Replace stored rules with `rules` in one transaction.

        With `ptypes`, only rows of those ptypes are deleted first.
        """
        rules = list(rules)
        statement = delete(rule_table)
        if ptypes is not None:
            ptypes = sorted(set(ptypes))
            statement = statement.where(rule_table.c.ptype.in_(ptypes))
        async with self._unit_of_work("replace_all") as conn:
            await conn.execute(statement)
            await self._insert_each(conn, rules, "replace_all")
        scope = ",".join(ptypes) if ptypes is not None else "*"
        logger.info(
            f"[replace_all] Rules replaced | ptypes={scope} | count={len(rules)}"
        )

    async def clear(self) -> None:
        async with self._unit_of_work("clear") as conn:
            result = await conn.execute(delete(rule_table))
        logger.info(f"[clear] All rules deleted | removed={result.rowcount}")
