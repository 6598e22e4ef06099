import pytest

from casbin_sql_adapter.core.filters import (
    filtered_removal_clause,
    like_patterns,
    matches_filter,
    section_of,
)
from casbin_sql_adapter.core.rule_codec import encode_rule
from casbin_sql_adapter.crud import CasbinRuleCrud
from casbin_sql_adapter.models import Filter


DOMAIN_FILTER = Filter(p=["", "domain1"], g=["", "", "domain1"])


def test_section_of():
    assert section_of("p") == "p"
    assert section_of("g2") == "g"


@pytest.mark.parametrize(
    "rule,expected",
    [
        (["alice", "domain1", "data1", "read"], True),
        (["bob", "domain1", "x", "y"], True),
        (["alice", "domain2", "data1", "read"], False),
        (["alice"], False),
    ],
)
def test_wildcard_pattern_matching(rule, expected):
    assert matches_filter("p", rule, DOMAIN_FILTER) is expected


def test_grouping_rules_use_g_patterns():
    assert matches_filter("g", ["alice", "admin", "domain1"], DOMAIN_FILTER)
    assert not matches_filter("g", ["alice", "domain1"], DOMAIN_FILTER)
    assert matches_filter("g2", ["bob", "reader", "domain1"], DOMAIN_FILTER)


def test_empty_pattern_list_matches_everything_in_section():
    f = Filter(p=["alice"])
    assert matches_filter("g", ["anyone", "any-role"], f)
    assert not matches_filter("p", ["bob", "data1", "read"], f)


def test_unknown_section_never_matches():
    assert not matches_filter("m", ["alice"], Filter())


def test_like_patterns_default_to_wildcard():
    assert like_patterns(["", "domain1"]) == ["%", "domain1", "%", "%", "%", "%"]
    assert like_patterns([]) == ["%"] * 6


def test_filter_from_pycasbin_style_object():
    class LegacyFilter:
        P = ["alice"]
        G = []

    f = Filter.from_any(LegacyFilter())
    assert f.p == ["alice"]
    assert f.g == []
    assert Filter.from_any({"g": ["bob"]}).g == ["bob"]
    assert Filter.from_any(DOMAIN_FILTER) is DOMAIN_FILTER


@pytest.mark.parametrize(
    "field_index,values",
    [
        (6, ["x"]),
        (-1, ["x"]),
        (0, []),
        (4, ["a", "b", "c"]),
    ],
)
def test_filtered_removal_rejects_invalid_arguments(field_index, values):
    assert filtered_removal_clause("p", field_index, values) is None


def test_filtered_removal_clause_covers_remaining_slots():
    clause = filtered_removal_clause("g", 3, ["x"])
    sql = str(clause.compile(compile_kwargs={"literal_binds": True}))

    assert "casbin_rule.ptype = 'g'" in sql
    assert "casbin_rule.v3 IS NULL" in sql
    assert "casbin_rule.v5 IS NULL" in sql
    assert "casbin_rule.v2" not in sql
    assert "coalesce" in sql.lower()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "patterns",
    [
        Filter(p=["", "domain1"]),
        Filter(p=["alice"], g=["alice"]),
        Filter(g=["", "admin"]),
        Filter(p=["nobody"], g=["nobody"]),
    ],
)
async def test_sql_and_memory_filtering_agree(crud: CasbinRuleCrud, patterns: Filter):
    rules = [
        encode_rule("p", ["alice", "domain1", "data1", "read"]),
        encode_rule("p", ["bob", "domain1", "x", "y"]),
        encode_rule("p", ["alice", "domain2", "data1", "read"]),
        encode_rule("g", ["alice", "admin"]),
        encode_rule("g2", ["bob", "admin", "domain1"]),
    ]
    await crud.insert_many(rules)

    pushed = {str(row) for row in await crud.load_filtered(patterns)}
    in_memory = {
        str(row)
        for row in await crud.load_all()
        if matches_filter(row.ptype, row.to_rule(), patterns)
    }
    assert pushed == in_memory
