import json
import logging
from collections import defaultdict

from casbin_sql_adapter.core.rule_codec import encode_rule
from casbin_sql_adapter.crud import CasbinRuleCrud
from casbin_sql_adapter.models import CasbinRule

logger = logging.getLogger(__name__)


def read_policy_file(file_path: str) -> dict[str, list[CasbinRule]]:
    """
    Parse a JSON policy file into rules grouped by ptype.

    Expected layout:
        {
            "permissions": [{"role": "admin", "resource": "data", "actions": ["read"]}],
            "roles": [{"ptype": "g", "rule": ["alice", "admin"]}]
        }
    """
    try:
        with open(file_path) as f:
            data = json.load(f)
    except FileNotFoundError:
        raise ValueError(f"Policy file not found: {file_path}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Policy file is not valid JSON: {e}")

    if not isinstance(data, dict):
        raise ValueError("Policy file must contain a JSON object")

    rules: dict[str, list[CasbinRule]] = defaultdict(list)

    for policy in data.get("permissions", []):
        if not isinstance(policy, dict):
            raise ValueError(f"Invalid policy entry: {policy}")
        role = policy.get("role")
        resource = policy.get("resource")
        actions = policy.get("actions")

        if not role or not resource or not isinstance(actions, list):
            raise ValueError(f"Invalid policy entry: {policy}")

        for action in actions:
            rules["p"].append(encode_rule("p", [role, resource, action]))

    for grouping in data.get("roles", []):
        if not isinstance(grouping, dict):
            raise ValueError(f"Invalid role entry: {grouping}")
        ptype = grouping.get("ptype", "g")
        rule = grouping.get("rule")

        if (
            not isinstance(ptype, str)
            or not ptype.startswith("g")
            or not isinstance(rule, list)
            or not rule
        ):
            raise ValueError(f"Invalid role entry: {grouping}")

        rules[ptype].append(encode_rule(ptype, rule))

    return dict(rules)


async def update_policies(crud: CasbinRuleCrud, file_path: str) -> dict[str, int]:
    """
    Update Casbin policies from a local JSON file.
    This deletes all existing rules of every ptype present in the file and
    inserts the new ones in a single transaction, so a failure leaves the
    stored policy untouched.
    """
    rules = read_policy_file(file_path)
    counts = {ptype: len(ptype_rules) for ptype, ptype_rules in rules.items()}
    if not rules:
        logger.warning(f"[update_policies] No rules found | file={file_path}")
        return counts

    logger.info(f"[update_policies] Replacing Casbin rules | {counts}")
    await crud.replace_all(
        [rule for ptype_rules in rules.values() for rule in ptype_rules],
        ptypes=rules.keys(),
    )

    logger.info(f"[update_policies] Casbin policies updated successfully | {counts}")
    return counts
