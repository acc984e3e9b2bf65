"""
Tests for the startup policy import.
"""

import pytest

from mra_auth.core.auth import PolicyRule
from mra_auth.core.auth.bootstrap import PolicyFileError, bootstrap_policies, parse_policy_file

HEADER = "sub;dom;obj;act;cond;attrs;eft\n"


def test_parse_rule_widths():
    rules = parse_policy_file(
        HEADER
        + "enduser;0;mra_users;R;check_ownership;none;allow\n"
        + "alice;enduser;0\n"
        + "support;*\n"
    )

    assert rules == [
        PolicyRule.of("p", "enduser", "0", "mra_users", "R", "check_ownership", "none", "allow"),
        PolicyRule.of("g", "alice", "enduser", "0"),
        PolicyRule.of("g2", "support", "*"),
    ]


def test_header_and_blank_lines_are_skipped():
    assert parse_policy_file(HEADER + "\n;;\n") == []


def test_fields_are_trimmed():
    assert parse_policy_file(HEADER + " alice ; enduser ; 0 \n") == [PolicyRule.of("g", "alice", "enduser", "0")]


@pytest.mark.parametrize("line", ["alice;enduser;0;extra", "a", "p;0;obj;R;none;allow"])
def test_bad_width_is_rejected(line):
    with pytest.raises(PolicyFileError, match="Line 2"):
        parse_policy_file(HEADER + line + "\n")


def test_empty_field_is_rejected():
    with pytest.raises(PolicyFileError, match="mandatory"):
        parse_policy_file(HEADER + "enduser;0;mra_users;R;;none;allow\n")


@pytest.mark.asyncio
async def test_bootstrap_replaces_global_domain_policies(resolver, tmp_path):
    await resolver.add_policy_in_domain("stale", "0", "mra_users", "R")
    await resolver.add_policy_in_domain("admin", "5", "orders", "R")
    await resolver.add_role_for_user_in_domain("bob", "enduser", "0")

    policy_file = tmp_path / "policy.csv"
    policy_file.write_text(HEADER + "fresh;0;mra_users;R;none;none;allow\ncarol;fresh;0\n")

    added = await bootstrap_policies(resolver, policy_file, "0")

    assert added == 2
    assert resolver.get_policies_in_domain(subject="stale") == []
    assert resolver.get_policies_in_domain(subject="fresh")
    assert resolver.get_policies_in_domain(subject="admin", domain="5")
    assert resolver.list_roles_for_user_in_domain("bob", "0") == ["enduser"]
    assert resolver.list_roles_for_user_in_domain("carol", "0") == ["fresh"]


@pytest.mark.asyncio
async def test_shipped_policy_file_is_loaded(resolver):
    assert resolver.get_policies_in_domain(subject="enduser", domain="0", action="R") == [
        {
            "subject": "enduser",
            "domain": "0",
            "object": "mra_users",
            "action": "R",
            "condition": "check_ownership",
            "attributes": "none",
            "effect": "allow",
        }
    ]
    assert resolver.enforcer.roles.bridged_domains("support") == {"*"}
