"""
Startup policy import.

The global domain's policies are owned by the policy file shipped with
the service: on startup they are deleted and re-imported so that edits to
the file take effect on the next deploy. Role grants are imported too but
never deleted.

File format (semicolon separated, first line is a header):

    sub;dom;obj;act;cond;attrs;eft
    enduser;0;mra_users;R;check_ownership;none;allow
    username1;admin;0
    support;*
"""

import csv
import io
import logging
from pathlib import Path

from .enforcer import BRIDGE, GROUPING, POLICY
from .interfaces import PolicyRule
from .resolver import RoleResolver

logger = logging.getLogger(__name__)

BRIDGE_WIDTH = 2
GROUPING_WIDTH = 3
POLICY_WIDTH = 7


class PolicyFileError(ValueError):
    """A line of the policy file has the wrong shape."""


def parse_policy_file(text: str) -> list[PolicyRule]:
    reader = csv.reader(io.StringIO(text), delimiter=";")
    rules: list[PolicyRule] = []
    for line_no, record in enumerate(reader, start=1):
        if line_no == 1:
            continue
        fields = [field.strip() for field in record]
        if not any(fields):
            continue

        if len(fields) == BRIDGE_WIDTH:
            ptype = BRIDGE
        elif len(fields) == GROUPING_WIDTH:
            ptype = GROUPING
        elif len(fields) == POLICY_WIDTH:
            ptype = POLICY
        else:
            raise PolicyFileError(f"Line {line_no}: invalid record format: {';'.join(fields)}")

        if any(not field for field in fields):
            raise PolicyFileError(f"Line {line_no}: all fields of a '{ptype}' rule are mandatory")
        rules.append(PolicyRule.of(ptype, *fields))
    return rules


async def bootstrap_policies(resolver: RoleResolver, path: Path, domain: str) -> int:
    """
    Replace ``domain``'s policies with the file's content.

    Returns the number of rules newly written.
    """
    rules = parse_policy_file(path.read_text(encoding="utf-8"))

    removed = await resolver.delete_policies_for_domain(domain)
    added = await resolver.enforcer.add_policies(rules)

    logger.info(f"Policy bootstrap from {path}: removed {removed}, added {added} of {len(rules)}")
    return added
