# Authorization module
from ecredit.modules.authz.policy import (
    Collection, Operation, Rule, PolicyEvaluator,
    POLICY_TABLE, OWNER_WRITABLE_FIELDS, ADMIN_WRITABLE_FIELDS
)
from ecredit.modules.authz.resolver import AdminStatusResolver
from ecredit.modules.authz.schemas import Identity

__all__ = [
    "Collection", "Operation", "Rule", "PolicyEvaluator",
    "POLICY_TABLE", "OWNER_WRITABLE_FIELDS", "ADMIN_WRITABLE_FIELDS",
    "AdminStatusResolver", "Identity"
]
