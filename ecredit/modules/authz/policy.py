"""
Row-level authorization.

``POLICY_TABLE`` is the single source of truth for who may do what: every
(collection, operation) pair maps to one rule, and a pair that is missing is
denied. Field-level write rules sit on top of the row rules so that owning a
row never implies being allowed to change every column of it (the admin flag
and loan status in particular).

The same table drives both the per-row predicates (``can_select``,
``can_insert``, ``can_update``) and the SQL filters applied to reads
(``select_filter``), so list endpoints and single-row checks cannot drift.
"""
import enum
import logging
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, Optional

from sqlalchemy import false, select, true
from sqlalchemy.ext.asyncio import AsyncSession

from ecredit.core.exceptions import NotAuthorized, NotFound
from ecredit.modules.activity.models import ActivityRecord
from ecredit.modules.authz.resolver import AdminStatusResolver
from ecredit.modules.loans.models import Loan, LoanStatus
from ecredit.modules.payments.models import Payment
from ecredit.modules.profiles.models import Profile

logger = logging.getLogger(__name__)


class Collection(str, enum.Enum):
    """Resource collections under row-level control"""
    PROFILES = "profiles"
    LOANS = "loans"
    PAYMENTS = "payments"
    ACTIVITY = "activity_log"


class Operation(str, enum.Enum):
    SELECT = "select"
    INSERT = "insert"
    UPDATE = "update"


class Rule(str, enum.Enum):
    OWNER_OR_ADMIN = "owner_or_admin"
    OWNER_ONLY = "owner_only"
    ADMIN_ONLY = "admin_only"


MODELS = {
    Collection.PROFILES: Profile,
    Collection.LOANS: Loan,
    Collection.PAYMENTS: Payment,
    Collection.ACTIVITY: ActivityRecord,
}

POLICY_TABLE: Dict[tuple, Rule] = {
    (Collection.PROFILES, Operation.SELECT): Rule.OWNER_OR_ADMIN,
    (Collection.PROFILES, Operation.INSERT): Rule.OWNER_OR_ADMIN,
    (Collection.PROFILES, Operation.UPDATE): Rule.OWNER_OR_ADMIN,

    (Collection.LOANS, Operation.SELECT): Rule.OWNER_OR_ADMIN,
    (Collection.LOANS, Operation.INSERT): Rule.OWNER_ONLY,
    (Collection.LOANS, Operation.UPDATE): Rule.OWNER_OR_ADMIN,

    (Collection.PAYMENTS, Operation.SELECT): Rule.OWNER_OR_ADMIN,
    (Collection.PAYMENTS, Operation.INSERT): Rule.ADMIN_ONLY,
    (Collection.PAYMENTS, Operation.UPDATE): Rule.ADMIN_ONLY,

    # Append-only: no update entry
    (Collection.ACTIVITY, Operation.SELECT): Rule.OWNER_OR_ADMIN,
    (Collection.ACTIVITY, Operation.INSERT): Rule.OWNER_OR_ADMIN,
}

# Columns a row owner may change on an existing row
OWNER_WRITABLE_FIELDS: Dict[Collection, FrozenSet[str]] = {
    Collection.PROFILES: frozenset({"email", "full_name", "phone", "avatar_url"}),
    Collection.LOANS: frozenset(),
    Collection.PAYMENTS: frozenset(),
    Collection.ACTIVITY: frozenset(),
}

# Columns an admin may change on any row
ADMIN_WRITABLE_FIELDS: Dict[Collection, FrozenSet[str]] = {
    Collection.PROFILES: OWNER_WRITABLE_FIELDS[Collection.PROFILES] | {"is_admin", "credit_score", "loan_limit"},
    Collection.LOANS: frozenset({"status", "approval_date", "disbursement_date", "due_date"}),
    Collection.PAYMENTS: frozenset({"status"}),
    Collection.ACTIVITY: frozenset(),
}

# Values a non-admin must leave at their defaults when proposing a new row.
# None always counts as the default.
PROTECTED_INSERT_DEFAULTS: Dict[Collection, Dict[str, Any]] = {
    Collection.PROFILES: {"is_admin": False, "credit_score": None, "loan_limit": Decimal("0")},
}

# Values nobody may override on insert; new loans always enter the
# lifecycle at pending.
FIXED_INSERT_DEFAULTS: Dict[Collection, Dict[str, Any]] = {
    Collection.LOANS: {
        "status": LoanStatus.PENDING,
        "approval_date": None,
        "disbursement_date": None,
        "due_date": None,
    },
}


def _overrides(row: Any, defaults: Dict[str, Any]) -> bool:
    for field, default in defaults.items():
        value = getattr(row, field, None)
        if value is not None and value != default:
            return True
    return False


class PolicyEvaluator:
    """Evaluates ``POLICY_TABLE`` for one request.

    Every method takes the caller's identity id explicitly; ``None`` means
    anonymous and is denied everything.
    """

    def __init__(self, db: AsyncSession, resolver: AdminStatusResolver):
        self.db = db
        self.resolver = resolver

    # ============================================================
    # Predicates
    # ============================================================

    async def is_owner(self, collection: Collection, caller: Optional[str], row: Any) -> bool:
        if not caller or row is None:
            return False

        if collection == Collection.PROFILES:
            return row.id == caller

        if collection in (Collection.LOANS, Collection.ACTIVITY):
            return row.user_id == caller

        if collection == Collection.PAYMENTS:
            if row.loan_id is None:
                return False
            result = await self.db.execute(
                select(Loan.id).where(Loan.id == row.loan_id, Loan.user_id == caller)
            )
            return result.scalar_one_or_none() is not None

        return False

    async def _row_allowed(
        self,
        collection: Collection,
        operation: Operation,
        caller: Optional[str],
        row: Any
    ) -> bool:
        if not caller:
            return False

        rule = POLICY_TABLE.get((collection, operation))
        if rule is None:
            return False

        if rule in (Rule.OWNER_OR_ADMIN, Rule.OWNER_ONLY):
            if await self.is_owner(collection, caller, row):
                return True

        if rule in (Rule.OWNER_OR_ADMIN, Rule.ADMIN_ONLY):
            return await self.resolver.is_admin(caller)

        return False

    async def can_select(self, collection: Collection, caller: Optional[str], row: Any) -> bool:
        return await self._row_allowed(collection, Operation.SELECT, caller, row)

    async def can_insert(self, collection: Collection, caller: Optional[str], proposed_row: Any) -> bool:
        if not await self._row_allowed(collection, Operation.INSERT, caller, proposed_row):
            return False

        if _overrides(proposed_row, FIXED_INSERT_DEFAULTS.get(collection, {})):
            return False

        if _overrides(proposed_row, PROTECTED_INSERT_DEFAULTS.get(collection, {})):
            return await self.resolver.is_admin(caller)
        return True

    async def can_update(
        self,
        collection: Collection,
        caller: Optional[str],
        existing_row: Any,
        changes: Optional[Dict[str, Any]] = None
    ) -> bool:
        """Row rule, plus the field rule when ``changes`` is given.

        ``changes`` should only hold columns whose value actually differs.
        """
        if not await self._row_allowed(collection, Operation.UPDATE, caller, existing_row):
            return False
        if not changes:
            return True
        return await self.can_write_fields(collection, caller, changes.keys())

    async def can_write_fields(
        self,
        collection: Collection,
        caller: Optional[str],
        fields: Iterable[str]
    ) -> bool:
        fields = set(fields)
        if not fields:
            return True
        if await self.resolver.is_admin(caller):
            allowed = ADMIN_WRITABLE_FIELDS.get(collection, frozenset())
        else:
            allowed = OWNER_WRITABLE_FIELDS.get(collection, frozenset())
        return fields <= allowed

    # ============================================================
    # SQL filters
    # ============================================================

    def _ownership_clause(self, collection: Collection, caller: str):
        if collection == Collection.PROFILES:
            return Profile.id == caller
        if collection == Collection.LOANS:
            return Loan.user_id == caller
        if collection == Collection.PAYMENTS:
            return (
                select(Loan.id)
                .where(Loan.id == Payment.loan_id, Loan.user_id == caller)
                .exists()
            )
        if collection == Collection.ACTIVITY:
            return ActivityRecord.user_id == caller
        return false()

    async def select_filter(self, collection: Collection, caller: Optional[str]):
        """SQL equivalent of ``can_select`` for use in a WHERE clause"""
        if not caller or (collection, Operation.SELECT) not in POLICY_TABLE:
            return false()
        if await self.resolver.is_admin(caller):
            return true()
        return self._ownership_clause(collection, caller)

    async def scoped(self, stmt, collection: Collection, caller: Optional[str]):
        """Restrict a select statement to the rows ``caller`` may see"""
        return stmt.where(await self.select_filter(collection, caller))

    # ============================================================
    # Enforcement
    # ============================================================

    def _deny(self, collection: Collection, operation: Operation, caller: Optional[str]):
        logger.warning(
            f"Policy denied: caller={caller or 'anonymous'} "
            f"operation={operation.value} collection={collection.value}"
        )
        raise NotAuthorized()

    async def enforce_insert(self, collection: Collection, caller: Optional[str], proposed_row: Any) -> None:
        if not await self.can_insert(collection, caller, proposed_row):
            self._deny(collection, Operation.INSERT, caller)

    async def enforce_update(
        self,
        collection: Collection,
        caller: Optional[str],
        existing_row: Any,
        changes: Optional[Dict[str, Any]] = None
    ) -> None:
        if not await self.can_update(collection, caller, existing_row, changes):
            self._deny(collection, Operation.UPDATE, caller)

    async def get_visible(self, collection: Collection, caller: Optional[str], row_id: Any):
        """Fetch one row through the read filter.

        Raises ``NotFound`` both when the row is missing and when the caller
        may not see it.
        """
        model = MODELS[collection]
        stmt = await self.scoped(select(model).where(model.id == row_id), collection, caller)
        result = await self.db.execute(stmt)
        row = result.scalar_one_or_none()
        if row is None:
            raise NotFound(f"{model.__name__} not found")
        return row

    async def get_for_update(self, collection: Collection, caller: Optional[str], row_id: Any):
        """Fetch one row for a write and apply the row-level update rule.

        A missing row is only reported as missing to admins; everyone else
        gets the same ``NotAuthorized`` a forbidden row would produce.
        """
        model = MODELS[collection]
        row = await self.db.get(model, row_id)
        if row is None:
            if await self.resolver.is_admin(caller):
                raise NotFound(f"{model.__name__} not found")
            self._deny(collection, Operation.UPDATE, caller)
        await self.enforce_update(collection, caller, row)
        return row
