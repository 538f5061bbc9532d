import enum
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from checksplitter.core.config import settings
from checksplitter.core.errors import ConsistencyError, NotFoundError
from checksplitter.models.receipt import Receipt, TaxType
from checksplitter.models.user import AppUser
from checksplitter.utils.currency_utils import round_money

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class SplitMethod(str, enum.Enum):
    proportional = "proportional"
    equal = "equal"


@dataclass
class OwedBreakdown:
    friend_id: uuid.UUID
    name: str
    subtotal: Decimal
    tax: Decimal
    tip: Decimal
    total: Decimal


@dataclass
class ConsistencyWarning:
    code: str
    message: str
    amount: Decimal = ZERO


@dataclass
class FriendTotals:
    receipt_id: uuid.UUID
    friends: dict[uuid.UUID, OwedBreakdown]
    assigned_subtotal: Decimal
    unassigned_cost: Decimal
    tax_amount: Decimal
    tip_amount: Decimal
    friends_total: Decimal
    expected_total: Decimal
    stated_total: Decimal
    rounding_adjustment: Decimal = ZERO
    warnings: list[ConsistencyWarning] = field(default_factory=list)


@dataclass
class ChangeResult:
    amount_to_pay: Decimal
    paid_amount: Decimal
    change: Decimal
    insufficient: bool
    shortage: Decimal


def _tax_on(receipt: Receipt, base: Decimal) -> Decimal:
    tax = receipt.tax or ZERO
    if receipt.tax_type == TaxType.percentage:
        return base * tax / Decimal(100)
    return tax


def compute_friend_totals(
    receipt: Receipt,
    *,
    reconcile: bool = True,
    split_method: SplitMethod = SplitMethod.proportional,
    tolerance: Decimal | None = None,
) -> FriendTotals:
    """
    Work out what each friend owes on a fully loaded receipt.

    Each unit's price is divided equally among the friends sharing it. Tax and
    tips are then spread over friends in proportion to their subtotals (or
    equally with SplitMethod.equal, or when the assigned subtotal is zero).
    Price that no friend carries, whether from units without friends or item
    quantity never assigned, is kept out of that apportionment base and
    reported as unassigned_cost.

    Subtotal, tax and tip are each rounded half-up to cents and a friend's
    total is their sum. Any rounding leftover against the exact amount to
    collect is reported and, with reconcile=True, added to the subtotal and
    total of the last friend ordered by id so the totals add up to the cent.
    """
    if tolerance is None:
        tolerance = settings.reconciliation_tolerance

    warnings: list[ConsistencyWarning] = []
    subtotals: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
    names: dict[uuid.UUID, str] = {}
    assigned_subtotal = ZERO
    unassigned_cost = ZERO

    for item in receipt.items:
        covered = ZERO
        for unit in item.units:
            covered += unit.price
            n_friends = len(unit.friend_assignments)
            if n_friends == 0:
                unassigned_cost += unit.price
                warnings.append(ConsistencyWarning(
                    "empty_unit", f"{item.name} {unit.unit_label} has no friends assigned", unit.price,
                ))
                continue

            share = unit.price / Decimal(n_friends)
            assigned_subtotal += unit.price
            for fa in unit.friend_assignments:
                subtotals[fa.friend_id] += share
                if fa.friend is not None:
                    names.setdefault(fa.friend_id, fa.friend.name)

        uncovered = item.price - covered
        if uncovered > ZERO:
            unassigned_cost += uncovered

    tax_amount = _tax_on(receipt, assigned_subtotal)
    tip_amount = ZERO if receipt.tips_included_in_total else (receipt.tips or ZERO)

    friend_ids = sorted(subtotals.keys(), key=str)
    # Nothing to weigh by when every assigned unit is free.
    split_equally = split_method == SplitMethod.equal or assigned_subtotal <= ZERO
    friends: dict[uuid.UUID, OwedBreakdown] = {}
    for fid in friend_ids:
        sub = subtotals[fid]
        if split_equally:
            f_tax = tax_amount / Decimal(len(friend_ids))
            f_tip = tip_amount / Decimal(len(friend_ids))
        else:
            f_tax = tax_amount * sub / assigned_subtotal
            f_tip = tip_amount * sub / assigned_subtotal
        parts = (round_money(sub), round_money(f_tax), round_money(f_tip))
        friends[fid] = OwedBreakdown(
            friend_id=fid,
            name=names.get(fid, ""),
            subtotal=parts[0],
            tax=parts[1],
            tip=parts[2],
            total=sum(parts, ZERO),
        )

    target = round_money(assigned_subtotal + tax_amount + tip_amount) if friends else ZERO
    friends_total = sum((b.total for b in friends.values()), ZERO)
    leftover = target - friends_total
    adjustment = ZERO
    if leftover != ZERO:
        warnings.append(ConsistencyWarning(
            "rounding", f"Friend totals are off by {leftover} after rounding", leftover,
        ))
        if reconcile:
            # Booked on the subtotal so subtotal + tax + tip still equals total.
            last = friends[friend_ids[-1]]
            last.subtotal += leftover
            last.total += leftover
            friends_total += leftover
            adjustment = leftover

    # Tips the restaurant already folded into the total are not charged to
    # friends but are still part of what the total should be.
    items_subtotal = receipt.subtotal
    expected_total = round_money(
        items_subtotal + _tax_on(receipt, items_subtotal) + (receipt.tips or ZERO)
    )
    stated_total = round_money(receipt.total or ZERO)
    if abs(stated_total - expected_total) > tolerance:
        warnings.append(ConsistencyWarning(
            "total_mismatch",
            f"Receipt total {stated_total} does not match items, tax and tips ({expected_total})",
            stated_total - expected_total,
        ))
    if unassigned_cost > ZERO:
        warnings.append(ConsistencyWarning(
            "unassigned", f"{round_money(unassigned_cost)} of items is not assigned to anyone",
            round_money(unassigned_cost),
        ))

    for w in warnings:
        logger.warning(f"Receipt {receipt.id}: {w.message}")

    return FriendTotals(
        receipt_id=receipt.id,
        friends=friends,
        assigned_subtotal=round_money(assigned_subtotal),
        unassigned_cost=round_money(unassigned_cost),
        tax_amount=round_money(tax_amount),
        tip_amount=round_money(tip_amount),
        friends_total=friends_total,
        expected_total=expected_total,
        stated_total=stated_total,
        rounding_adjustment=adjustment,
        warnings=warnings,
    )


def calculate_change(amount_to_pay: Decimal, paid_amount: Decimal) -> ChangeResult:
    change = round_money(paid_amount - amount_to_pay)
    insufficient = paid_amount < amount_to_pay
    return ChangeResult(
        amount_to_pay=amount_to_pay,
        paid_amount=paid_amount,
        change=change,
        insufficient=insufficient,
        shortage=-change if insufficient else ZERO,
    )


async def get_friend_totals(
    db: AsyncSession,
    user: AppUser,
    receipt_id: uuid.UUID,
    strict: bool = False,
    split_method: SplitMethod = SplitMethod.proportional,
) -> FriendTotals:
    """
    Load the receipt graph and compute per-friend amounts.
    With strict=True a stated-total mismatch raises ConsistencyError instead
    of being returned as a warning.
    """
    from checksplitter.services.receipt_service import load_receipt_graph

    receipt = await load_receipt_graph(db, user, receipt_id)
    totals = compute_friend_totals(receipt, split_method=split_method)
    if strict:
        blocking = [w for w in totals.warnings if w.code in ("total_mismatch", "empty_unit")]
        if blocking:
            raise ConsistencyError(blocking[0].message, warnings=blocking)
    return totals


async def get_change_for_friend(
    db: AsyncSession,
    user: AppUser,
    receipt_id: uuid.UUID,
    friend_id: uuid.UUID,
    paid_amount: Decimal,
) -> ChangeResult:
    totals = await get_friend_totals(db, user, receipt_id)
    breakdown = totals.friends.get(friend_id)
    if breakdown is None:
        raise NotFoundError(f"No amount found for friend {friend_id} in receipt {receipt_id}")
    return calculate_change(breakdown.total, paid_amount)
