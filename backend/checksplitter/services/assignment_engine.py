"""
Item-to-friend assignment on an in-memory receipt graph.

Every function here works on a receipt snapshot loaded by the caller
(Receipt -> Item -> ItemAssignment -> FriendAssignment) plus the owner's
friend roster, mutates the graph in place and returns a plain result value.
Nothing is awaited and nothing is committed: persistence is the caller's job,
which keeps these functions usable on a fresh snapshot per request.
"""
import logging
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Mapping, Sequence

from checksplitter.core.errors import NotFoundError, ValidationError
from checksplitter.models.friend import Friend, FriendReceipt
from checksplitter.models.receipt import Receipt, Item, ItemAssignment, FriendAssignment
from checksplitter.utils.currency_utils import allocate_by_weight, compute_shares

logger = logging.getLogger(__name__)


@dataclass
class UnitView:
    id: uuid.UUID
    unit_label: str
    quantity: int
    price: Decimal
    friend_ids: list[uuid.UUID]
    shares: dict[uuid.UUID, Decimal] = field(default_factory=dict)


@dataclass
class UnitAssignmentResult:
    item_id: uuid.UUID
    units: list[UnitView]


@dataclass
class UnassignResult:
    unit_id: uuid.UUID
    unit_deleted: bool
    remaining_friend_ids: list[uuid.UUID]


def unit_view(unit: ItemAssignment) -> UnitView:
    friend_ids = unit.friend_ids
    return UnitView(
        id=unit.id,
        unit_label=unit.unit_label,
        quantity=unit.quantity,
        price=unit.price,
        friend_ids=friend_ids,
        shares=compute_shares(unit.price, friend_ids, seed=str(unit.id)),
    )


def item_result(item: Item) -> UnitAssignmentResult:
    return UnitAssignmentResult(item_id=item.id, units=[unit_view(u) for u in item.units])


def _get_item(receipt: Receipt, item_id: uuid.UUID) -> Item:
    item = receipt.find_item(item_id)
    if item is None:
        raise NotFoundError(f"Item {item_id} not found in receipt {receipt.id}")
    return item


def _resolve_friends(
    receipt: Receipt, friend_ids: Iterable[uuid.UUID], roster: Mapping[uuid.UUID, Friend]
) -> list[Friend]:
    """Look up friends in the owner's roster, dropping duplicate ids but keeping order."""
    friends: list[Friend] = []
    seen: set[uuid.UUID] = set()
    for fid in friend_ids:
        if fid in seen:
            continue
        friend = roster.get(fid)
        if friend is None or friend.user_id != receipt.user_id:
            raise NotFoundError(f"Friend {fid} not found")
        seen.add(fid)
        friends.append(friend)
    return friends


def _new_unit(
    receipt: Receipt, item: Item, position: int, quantity: int, price: Decimal, friends: list[Friend]
) -> ItemAssignment:
    unit = ItemAssignment(
        id=uuid.uuid4(),
        item_id=item.id,
        receipt_id=receipt.id,
        unit_label=f"unit{position + 1}",
        quantity=quantity,
        price=price,
        position=position,
    )
    for friend in friends:
        unit.friend_assignments.append(_new_friend_assignment(unit, friend))
    return unit


def _new_friend_assignment(unit: ItemAssignment, friend: Friend) -> FriendAssignment:
    return FriendAssignment(
        id=uuid.uuid4(),
        friend_id=friend.id,
        item_assignment_id=unit.id,
        friend=friend,
    )


def _replace_units(item: Item, units: list[ItemAssignment]) -> None:
    item.units.clear()
    item.units.extend(units)


def sync_participants(receipt: Receipt) -> list[uuid.UUID]:
    """Make every friend assigned to a unit a participant of the receipt.

    Returns the ids of participants that were added.
    """
    present = {p.friend_id for p in receipt.participants}
    added = []
    for item in receipt.items:
        for unit in item.units:
            for fa in unit.friend_assignments:
                if fa.friend_id in present:
                    continue
                receipt.participants.append(
                    FriendReceipt(id=uuid.uuid4(), friend_id=fa.friend_id, receipt_id=receipt.id, friend=fa.friend)
                )
                present.add(fa.friend_id)
                added.append(fa.friend_id)
    return added


def assign_whole_item(
    receipt: Receipt,
    item_id: uuid.UUID,
    friend_ids: Sequence[uuid.UUID],
    roster: Mapping[uuid.UUID, Friend],
) -> UnitAssignmentResult:
    """Replace the item's units with a single unit shared by all given friends."""
    if not friend_ids:
        raise ValidationError("At least one friend is required")
    item = _get_item(receipt, item_id)
    friends = _resolve_friends(receipt, friend_ids, roster)

    unit = _new_unit(receipt, item, 0, item.quantity, item.price, friends)
    _replace_units(item, [unit])
    sync_participants(receipt)

    logger.debug(f"Assigned item {item.id} whole to {len(friends)} friend(s)")
    return item_result(item)


def split_item(
    receipt: Receipt,
    item_id: uuid.UUID,
    unit_assignments: Sequence[tuple[int, Sequence[uuid.UUID]]],
    roster: Mapping[uuid.UUID, Friend],
) -> UnitAssignmentResult:
    """
    Replace the item's units with one unit per (quantity, friend_ids) entry.

    Quantities must be positive and add up to the item quantity exactly. Each
    unit is priced at unit_price x quantity, allocated in whole cents so the
    unit prices always add up to the item price.
    """
    item = _get_item(receipt, item_id)
    if not unit_assignments:
        raise ValidationError("At least one unit is required")

    quantities = []
    for index, (quantity, friend_ids) in enumerate(unit_assignments):
        if quantity < 1:
            raise ValidationError(f"Unit {index + 1} must have a quantity of at least 1")
        if not friend_ids:
            raise ValidationError(f"Unit {index + 1} has no friends assigned")
        quantities.append(quantity)

    if sum(quantities) != item.quantity:
        raise ValidationError(
            f"Unit quantities add up to {sum(quantities)} but item '{item.name}' has quantity {item.quantity}"
        )

    prices = allocate_by_weight(item.price, quantities)
    units = []
    for position, ((quantity, friend_ids), price) in enumerate(zip(unit_assignments, prices)):
        friends = _resolve_friends(receipt, friend_ids, roster)
        units.append(_new_unit(receipt, item, position, quantity, price, friends))

    _replace_units(item, units)
    sync_participants(receipt)

    logger.debug(f"Split item {item.id} into {len(units)} unit(s)")
    return item_result(item)


def assign_friend_to_unit(
    receipt: Receipt,
    unit_id: uuid.UUID,
    friend_id: uuid.UUID,
    roster: Mapping[uuid.UUID, Friend],
) -> UnitView:
    unit = receipt.find_unit(unit_id)
    if unit is None:
        raise NotFoundError(f"Unit {unit_id} not found in receipt {receipt.id}")
    if friend_id in unit.friend_ids:
        raise ValidationError(f"Friend {friend_id} is already assigned to {unit.unit_label}")
    (friend,) = _resolve_friends(receipt, [friend_id], roster)

    unit.friend_assignments.append(_new_friend_assignment(unit, friend))
    sync_participants(receipt)
    return unit_view(unit)


def unassign(receipt: Receipt, unit_id: uuid.UUID, friend_id: uuid.UUID) -> UnassignResult:
    """
    Detach a friend from a unit. A unit left without friends is deleted; its
    price then shows up as unassigned cost until the item is assigned again.
    """
    unit = receipt.find_unit(unit_id)
    if unit is None:
        raise NotFoundError(f"Unit {unit_id} not found in receipt {receipt.id}")
    fa = next((fa for fa in unit.friend_assignments if fa.friend_id == friend_id), None)
    if fa is None:
        raise NotFoundError(f"Friend {friend_id} is not assigned to {unit.unit_label}")

    unit.friend_assignments.remove(fa)
    deleted = _drop_if_orphaned(receipt, unit)
    return UnassignResult(unit_id=unit_id, unit_deleted=deleted, remaining_friend_ids=unit.friend_ids)


def _drop_if_orphaned(receipt: Receipt, unit: ItemAssignment) -> bool:
    if unit.friend_assignments:
        return False
    item = receipt.find_item(unit.item_id)
    if item is not None and unit in item.units:
        item.units.remove(unit)
    logger.debug(f"Deleted orphaned unit {unit.id} ({unit.unit_label})")
    return True


def remove_participant(receipt: Receipt, friend_id: uuid.UUID) -> int:
    """
    Take a friend off the receipt entirely: the participant link and every
    unit assignment. Returns the number of unit assignments removed.
    """
    link = next((p for p in receipt.participants if p.friend_id == friend_id), None)
    removed = 0
    for item in receipt.items:
        for unit in list(item.units):
            fa = next((fa for fa in unit.friend_assignments if fa.friend_id == friend_id), None)
            if fa is None:
                continue
            unit.friend_assignments.remove(fa)
            removed += 1
            _drop_if_orphaned(receipt, unit)

    if link is None and removed == 0:
        raise NotFoundError(f"Friend {friend_id} is not on receipt {receipt.id}")
    if link is not None:
        receipt.participants.remove(link)
    return removed
