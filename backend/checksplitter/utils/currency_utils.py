from decimal import Decimal, ROUND_HALF_UP
import hashlib

CENT = Decimal("0.01")


def round_money(amount: Decimal) -> Decimal:
    """Round to currency precision (2dp), half-up."""
    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def _to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


def allocate_by_weight(amount: Decimal, weights: list[int]) -> list[Decimal]:
    """
    Split amount into parts proportional to weights that sum EXACTLY to amount.
    Works in integer cents; leftover cents go to the earliest parts, one each.

    Used to price the units of an item: a 10.00 item of quantity 3 split
    1/1/1 gives 3.34, 3.33, 3.33.
    """
    if not weights:
        return []
    total_weight = sum(weights)
    if total_weight <= 0:
        raise ValueError("weights must sum to a positive number")

    amount_cents = _to_cents(amount)
    base = [amount_cents * w // total_weight for w in weights]
    extra_count = amount_cents - sum(base)

    parts = []
    for i, cents in enumerate(base):
        parts.append(Decimal(cents + (1 if i < extra_count else 0)) / Decimal(100))
    return parts


def compute_shares(amount: Decimal, friend_ids: list, seed: str | None = None) -> dict:
    """
    Split amount into equal shares that sum EXACTLY to amount.
    Works in integer cents to avoid floating point errors.

    If seed is provided, it is used to deterministically shuffle the friend order
    for remainder distribution, so the 'extra pennies' of different units don't
    always land on the same friend.

    Args:
        amount: The total amount to split.
        friend_ids: Friend IDs (strings or UUIDs) to split among.
        seed: Optional string seed (e.g. unit id) for pseudo-random distribution.

    Returns:
        Dictionary mapping friend_id to their share (Decimal).
    """
    n = len(friend_ids)
    if n == 0:
        return {}

    amount_cents = _to_cents(amount)
    base_cents = amount_cents // n
    extra_count = amount_cents % n

    if seed:
        def get_hash(fid):
            return hashlib.md5(f"{seed}:{fid}".encode()).hexdigest()
        sorted_ids = sorted(friend_ids, key=get_hash)
    else:
        sorted_ids = sorted(friend_ids, key=str)

    shares = {}
    for i, fid in enumerate(sorted_ids):
        cents = base_cents + (1 if i < extra_count else 0)
        shares[fid] = Decimal(cents) / Decimal(100)

    return shares
