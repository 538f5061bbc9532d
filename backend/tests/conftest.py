import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from checksplitter.models import AppUser, Friend, Receipt, Item, TaxType


@pytest.fixture
def owner():
    return AppUser(
        id=uuid.uuid4(),
        firebase_uid="firebase-owner",
        email="owner@example.com",
        display_name="Owner",
    )


@pytest.fixture
def make_friend(owner):
    """Friend belonging to the owner; pass user_id to make a stranger's friend."""
    def _make(name, user_id=None):
        return Friend(
            id=uuid.uuid4(),
            user_id=user_id or owner.id,
            name=name,
            created_at=datetime.now(timezone.utc),
        )
    return _make


@pytest.fixture
def make_receipt(owner):
    """Transient receipt graph; items are (name, quantity, line total) tuples."""
    def _make(items, tax="0", tax_type=TaxType.amount, tips="0", total="0", tips_included_in_total=False):
        receipt = Receipt(
            id=uuid.uuid4(),
            user_id=owner.id,
            name="Dinner",
            tax=Decimal(tax),
            tax_type=tax_type,
            tips=Decimal(tips),
            total=Decimal(total),
            tips_included_in_total=tips_included_in_total,
            version=1,
            created_at=datetime.now(timezone.utc),
        )
        for position, (name, quantity, price) in enumerate(items):
            receipt.items.append(Item(
                id=uuid.uuid4(),
                receipt_id=receipt.id,
                name=name,
                quantity=quantity,
                price=Decimal(price),
                position=position,
            ))
        return receipt
    return _make


def roster_of(*friends):
    return {f.id: f for f in friends}


@pytest.fixture
def roster():
    return roster_of
