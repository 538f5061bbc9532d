"""Create a demo account with friends and an assigned receipt.

Usage: python -m scripts.seed_test_data [firebase_uid] [email]
Run from the backend/ directory. Pass the uid/email of a real Firebase
account to see the data when signing in to the app.
"""

import asyncio
import sys
from decimal import Decimal

from sqlalchemy import select

from checksplitter.core.database import async_session_factory
from checksplitter.models.user import AppUser
from checksplitter.services.assignment_service import assign_whole_item, split_item
from checksplitter.services.calculation_service import get_friend_totals
from checksplitter.services.friend_service import get_or_create_friend
from checksplitter.services.receipt_service import create_receipt

FRIEND_NAMES = ["Alice", "Bob", "Charlie"]

RECEIPT = {
    "name": "Friday dinner",
    "tax": Decimal("10.00"),
    "tips": Decimal("5.00"),
    "total": Decimal("118.00"),
}
ITEMS = [
    {"name": "Pizza", "quantity": 1, "price": Decimal("20.00")},
    {"name": "Soda", "quantity": 3, "price": Decimal("3.00")},
    {"name": "Steak", "quantity": 1, "price": Decimal("80.00")},
]


async def main():
    firebase_uid = sys.argv[1] if len(sys.argv) > 1 else "seed-user"
    email = sys.argv[2] if len(sys.argv) > 2 else "seed@test.com"

    async with async_session_factory() as db:
        result = await db.execute(select(AppUser).where(AppUser.firebase_uid == firebase_uid))
        user = result.scalar_one_or_none()
        if not user:
            user = AppUser(firebase_uid=firebase_uid, email=email, display_name="Seed User")
            db.add(user)
            await db.flush()
            print(f"  Added user to DB: {email}")
        else:
            print(f"  User already in DB: {email}")

        friends = {}
        for name in FRIEND_NAMES:
            friends[name] = await get_or_create_friend(db, user, name)
        await db.commit()
        print(f"  Friends: {', '.join(FRIEND_NAMES)}")

        receipt = await create_receipt(db, user, RECEIPT, ITEMS)
        print(f"\n  Created receipt: {receipt.name} ({receipt.id})")

        pizza, soda, steak = receipt.items
        alice, bob, charlie = (friends[n].id for n in FRIEND_NAMES)
        await assign_whole_item(db, user, receipt.id, pizza.id, [alice, bob])
        await split_item(db, user, receipt.id, soda.id, [(1, [alice]), (1, [bob]), (1, [charlie])])
        await assign_whole_item(db, user, receipt.id, steak.id, [charlie])

        totals = await get_friend_totals(db, user, receipt.id)

    print("\nDone! Amounts owed:")
    for owed in totals.friends.values():
        print(f"  {owed.name}: {owed.total}")
    for warning in totals.warnings:
        print(f"  warning: {warning.message}")


if __name__ == "__main__":
    asyncio.run(main())
