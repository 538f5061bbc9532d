from checksplitter.models.user import AppUser
from checksplitter.models.friend import Friend, FriendReceipt
from checksplitter.models.receipt import Receipt, Item, ItemAssignment, FriendAssignment, TaxType

__all__ = [
    "AppUser", "Friend", "FriendReceipt",
    "Receipt", "Item", "ItemAssignment", "FriendAssignment", "TaxType",
]
