"""
In-memory data store.

One Database instance holds the users, sweets and cart rows of an
application. It is created by create_app() and reached by handlers through
the get_db dependency, so every app (and every test) gets its own store.

Handlers run on a worker thread pool, so every check-then-write sequence is
done under a lock: one per sweet id for stock changes and edits, one for the
user table and one for the cart table.
"""

import logging
import threading
from typing import Dict, Iterator, List, Optional

from bson import ObjectId
from fastapi import Request

from errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from schemas import (
    CartItem,
    CartLine,
    Category,
    Role,
    Sweet,
    SweetCreate,
    SweetUpdate,
    User,
    utcnow,
)
from security import hash_password

logger = logging.getLogger(__name__)


def new_id() -> str:
    return str(ObjectId())


class Database:
    def __init__(self):
        self.users: Dict[str, User] = {}
        self.sweets: Dict[str, Sweet] = {}
        self.cart_items: Dict[str, CartItem] = {}

        self._users_lock = threading.Lock()
        self._cart_lock = threading.Lock()
        self._lock_table_lock = threading.Lock()
        self._sweet_locks: Dict[str, threading.Lock] = {}

    # Users

    def get_user(self, user_id: str) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_email(self, email: str) -> Optional[User]:
        email = email.lower()
        return next((u for u in list(self.users.values()) if u.email == email), None)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in list(self.users.values()) if u.username == username), None)

    def create_user(self, username: str, email: str, password_hash: str, role: Role = Role.CUSTOMER) -> User:
        """Insert a user; the password must already be hashed.

        Raises ConflictError when the email or username is taken.
        """
        email = email.lower()
        with self._users_lock:
            if self.get_user_by_email(email):
                raise ConflictError("User already exists", details={"email": email})
            if self.get_user_by_username(username):
                raise ConflictError("User already exists", details={"username": username})
            user = User(id=new_id(), username=username, email=email, password=password_hash, role=role)
            self.users[user.id] = user
        logger.info("Registered user %s (%s)", user.id, user.role.value)
        return user

    # Sweets

    def _sweet_lock(self, sweet_id: str) -> threading.Lock:
        """Lock guarding one sweet's record.

        Unknown ids get a throwaway lock so the table only holds live sweets;
        callers re-check existence once the lock is held.
        """
        with self._lock_table_lock:
            if sweet_id not in self.sweets:
                return threading.Lock()
            lock = self._sweet_locks.get(sweet_id)
            if lock is None:
                lock = self._sweet_locks[sweet_id] = threading.Lock()
            return lock

    def list_sweets(self) -> List[Sweet]:
        return list(self.sweets.values())

    def get_sweet(self, sweet_id: str) -> Optional[Sweet]:
        return self.sweets.get(sweet_id)

    def create_sweet(self, data: SweetCreate) -> Sweet:
        sweet = Sweet(id=new_id(), **data.model_dump())
        self.sweets[sweet.id] = sweet
        logger.info("Created sweet %s (%s)", sweet.id, sweet.name)
        return sweet

    def update_sweet(self, sweet_id: str, data: SweetUpdate) -> Sweet:
        changes = data.model_dump(exclude_unset=True)
        with self._sweet_lock(sweet_id):
            sweet = self.sweets.get(sweet_id)
            if sweet is None:
                raise NotFoundError("Sweet not found", details={"sweet_id": sweet_id})
            changes["updated_at"] = utcnow()
            updated = sweet.model_copy(update=changes)
            self.sweets[sweet_id] = updated
        logger.info("Updated sweet %s: %s", sweet_id, sorted(changes))
        return updated

    def delete_sweet(self, sweet_id: str) -> None:
        with self._sweet_lock(sweet_id):
            if self.sweets.pop(sweet_id, None) is None:
                raise NotFoundError("Sweet not found", details={"sweet_id": sweet_id})
        with self._lock_table_lock:
            self._sweet_locks.pop(sweet_id, None)
        logger.info("Deleted sweet %s", sweet_id)

    def search_sweets(
        self,
        query: Optional[str] = None,
        category: Optional[str] = None,
        min_price=None,
        max_price=None,
    ) -> List[Sweet]:
        """Filter the catalog; every given filter must match, order is kept."""
        needle = query.lower() if query else None
        results = []
        for sweet in list(self.sweets.values()):
            if needle and needle not in sweet.name.lower() and needle not in sweet.description.lower():
                continue
            if category and sweet.category.value != category:
                continue
            if min_price is not None and sweet.price < min_price:
                continue
            if max_price is not None and sweet.price > max_price:
                continue
            results.append(sweet)
        return results

    # Inventory

    def purchase_sweet(self, sweet_id: str, quantity: int) -> Sweet:
        """Take quantity units out of stock, all or nothing.

        A missing sweet and a short stock both raise InsufficientStockError.
        """
        if quantity < 1:
            raise ValidationError("Quantity must be a positive integer", details={"quantity": quantity})
        with self._sweet_lock(sweet_id):
            sweet = self.sweets.get(sweet_id)
            if sweet is None or sweet.quantity < quantity:
                logger.info("Rejected purchase of %d x %s", quantity, sweet_id)
                raise InsufficientStockError(sweet_id, quantity)
            updated = sweet.model_copy(update={"quantity": sweet.quantity - quantity, "updated_at": utcnow()})
            self.sweets[sweet_id] = updated
        logger.info("Purchased %d x %s, %d left", quantity, sweet_id, updated.quantity)
        return updated

    def restock_sweet(self, sweet_id: str, quantity: int) -> Sweet:
        """Add quantity units to stock. Callers are expected to have checked the role."""
        if quantity < 1:
            raise ValidationError("Quantity must be a positive integer", details={"quantity": quantity})
        with self._sweet_lock(sweet_id):
            sweet = self.sweets.get(sweet_id)
            if sweet is None:
                raise NotFoundError("Sweet not found", details={"sweet_id": sweet_id})
            updated = sweet.model_copy(update={"quantity": sweet.quantity + quantity, "updated_at": utcnow()})
            self.sweets[sweet_id] = updated
        logger.info("Restocked %d x %s, %d in stock", quantity, sweet_id, updated.quantity)
        return updated

    # Cart

    def _user_rows(self, user_id: str) -> Iterator[CartItem]:
        return (item for item in list(self.cart_items.values()) if item.user_id == user_id)

    def add_to_cart(self, user_id: str, sweet_id: str, quantity: int) -> CartItem:
        """Add to the user's cart, merging with an existing row for the same sweet."""
        if quantity < 1:
            raise ValidationError("Quantity must be a positive integer", details={"quantity": quantity})
        with self._cart_lock:
            existing = next((it for it in self._user_rows(user_id) if it.sweet_id == sweet_id), None)
            if existing is not None:
                item = existing.model_copy(update={"quantity": existing.quantity + quantity})
            else:
                item = CartItem(id=new_id(), user_id=user_id, sweet_id=sweet_id, quantity=quantity)
            self.cart_items[item.id] = item
        return item

    def get_cart(self, user_id: str) -> List[CartLine]:
        """Cart rows joined with the current sweet; rows of deleted sweets are skipped."""
        lines = []
        for item in self._user_rows(user_id):
            sweet = self.sweets.get(item.sweet_id)
            if sweet is None:
                logger.warning("Cart item %s refers to missing sweet %s, skipping", item.id, item.sweet_id)
                continue
            lines.append(CartLine(**item.model_dump(), sweet=sweet))
        return lines

    def _owned_item(self, item_id: str, user_id: Optional[str]) -> CartItem:
        item = self.cart_items.get(item_id)
        if item is None or (user_id is not None and item.user_id != user_id):
            raise NotFoundError("Cart item not found", details={"item_id": item_id})
        return item

    def update_cart_item(self, item_id: str, quantity: int, user_id: Optional[str] = None) -> CartItem:
        if quantity < 1:
            raise ValidationError("Quantity must be a positive integer", details={"quantity": quantity})
        with self._cart_lock:
            item = self._owned_item(item_id, user_id).model_copy(update={"quantity": quantity})
            self.cart_items[item_id] = item
        return item

    def remove_from_cart(self, item_id: str, user_id: Optional[str] = None) -> None:
        with self._cart_lock:
            self._owned_item(item_id, user_id)
            del self.cart_items[item_id]

    def clear_cart(self, user_id: str) -> int:
        with self._cart_lock:
            ids = [item.id for item in self._user_rows(user_id)]
            for item_id in ids:
                del self.cart_items[item_id]
        return len(ids)


SAMPLE_SWEETS = [
    {
        "name": "Gulab Jamun",
        "category": Category.MITHAI,
        "description": "Soft, spongy milk-solid balls soaked in aromatic sugar syrup",
        "price": "180.00",
        "quantity": 25,
        "image_url": "https://images.unsplash.com/photo-1631452180539-96aca7d48617?ixlib=rb-4.0.3&w=600&h=400",
    },
    {
        "name": "Kaju Katli",
        "category": Category.BARFI,
        "description": "Premium cashew-based diamond-shaped delicacy with silver foil",
        "price": "450.00",
        "quantity": 3,
        "image_url": "https://images.unsplash.com/photo-1599599810769-bcde5a160d32?ixlib=rb-4.0.3&w=600&h=400",
    },
    {
        "name": "Besan Laddu",
        "category": Category.LADDU,
        "description": "Traditional gram flour balls with ghee and cardamom",
        "price": "120.00",
        "quantity": 40,
    },
    {
        "name": "Gajar Halwa",
        "category": Category.HALWA,
        "description": "Rich carrot-based dessert with milk, nuts and cardamom",
        "price": "200.00",
        "quantity": 0,
    },
]

SAMPLE_USERS = [
    ("admin", "admin@sweetshop.com", "admin123", Role.ADMIN),
    ("customer", "customer@sweetshop.com", "customer123", Role.CUSTOMER),
]


def seed_sample_data(db: Database) -> None:
    """Load the demo accounts and catalog."""
    for username, email, password, role in SAMPLE_USERS:
        db.create_user(username, email, hash_password(password), role)
    for data in SAMPLE_SWEETS:
        db.create_sweet(SweetCreate(**data))
    logger.info("Seeded %d users and %d sweets", len(SAMPLE_USERS), len(SAMPLE_SWEETS))


def get_db(request: Request) -> Database:
    return request.app.state.db
