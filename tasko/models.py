"""Data models for Tasko."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp from the API, tolerating a trailing 'Z'."""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class Profile:
    """The user profile that is kept next to the token."""
    id: str
    email: str
    username: str

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Profile"]:
        """
        Create a Profile from a decoded JSON object.

        Returns:
            Profile if id, email and username are all present strings, None otherwise
        """
        if not isinstance(data, dict):
            return None
        values = [data.get("id"), data.get("email"), data.get("username")]
        if not all(isinstance(value, str) and value for value in values):
            return None
        return cls(id=values[0], email=values[1], username=values[2])

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "email": self.email, "username": self.username}


@dataclass(frozen=True)
class Session:
    """A bearer token paired with the profile it belongs to."""
    token: Optional[str] = None
    profile: Optional[Profile] = None
    refresh_token: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.token) and self.profile is not None

    @classmethod
    def anonymous(cls) -> "Session":
        return cls()


@dataclass
class Category:
    """Represents a todo category."""
    id: str
    name: str
    color: str = ""
    icon: str = ""
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Category":
        return cls(
            id=data["id"],
            name=data["name"],
            color=data.get("color") or "",
            icon=data.get("icon") or "",
            description=data.get("description"),
        )


@dataclass
class CategoryStats:
    """Todo counts for one category."""
    id: str
    name: str
    todo_count: int
    completed_count: int

    @classmethod
    def from_dict(cls, data: dict) -> "CategoryStats":
        return cls(
            id=data["id"],
            name=data["name"],
            todo_count=int(data.get("todoCount", 0)),
            completed_count=int(data.get("completedCount", 0)),
        )


@dataclass
class Tag:
    """Represents a tag that can be attached to todos."""
    id: str
    name: str
    color: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Tag":
        return cls(id=data["id"], name=data["name"], color=data.get("color"))


@dataclass
class Todo:
    """Represents a todo item."""
    id: str
    title: str
    completed: bool
    priority: str
    description: Optional[str] = None
    due_date: Optional[datetime] = None
    category: Optional[Category] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Todo":
        """Create a Todo from an API response dictionary."""
        category = data.get("category")
        return cls(
            id=data["id"],
            title=data["title"],
            completed=bool(data.get("completed", False)),
            priority=data.get("priority") or "MEDIUM",
            description=data.get("description"),
            due_date=parse_timestamp(data.get("dueDate")),
            category=Category.from_dict(category) if category else None,
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class Comment:
    """Represents a comment on a todo."""
    id: str
    content: str
    todo_id: str
    author: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: dict) -> "Comment":
        author = data.get("author") or {}
        return cls(
            id=data["id"],
            content=data["content"],
            todo_id=data.get("todoId", ""),
            author=author.get("username"),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class Product:
    """Represents a product in the shop."""
    id: str
    name: str
    base_price: float
    is_available: bool
    description: Optional[str] = None
    # (sku_id, sku_code, price, stock)
    skus: List[tuple] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Product":
        skus = [
            (sku["id"], sku.get("skuCode", ""), float(sku.get("price", 0)), int(sku.get("stock", 0)))
            for sku in data.get("skus") or []
        ]
        return cls(
            id=data["id"],
            name=data["name"],
            base_price=float(data.get("basePrice", 0)),
            is_available=bool(data.get("isAvailable", True)),
            description=data.get("description"),
            skus=skus,
        )


@dataclass
class CartItem:
    """A line of the shopping cart."""
    id: str
    sku_id: str
    product_name: str
    quantity: int
    unit_price: float
    item_total: float

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        return cls(
            id=data["id"],
            sku_id=data["skuId"],
            product_name=data.get("productName", ""),
            quantity=int(data.get("quantity", 0)),
            unit_price=float(data.get("unitPrice", 0)),
            item_total=float(data.get("itemTotal", 0)),
        )


@dataclass
class Cart:
    """The current user's shopping cart."""
    id: str
    items: List[CartItem]
    subtotal: float
    tax_amount: float
    total: float

    @property
    def is_empty(self) -> bool:
        return not self.items

    @classmethod
    def from_dict(cls, data: dict) -> "Cart":
        return cls(
            id=data["id"],
            items=[CartItem.from_dict(item) for item in data.get("items") or []],
            subtotal=float(data.get("subtotal", 0)),
            tax_amount=float(data.get("taxAmount", 0)),
            total=float(data.get("total", 0)),
        )


@dataclass
class Order:
    """Represents an order placed from the cart."""
    id: str
    order_number: str
    status: str
    total_amount: float
    item_count: int
    created_at: Optional[datetime] = None
    shipping_address: Optional[str] = None
    recipient_name: Optional[str] = None
    recipient_phone: Optional[str] = None
    notes: Optional[str] = None
    # (product_name, sku_code, quantity)
    lines: List[tuple] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "Order":
        items = data.get("items") or []
        return cls(
            id=data["id"],
            order_number=data.get("orderNumber", ""),
            status=data.get("status", ""),
            total_amount=float(data.get("totalAmount", 0)),
            item_count=len(items),
            created_at=parse_timestamp(data.get("createdAt")),
            shipping_address=data.get("shippingAddress"),
            recipient_name=data.get("recipientName"),
            recipient_phone=data.get("recipientPhone"),
            notes=data.get("notes"),
            lines=[
                (item.get("productName", ""), item.get("skuCode", ""), int(item.get("quantity", 0)))
                for item in items
            ],
        )


@dataclass
class SearchResult:
    """A single hit of the global search."""
    type: str
    id: str
    label: str
    relevance: float

    @classmethod
    def from_dict(cls, data: dict) -> "SearchResult":
        # Todos carry a title, categories a name and comments only content
        label = data.get("title") or data.get("name") or data.get("content") or ""
        return cls(
            type=data.get("type", ""),
            id=data["id"],
            label=label,
            relevance=float(data.get("relevance", 0)),
        )
