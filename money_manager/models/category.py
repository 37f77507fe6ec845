"""
Category Catalog

The default category taxonomy offered to users when they log a
transaction. Transaction categories stay free text; this catalog is
the suggestion list the frontend shows.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class CategoryType(str, Enum):
    """Which kind of transaction a category applies to."""
    INCOME = "income"
    EXPENSE = "expense"
    BOTH = "both"


class Category(BaseModel):
    """A named bucket for transactions."""
    model_config = ConfigDict(str_strip_whitespace=True, frozen=True)

    name: str = Field(..., min_length=1, max_length=100)
    type: CategoryType
    icon: str = Field(default="default")
    color: str = Field(
        default="#6366f1",
        pattern="^#[0-9a-fA-F]{6}$",
    )


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    # Income categories
    Category(name="Salary", type=CategoryType.INCOME, icon="💰", color="#10b981"),
    Category(name="Freelance", type=CategoryType.INCOME, icon="💼", color="#059669"),
    Category(name="Investment", type=CategoryType.INCOME, icon="📈", color="#34d399"),
    Category(name="Business", type=CategoryType.INCOME, icon="🏢", color="#6ee7b7"),
    Category(name="Gift", type=CategoryType.INCOME, icon="🎁", color="#a7f3d0"),
    Category(name="Other Income", type=CategoryType.INCOME, icon="💵", color="#d1fae5"),
    # Expense categories
    Category(name="Food & Dining", type=CategoryType.EXPENSE, icon="🍔", color="#ef4444"),
    Category(name="Transportation", type=CategoryType.EXPENSE, icon="🚗", color="#dc2626"),
    Category(name="Shopping", type=CategoryType.EXPENSE, icon="🛍️", color="#f87171"),
    Category(name="Entertainment", type=CategoryType.EXPENSE, icon="🎬", color="#fca5a5"),
    Category(name="Bills & Utilities", type=CategoryType.EXPENSE, icon="📄", color="#f59e0b"),
    Category(name="Healthcare", type=CategoryType.EXPENSE, icon="🏥", color="#ec4899"),
    Category(name="Education", type=CategoryType.EXPENSE, icon="📚", color="#8b5cf6"),
    Category(name="Travel", type=CategoryType.EXPENSE, icon="✈️", color="#3b82f6"),
    Category(name="Rent", type=CategoryType.EXPENSE, icon="🏠", color="#6366f1"),
    Category(name="Insurance", type=CategoryType.EXPENSE, icon="🛡️", color="#14b8a6"),
    Category(name="Groceries", type=CategoryType.EXPENSE, icon="🛒", color="#22c55e"),
    Category(name="Fitness", type=CategoryType.EXPENSE, icon="💪", color="#84cc16"),
    Category(name="Personal Care", type=CategoryType.EXPENSE, icon="💇", color="#f43f5e"),
    Category(name="Subscriptions", type=CategoryType.EXPENSE, icon="📱", color="#a855f7"),
    Category(name="Other Expense", type=CategoryType.EXPENSE, icon="💸", color="#64748b"),
)


def list_categories(
    category_type: Optional[str] = None,
    catalog: tuple[Category, ...] = DEFAULT_CATEGORIES,
) -> list[Category]:
    """
    List catalog categories, sorted by name.

    Args:
        category_type: "income" or "expense" to filter (categories typed
                       "both" always match). None or "all" returns everything.
        catalog: Categories to filter, defaults to the built-in taxonomy

    Raises:
        ValueError: If category_type is not a known type
    """
    if category_type in (None, "all"):
        selected = list(catalog)
    else:
        wanted = CategoryType(category_type)
        selected = [
            c for c in catalog
            if c.type == wanted or c.type == CategoryType.BOTH
        ]
    return sorted(selected, key=lambda c: c.name)
