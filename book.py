from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class Condition(str, Enum):
    LIKE_NEW = "Like New"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"


class MaterialType(str, Enum):
    TEXTBOOK = "Textbook"
    LAB_MANUAL = "Lab Manual"
    NOTES = "Notes"
    STUDY_GUIDE = "Study Guide"


class Genre(str, Enum):
    STEM = "STEM"
    BUSINESS = "Business"
    ARTS = "Arts"
    HUMANITIES = "Humanities"


GUEST_USER_ID = "00000000-0000-0000-0000-000000000000"
GUEST_EMAIL = "guest@asu.edu"
GUEST_NAME = "Guest User"


def format_timestamp(moment: datetime) -> str:
    """Render a moment as a UTC ISO-8601 string with a fixed width."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


class Profile:
    """A user identity. The guest profile is one of these with a fixed id."""

    def __init__(self, id: str, email: str, full_name: str | None = None, avatar_url: str | None = None,
                 created_at: str | None = None, updated_at: str | None = None) -> None:
        self.id = id
        self.email = email
        self.full_name = full_name
        self.avatar_url = avatar_url
        self.created_at = created_at
        self.updated_at = updated_at

    @property
    def is_guest(self) -> bool:
        return self.id == GUEST_USER_ID

    def __str__(self) -> str:
        return f"{self.full_name or self.email} <{self.email}>"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Profile) and self.to_dict() == other.to_dict()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "avatar_url": self.avatar_url,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Profile":
        return Profile(
            id=data["id"],
            email=data["email"],
            full_name=data.get("full_name"),
            avatar_url=data.get("avatar_url"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


class Book:
    """A single listing offered for sale on the marketplace."""

    def __init__(self, id: str, title: str, course_code: str, price: float, condition: str,
                 material_type: str, genre: str, seller_id: str, description: str | None = None,
                 is_sold: bool = False, created_at: str | None = None, updated_at: str | None = None) -> None:
        self.id = id
        self.title = title
        self.course_code = course_code
        self.price = float(price)
        self.condition = Condition(condition).value
        self.material_type = MaterialType(material_type).value
        self.genre = Genre(genre).value
        self.description = description
        self.seller_id = seller_id
        self.is_sold = bool(is_sold)
        self.created_at = created_at
        self.updated_at = updated_at

    def __str__(self) -> str:
        return f"{self.title} ({self.course_code}) ${self.price:.2f}"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Book) and self.to_dict() == other.to_dict()

    @property
    def status(self) -> str:
        return "sold" if self.is_sold else "available"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "course_code": self.course_code,
            "price": self.price,
            "condition": self.condition,
            "material_type": self.material_type,
            "genre": self.genre,
            "description": self.description,
            "seller_id": self.seller_id,
            "is_sold": self.is_sold,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @staticmethod
    def from_dict(data: dict) -> "Book":
        # Rows from the table store carry 'status' instead of 'is_sold'
        if "is_sold" in data:
            is_sold = bool(data["is_sold"])
        else:
            is_sold = data.get("status") == "sold"

        return Book(
            id=data["id"],
            title=data["title"],
            course_code=data["course_code"],
            price=data["price"],
            condition=data["condition"],
            material_type=data["material_type"],
            genre=data["genre"],
            description=data.get("description"),
            seller_id=data["seller_id"],
            is_sold=is_sold,
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


def guest_profile(timestamp: str) -> Profile:
    return Profile(id=GUEST_USER_ID, email=GUEST_EMAIL, full_name=GUEST_NAME,
                   created_at=timestamp, updated_at=timestamp)


_SAMPLE_LISTINGS = [
    ("Introduction to Computer Science", "CSE 110", 45.99, "Good", "Textbook", "STEM",
     "Great introductory textbook for CS students"),
    ("Calculus for Engineers", "MAT 265", 55.0, "Like New", "Textbook", "STEM",
     "Barely used calculus textbook"),
    ("Introduction to Psychology", "PSY 101", 30.5, "Fair", "Textbook", "Humanities",
     "Psychology textbook with some highlighting"),
]


def sample_books(timestamp: str, ids: Optional[List[str]] = None) -> List[Book]:
    """Demonstration listings, all offered by the guest profile.

    ``ids`` defaults to ``"1"``, ``"2"``, ``"3"`` so the read-only fallback
    data stays stable between calls.
    """
    ids = ids or [str(n) for n in range(1, len(_SAMPLE_LISTINGS) + 1)]
    return [
        Book(id=book_id, title=title, course_code=code, price=price, condition=condition,
             material_type=material, genre=genre, description=description,
             seller_id=GUEST_USER_ID, created_at=timestamp, updated_at=timestamp)
        for book_id, (title, code, price, condition, material, genre, description)
        in zip(ids, _SAMPLE_LISTINGS)
    ]
