import math
from typing import Any, Dict, Optional

from book import Condition, Genre, MaterialType
from errors import ValidationError

REQUIRED_BOOK_FIELDS = ("title", "course_code", "price", "condition", "material_type", "genre")
UPDATABLE_BOOK_FIELDS = REQUIRED_BOOK_FIELDS + ("description", "is_sold", "seller_id")


class ListingValidator:
    """Parse-and-validate step for listing payloads.

    Raw form data comes in as loosely typed key/value pairs; everything that
    reaches the store has been through one of these methods first.
    """

    @staticmethod
    def parse_price(raw: Any) -> float:
        if isinstance(raw, bool) or raw is None:
            raise ValidationError("Invalid price format")
        if isinstance(raw, str):
            raw = raw.strip()
        try:
            price = float(raw)
        except (TypeError, ValueError) as exc:
            raise ValidationError("Invalid price format") from exc
        if not math.isfinite(price):
            raise ValidationError("Invalid price format")
        if price < 0:
            raise ValidationError("Price cannot be negative")
        return price

    @staticmethod
    def parse_choice(field: str, raw: Any, enum_cls) -> str:
        try:
            return enum_cls(raw.strip() if isinstance(raw, str) else raw).value
        except ValueError as exc:
            allowed = ", ".join(member.value for member in enum_cls)
            raise ValidationError(f"Invalid {field} '{raw}'. Allowed: {allowed}") from exc

    @staticmethod
    def _is_blank(raw: Any) -> bool:
        return raw is None or not str(raw).strip()

    @staticmethod
    def _text(raw: Any) -> str:
        # stored as given; whitespace only decides emptiness
        if ListingValidator._is_blank(raw):
            return ""
        return str(raw)

    @staticmethod
    def _optional_text(raw: Any) -> Optional[str]:
        text = ListingValidator._text(raw)
        return text or None

    @staticmethod
    def _parse_field(field: str, raw: Any) -> Any:
        if field == "price":
            return ListingValidator.parse_price(raw)
        if field == "condition":
            return ListingValidator.parse_choice("condition", raw, Condition)
        if field == "material_type":
            return ListingValidator.parse_choice("material type", raw, MaterialType)
        if field == "genre":
            return ListingValidator.parse_choice("genre", raw, Genre)
        if field == "description":
            return ListingValidator._optional_text(raw)
        if field == "is_sold":
            if not isinstance(raw, bool):
                raise ValidationError("is_sold must be true or false")
            return raw
        text = ListingValidator._text(raw)
        if not text:
            raise ValidationError(f"{field} cannot be empty")
        return text

    @staticmethod
    def parse_new_book(fields: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a create-listing payload and return the cleaned fields."""
        missing = [f for f in REQUIRED_BOOK_FIELDS if ListingValidator._is_blank(fields.get(f))]
        if missing:
            raise ValidationError("All fields except description are required")

        cleaned = {f: ListingValidator._parse_field(f, fields[f]) for f in REQUIRED_BOOK_FIELDS}
        cleaned["description"] = ListingValidator._optional_text(fields.get("description"))
        return cleaned

    @staticmethod
    def parse_book_update(fields: Dict[str, Any]) -> Dict[str, Any]:
        """Validate a partial update; only listing fields may change."""
        if not fields:
            raise ValidationError("Nothing to update.")
        unknown = sorted(set(fields) - set(UPDATABLE_BOOK_FIELDS))
        if unknown:
            raise ValidationError(f"Cannot update field(s): {', '.join(unknown)}")
        return {f: ListingValidator._parse_field(f, raw) for f, raw in fields.items()}

    @staticmethod
    def parse_price_bound(name: str, raw: Any) -> Optional[float]:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None
        try:
            return ListingValidator.parse_price(raw)
        except ValidationError as exc:
            raise ValidationError(f"Invalid {name}") from exc


class ProfileValidator:

    @staticmethod
    def normalize_email(raw: Optional[str]) -> str:
        return (raw or "").strip().lower()

    @staticmethod
    def validate_email(raw: Optional[str]) -> str:
        email = (raw or "").strip()
        local, _, domain = email.partition("@")
        if not local or not domain or " " in email:
            raise ValidationError("A valid email address is required")
        return email
