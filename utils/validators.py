import re
from datetime import date
from typing import Any, Optional

_NON_ISBN_CHARS = re.compile(r"[^0-9Xx]")


class ISBNValidator:
    """ISBN normalization for stored records.

    Only the shape is enforced (digits and an uppercase 'X'); checksums are
    not verified.
    """

    @staticmethod
    def normalize_isbn(raw: Optional[str]) -> Optional[str]:
        if not raw:
            return None
        # keep digits and X (ISBN-10 might end with X)
        cleaned = _NON_ISBN_CHARS.sub("", str(raw).strip()).upper()
        return cleaned or None


class RatingValidator:

    @staticmethod
    def normalize_rating(raw: Any) -> Optional[int]:
        """Return the rating as an int when it is exactly one of 1..5, else None.

        None is returned both for blank input and for malformed input; callers
        check the raw value to tell the two apart.
        """
        if raw is None or raw == "":
            return None
        if isinstance(raw, bool):
            return None
        try:
            value = float(raw)
        except (TypeError, ValueError):
            return None
        if not value.is_integer() or value < 1 or value > 5:
            return None
        return int(value)


class DateValidator:

    @staticmethod
    def normalize_date(raw: Optional[str]) -> Optional[str]:
        """Return an ISO ``YYYY-MM-DD`` string, or None for blank/invalid input."""
        if raw is None:
            return None
        text = str(raw).strip()
        if not text:
            return None
        try:
            return date.fromisoformat(text).isoformat()
        except ValueError:
            return None


class TextValidator:

    @staticmethod
    def normalize_text(raw: Optional[str]) -> str:
        if raw is None:
            return ""
        return str(raw).strip()

    @staticmethod
    def is_blank(raw: Optional[str]) -> bool:
        return TextValidator.normalize_text(raw) == ""
