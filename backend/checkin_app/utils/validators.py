"""Validation utilities for the application."""
import re
from datetime import date, datetime
from typing import Dict, List, Any, Optional

from checkin_app.utils.errors import InputError, ReasonCode

class Validator:
    """Validation helper class."""
    
    @staticmethod
    def validate_email(email: str) -> bool:
        """Validate email format."""
        if not email:
            return False
        pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        return bool(re.match(pattern, email.strip()))
    
    @staticmethod
    def missing_fields(data: Dict, required_fields: List[str]) -> List[str]:
        """Return required fields that are absent, None or blank strings.

        Numeric zero is a valid value (coordinates on the equator).
        """
        missing = []
        for field in required_fields:
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                missing.append(field)
        return missing
    
    @staticmethod
    def require_fields(data: Dict, required_fields: List[str]) -> None:
        """Raise InputError listing every missing field."""
        missing = Validator.missing_fields(data, required_fields)
        if missing:
            raise InputError(
                f"All fields are required: {', '.join(missing)}",
                reason_code=ReasonCode.MISSING_FIELDS,
                fields=missing
            )
    
    @staticmethod
    def require_strings(data: Dict, fields: List[str]) -> None:
        """Raise InputError listing every field whose value is not a string."""
        invalid = [f for f in fields if not isinstance(data.get(f), str)]
        if invalid:
            raise InputError(
                f"Fields must be text: {', '.join(invalid)}",
                reason_code=ReasonCode.INVALID_INPUT,
                fields=invalid
            )

    @staticmethod
    def coordinate(value: Any, name: str, limit: float) -> float:
        """Parse a latitude/longitude value and check its range."""
        if isinstance(value, bool):
            raise InputError(f"{name} must be a number", reason_code=ReasonCode.INVALID_INPUT)
        try:
            number = float(value)
        except (TypeError, ValueError):
            raise InputError(f"{name} must be a number", reason_code=ReasonCode.INVALID_INPUT)
        if number != number or not -limit <= number <= limit:
            raise InputError(
                f"{name} must be between {-limit:g} and {limit:g}",
                reason_code=ReasonCode.INVALID_INPUT
            )
        return number
    
    @staticmethod
    def parse_day(value: Any) -> date:
        """Parse an ISO date or datetime string into a calendar day."""
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        try:
            return datetime.fromisoformat(str(value).strip().replace('Z', '+00:00')).date()
        except ValueError:
            raise InputError("Date must be in ISO format (YYYY-MM-DD)",
                             reason_code=ReasonCode.INVALID_INPUT)
    
    @staticmethod
    def optional_str(value: Any, max_length: int = 512) -> Optional[str]:
        if value is None:
            return None
        text = str(value).strip()
        return text[:max_length] or None
