"""
Shared parsing helpers used by every source adapter.

All helpers are total: malformed input yields None (or an empty list / the
documented default) instead of raising, so one odd upstream value never
costs more than the field it lives in.
"""

from typing import Any, Dict, List, Optional, Tuple, Union
from datetime import date, datetime, timezone
import json
import math
import re
import logging

from models.base import GrantStatus
from schemas.normalized import EligibilityCreate

logger = logging.getLogger(__name__)


STATUS_MAP: Dict[str, GrantStatus] = {
    "open": GrantStatus.OPEN,
    "active": GrantStatus.ACTIVE,
    "closed": GrantStatus.CLOSED,
    "awarded": GrantStatus.AWARDED,
    "forecast": GrantStatus.FORECASTED,
    "forecasted": GrantStatus.FORECASTED,
    "archived": GrantStatus.ARCHIVED,
    "posted": GrantStatus.OPEN,
    "accepting applications": GrantStatus.OPEN,
    "accepting proposals": GrantStatus.OPEN,
    "deadline passed": GrantStatus.CLOSED,
    "completed": GrantStatus.CLOSED,
    "upcoming": GrantStatus.FORECASTED,
    "announced": GrantStatus.FORECASTED,
}

CURRENCY_MAP: Dict[str, str] = {
    "$": "USD",
    "US$": "USD",
    "£": "GBP",
    "€": "EUR",
    "C$": "CAD",
    "CA$": "CAD",
}

STOP_WORDS = frozenset([
    "the", "and", "for", "with", "from", "that", "this", "will", "can",
    "are", "have", "has", "been", "such", "into", "their", "these", "those",
    "which", "other", "also", "must", "shall", "should", "more", "than",
])

ORGANIZATION_TYPES = [
    "nonprofit", "non-profit", "university", "college", "government",
    "state", "local", "tribal", "for-profit", "small business",
    "individual", "consortium", "public", "private",
]

MULTIPLIERS = {
    "thousand": 1_000,
    "k": 1_000,
    "million": 1_000_000,
    "mn": 1_000_000,
    "m": 1_000_000,
    "billion": 1_000_000_000,
    "bn": 1_000_000_000,
}

_ACTIVITY_CODE_RE = re.compile(r"\b\d{2}\.\d{3}\b")
_MULTIPLIER_RE = re.compile(r"(\d)\s*(thousand|million|billion|mn|bn|k|m)\b", re.IGNORECASE)
_MONEY_TEXT_RE = re.compile(
    r"(?:\$|US\$|USD|EUR|€|£|GBP|CAD|C\$)\s?(\d[\d,.]*)\s*(thousand|million|billion|mn|bn|k|m)?\b",
    re.IGNORECASE,
)
_DATE_FORMATS = [
    "%m/%d/%Y",
    "%Y-%m-%d",
    "%Y/%m/%d",
    "%Y%m%d",
    "%B %d, %Y",
    "%b %d, %Y",
    "%d %B %Y",
    "%d %b %Y",
]


class GrantNormalizer:
    """
    Normalize raw upstream values into canonical grant field values.

    Handles:
    - Amount parsing across currency and locale formats
    - Date coercion
    - Status vocabulary mapping
    - Keyword, activity code and eligibility extraction
    """

    @staticmethod
    def parse_amount(value: Any) -> Optional[float]:
        """
        Parse a monetary amount.

        The last separator followed by a final group of 1-2 digits is the
        decimal separator; every other separator groups thousands:

            "1,234,567.89" -> 1234567.89
            "1.234.567,89" -> 1234567.89
            "1,000"        -> 1000.0
            "€2.5 million" -> 2500000.0

        Negative, empty and unparseable values return None.
        """
        if value is None or isinstance(value, bool):
            return None

        if isinstance(value, (int, float)):
            if isinstance(value, float) and (math.isnan(value) or math.isinf(value)):
                return None
            return float(value) if value >= 0 else None

        text = str(value).strip()
        if not text:
            return None

        multiplier = 1
        match = _MULTIPLIER_RE.search(text)
        if match:
            multiplier = MULTIPLIERS[match.group(2).lower()]

        if text.lstrip().startswith("-"):
            return None

        cleaned = re.sub(r"[^0-9,.]", "", text)
        if not cleaned or not any(ch.isdigit() for ch in cleaned):
            return None

        last_sep = max(cleaned.rfind(","), cleaned.rfind("."))
        if last_sep >= 0:
            tail = cleaned[last_sep + 1:]
            head = re.sub(r"[,.]", "", cleaned[:last_sep])
            if 1 <= len(tail) <= 2:
                cleaned = f"{head}.{tail}"
            else:
                cleaned = head + tail

        try:
            return float(cleaned) * multiplier
        except ValueError:
            logger.debug(f"Unparseable amount: {value!r}")
            return None

    @staticmethod
    def parse_date(value: Any) -> Optional[date]:
        """
        Coerce ISO strings, MM/DD/YYYY, long-form dates and epoch
        seconds/milliseconds into a date. Returns None when invalid.
        """
        if value is None or value == "" or isinstance(value, bool):
            return None
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value

        if isinstance(value, (int, float)):
            try:
                seconds = value / 1000 if value > 10**11 else value
                return datetime.fromtimestamp(seconds, tz=timezone.utc).date()
            except (OverflowError, OSError, ValueError):
                return None

        text = str(value).strip()
        if not text:
            return None

        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
        except ValueError:
            pass

        # ISO timestamps with offsets/fractions older parsers reject
        iso_prefix = re.match(r"^(\d{4}-\d{2}-\d{2})[T ]", text)
        if iso_prefix:
            text = iso_prefix.group(1)

        for fmt in _DATE_FORMATS:
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue

        logger.debug(f"Unparseable date: {value!r}")
        return None

    @staticmethod
    def normalize_status(value: Any) -> GrantStatus:
        """Map free-text status vocabulary onto GrantStatus, defaulting to ACTIVE."""
        if value is None:
            return GrantStatus.ACTIVE
        key = re.sub(r"\s+", " ", str(value).strip().lower())
        return STATUS_MAP.get(key, GrantStatus.ACTIVE)

    @staticmethod
    def normalize_currency(value: Any) -> str:
        if not value:
            return "USD"
        text = str(value).strip().upper()
        if text in CURRENCY_MAP:
            return CURRENCY_MAP[text]
        if re.fullmatch(r"[A-Z]{3}", text):
            return text
        return "USD"

    @staticmethod
    def extract_keywords(text: Optional[str], limit: int = 20) -> List[str]:
        """Unique, stop-word-filtered words longer than three characters, in order of appearance."""
        if not text:
            return []

        words = re.sub(r"[^\w\s]", " ", str(text).lower()).split()
        keywords = []
        seen = set()
        for word in words:
            if len(word) <= 3 or word in STOP_WORDS or word.isdigit() or word in seen:
                continue
            seen.add(word)
            keywords.append(word)
            if len(keywords) >= limit:
                break
        return keywords

    @staticmethod
    def extract_activity_code(text: Optional[str]) -> Optional[str]:
        """CFDA / assistance listing number, pattern NN.NNN."""
        if not text:
            return None
        match = _ACTIVITY_CODE_RE.search(str(text))
        return match.group(0) if match else None

    @staticmethod
    def parse_eligibility(text: Optional[str]) -> List[EligibilityCreate]:
        if not text:
            return []
        lowered = str(text).lower()
        return [
            EligibilityCreate(
                eligibility_type="organization_type",
                eligibility_value=org_type,
                description=str(text)[:2000],
            )
            for org_type in ORGANIZATION_TYPES
            if org_type in lowered
        ]

    @staticmethod
    def parse_money_text(text: Optional[str]) -> Optional[float]:
        """
        Largest money mention in free text, e.g. "$2.5 million" or
        "EUR 10 million". Returns None when nothing matches.
        """
        if not text:
            return None

        amounts = []
        for match in _MONEY_TEXT_RE.finditer(str(text)):
            amount = GrantNormalizer.parse_amount(match.group(1))
            if amount is None:
                continue
            if match.group(2):
                amount *= MULTIPLIERS[match.group(2).lower()]
            amounts.append(amount)

        return max(amounts) if amounts else None

    @staticmethod
    def parse_amount_range(text: Optional[str]) -> Tuple[Optional[float], Optional[float]]:
        """
        "Between $10,000 and $50,000" -> (10000.0, 50000.0). A single
        amount is both bounds; nothing parseable is (None, None).
        """
        if text is None:
            return None, None
        if isinstance(text, (int, float)):
            amount = GrantNormalizer.parse_amount(text)
            return amount, amount

        amounts = [
            GrantNormalizer.parse_amount(token)
            for token in re.findall(r"\d[\d,.]*", str(text))
        ]
        amounts = [a for a in amounts if a is not None]
        if not amounts:
            return None, None
        return min(amounts), max(amounts)

    @staticmethod
    def parse_count(value: Any) -> Optional[int]:
        """Leading integer of values like "10" or "Between 5 and 10"."""
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return int(value) if value >= 0 else None
        match = re.search(r"\d+", str(value).replace(",", ""))
        return int(match.group(0)) if match else None

    @staticmethod
    def sum_budget_json(value: Union[str, Dict[str, Any], None]) -> Optional[float]:
        """
        Sum every yearly amount of an embedded budget block shaped like
        {"budgetTopicActionMap": {topic: [{"budgetYearMap": {"2025": 1000000}}]}}.
        """
        if not value:
            return None
        try:
            data = json.loads(value) if isinstance(value, str) else value
        except (TypeError, ValueError):
            return None
        if not isinstance(data, dict):
            return None

        total = 0.0
        action_map = data.get("budgetTopicActionMap") or {}
        if not isinstance(action_map, dict):
            return None
        for actions in action_map.values():
            if not isinstance(actions, list):
                continue
            for action in actions:
                year_map = action.get("budgetYearMap") if isinstance(action, dict) else None
                if not isinstance(year_map, dict):
                    continue
                for amount in year_map.values():
                    parsed = GrantNormalizer.parse_amount(amount)
                    if parsed:
                        total += parsed

        return total if total > 0 else None
