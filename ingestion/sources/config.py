"""
Declarative description of one upstream grant registry.

A SourceConfig captures everything that differs between registries
(endpoint, pagination idiom, auth, field names, amount heuristics) so a
single GenericSourceAdapter can drive all of them.
"""

from pydantic import BaseModel, Field, validator
from typing import Any, Dict, List, Optional
import re

from models.base import CategoryType, LocationType

PAGINATION_STYLES = ("offset", "page", "sql")
AUTH_SCHEMES = ("none", "api_key", "bearer")
AMOUNT_KINDS = ("field", "json_budget", "text_money", "range")

_TEMPLATE_RE = re.compile(r"\{([^{}]+)\}")
_MISSING = object()


# ============================================================================
# Path helpers
# ============================================================================

def get_path(data: Any, path: str, default: Any = None) -> Any:
    """
    Resolve a dotted path such as "agencies.0.name" against nested
    dicts/lists. Keys containing spaces ("Award ID") work as-is.
    """
    current = data
    for part in path.split("."):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            return default
        if current is _MISSING or current is None:
            return default
    return current


def first_value(data: Any, paths: List[str]) -> Any:
    """First non-empty value among fallback paths."""
    for path in paths:
        value = get_path(data, path)
        if value not in (None, "", [], {}):
            return value
    return None


def set_path(target: Dict[str, Any], path: str, value: Any) -> None:
    """
    Assign into a nested structure, creating dicts (or lists when the
    next segment is numeric) along the way.
    """
    parts = path.split(".")
    current: Any = target
    for index, part in enumerate(parts[:-1]):
        next_is_index = parts[index + 1].isdigit()
        if isinstance(current, list):
            slot = int(part)
            while len(current) <= slot:
                current.append([] if next_is_index else {})
            current = current[slot]
        else:
            if part not in current or not isinstance(current[part], (dict, list)):
                current[part] = [] if next_is_index else {}
            current = current[part]

    last = parts[-1]
    if isinstance(current, list):
        slot = int(last)
        while len(current) <= slot:
            current.append(None)
        current[slot] = value
    else:
        current[last] = value


def render_template(template: str, data: Any) -> Optional[str]:
    """
    Fill "{path}" placeholders from the record. Returns None when any
    placeholder resolves to nothing, so partial identifiers never leak out.
    """
    missing = False

    def _replace(match):
        nonlocal missing
        value = get_path(data, match.group(1))
        if value in (None, ""):
            missing = True
            return ""
        return str(value).strip()

    rendered = _TEMPLATE_RE.sub(_replace, template)
    return None if missing else rendered


# ============================================================================
# Rules
# ============================================================================

class AuthConfig(BaseModel):
    scheme: str = "none"
    # Query parameter or header name carrying the credential
    param: Optional[str] = None
    location: str = "query"
    # Settings attribute that holds the credential; falls back to `value`
    settings_key: Optional[str] = None
    value: Optional[str] = None

    @validator("scheme")
    def validate_scheme(cls, v):
        if v not in AUTH_SCHEMES:
            raise ValueError(f"auth scheme must be one of {AUTH_SCHEMES}")
        return v

    @validator("location")
    def validate_location(cls, v):
        if v not in ("query", "header"):
            raise ValueError("auth location must be 'query' or 'header'")
        return v


class PaginationConfig(BaseModel):
    """
    offset: offset_param/limit_param carry the cursor and page size
    page:   page_param (1-based) and limit_param
    sql:    LIMIT/OFFSET rendered into sql_template, sent as sql_param
    """
    style: str = "offset"
    page_size: int = Field(100, ge=1)
    offset_param: Optional[str] = "offset"
    page_param: Optional[str] = "page"
    limit_param: Optional[str] = "limit"
    sql_param: str = "sql"
    sql_template: Optional[str] = None

    @validator("style")
    def validate_style(cls, v):
        if v not in PAGINATION_STYLES:
            raise ValueError(f"pagination style must be one of {PAGINATION_STYLES}")
        return v


class PartitionConfig(BaseModel):
    """
    Independent slices of a source, each with its own checkpoint key.
    Values come from `values`, or from the last `years_back` calendar years.
    """
    values: List[str] = Field(default_factory=list)
    years_back: Optional[int] = Field(None, ge=1)
    param: Optional[str] = None
    as_int_list: bool = False


class DateWindowConfig(BaseModel):
    """Rolling [today - days_back, today] window sent with every request."""
    from_param: str
    to_param: str
    days_back: int = Field(30, ge=1)
    date_format: str = "%Y-%m-%d"


class AmountRule(BaseModel):
    """
    field:       parse_amount over fallback paths
    json_budget: sum the yearly amounts of an embedded budget JSON block
    text_money:  largest "$X million"-style mention in free text
    range:       "Between $10,000 and $50,000" split into the first two targets
    """
    kind: str = "field"
    paths: List[str]
    targets: List[str] = Field(default_factory=lambda: ["total_funding_available"])

    @validator("kind")
    def validate_kind(cls, v):
        if v not in AMOUNT_KINDS:
            raise ValueError(f"amount rule kind must be one of {AMOUNT_KINDS}")
        return v


class CategoryRule(BaseModel):
    path: str
    category_type: CategoryType = CategoryType.CUSTOM
    # Split plain-string values, e.g. "Education; Health"
    split: Optional[str] = None
    name_key: Optional[str] = None
    code_key: Optional[str] = None
    # e.g. "CFDA {code}" when the item is a bare code
    name_template: Optional[str] = None
    min_score: Optional[float] = None
    score_key: str = "score"
    limit: Optional[int] = None


class KeywordRule(BaseModel):
    paths: List[str] = Field(default_factory=list)
    name_key: Optional[str] = None
    # Extract from title + description when the source gives none
    extract_fallback: bool = True
    extra: List[str] = Field(default_factory=list)


class EligibilityRule(BaseModel):
    path: Optional[str] = None
    value_key: Optional[str] = None
    text_paths: List[str] = Field(default_factory=list)
    static: List[str] = Field(default_factory=list)


class LocationRule(BaseModel):
    location_type: LocationType = LocationType.ELIGIBLE
    list_path: Optional[str] = None
    country_path: Optional[str] = None
    country: Optional[str] = None
    region_path: Optional[str] = None
    region: Optional[str] = None
    city_path: Optional[str] = None


class ContactRule(BaseModel):
    contact_type: str = "general"
    list_path: Optional[str] = None
    name_template: Optional[str] = None
    name_paths: List[str] = Field(default_factory=list)
    email_path: Optional[str] = None
    phone_path: Optional[str] = None
    title: Optional[str] = None


class InclusionRule(BaseModel):
    """Record is a grant only if every configured condition holds."""
    required_paths: List[str] = Field(default_factory=list)
    field_in: Dict[str, List[str]] = Field(default_factory=dict)
    text_paths: List[str] = Field(default_factory=list)
    text_contains_any: List[str] = Field(default_factory=list)


# ============================================================================
# Source configuration
# ============================================================================

class SourceConfig(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str
    endpoint: str
    method: str = "GET"
    auth: AuthConfig = Field(default_factory=AuthConfig)
    headers: Dict[str, str] = Field(default_factory=dict)
    base_params: Dict[str, Any] = Field(default_factory=dict)

    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    partitions: Optional[PartitionConfig] = None
    date_window: Optional[DateWindowConfig] = None

    records_path: Optional[str] = None

    native_id_paths: List[str] = Field(default_factory=list)
    native_id_templates: List[str] = Field(default_factory=list)
    title_template: Optional[str] = None
    source_url_template: Optional[str] = None

    # canonical field -> fallback paths
    field_map: Dict[str, List[str]] = Field(default_factory=dict)
    # canonical field -> constant used when the mapped value is empty
    constants: Dict[str, Any] = Field(default_factory=dict)
    status_map: Dict[str, str] = Field(default_factory=dict)
    status_from_dates: bool = False

    amount_rules: List[AmountRule] = Field(default_factory=list)
    category_rules: List[CategoryRule] = Field(default_factory=list)
    keyword_rule: KeywordRule = Field(default_factory=KeywordRule)
    eligibility_rule: Optional[EligibilityRule] = None
    location_rules: List[LocationRule] = Field(default_factory=list)
    contact_rules: List[ContactRule] = Field(default_factory=list)
    include_rule: Optional[InclusionRule] = None

    default_cron: str = "0 3 * * *"
    priority: int = Field(5, ge=1, le=10)
    requests_per_window: Optional[int] = Field(None, ge=1)

    @validator("method")
    def validate_method(cls, v):
        v = v.upper()
        if v not in ("GET", "POST"):
            raise ValueError("method must be GET or POST")
        return v

    @property
    def page_size(self) -> int:
        return self.pagination.page_size
