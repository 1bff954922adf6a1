"""
Source adapter contract and the config-driven adapter used for every registry.

This module provides:
- SourceAdapter: the two-call contract the sync engine depends on
- GenericSourceAdapter: one adapter parameterized by a SourceConfig
- Exponential backoff retry for transient upstream failures
- Classification of HTTP failures into retryable / non-retryable errors
"""

import asyncio
import copy
import re
from abc import ABC, abstractmethod
from datetime import date, timedelta
from typing import Any, Dict, List, Optional, Tuple

import httpx
from pydantic import ValidationError

from core.config import settings
from core.exceptions import (
    AuthenticationError,
    ConfigurationError,
    RecordTransformError,
    ResourceNotFoundError,
    ResponseFormatError,
    TransientFetchError,
    UpstreamRejectedError,
)
from ingestion.sources.catalog import get_source_config
from ingestion.sources.config import (
    SourceConfig, CategoryRule, get_path, first_value, set_path, render_template,
)
from ingestion.transformers.normalizer import GrantNormalizer
from models.base import GrantStatus, KeywordSource
from schemas.normalized import (
    NormalizedGrant,
    NormalizedGrantData,
    GrantDetailsCreate,
    CategoryCreate,
    KeywordCreate,
    EligibilityCreate,
    LocationCreate,
    ContactCreate,
    PageParams,
)
import logging

logger = logging.getLogger(__name__)

DATE_FIELDS = ("posted_date", "application_deadline", "start_date", "end_date", "last_updated_date")
AMOUNT_FIELDS = ("funding_amount_min", "funding_amount_max", "total_funding_available")
TEXT_FIELDS = ("funding_organization_name", "funding_organization_code", "grant_type", "funding_instrument")
DETAIL_FIELDS = ("description", "abstract", "purpose", "additional_information")

MAX_API_KEYWORDS = 50
_KEYWORD_SPLIT_RE = re.compile(r"[;<>\n]")
_EMPTY = (None, "", [], {})


class SourceAdapter(ABC):
    """
    Contract between the sync engine and one upstream registry.

    fetch() returns one page of raw records (an empty list means the cursor
    is exhausted); transform() turns one raw record into a normalized bundle
    or None when the record is not a grant. Adapters never touch the store.
    """

    source_id: str
    page_size: int
    pagination_style: str = "offset"
    priority: int = 5
    requests_per_window: Optional[int] = None

    @abstractmethod
    async def fetch(self, params: PageParams) -> List[Dict[str, Any]]:
        pass

    @abstractmethod
    def transform(self, raw: Dict[str, Any]) -> Optional[NormalizedGrantData]:
        pass

    def partitions(self, filters: Dict[str, Any]) -> List[Optional[str]]:
        """Independent slices paged one after another; [None] when unpartitioned."""
        return [None]


class GenericSourceAdapter(SourceAdapter):
    """
    Drive any registry described by a SourceConfig.

    Attributes:
        max_retries: Attempts per request before giving up (default: HTTP_MAX_RETRIES)
        retry_delay: Initial backoff delay in seconds (default: HTTP_RETRY_DELAY_SECONDS)
        timeout: Request timeout in seconds (default: HTTP_TIMEOUT_SECONDS)
    """

    def __init__(
        self,
        config: SourceConfig,
        client: Optional[httpx.AsyncClient] = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        self.config = config
        self.source_id = config.name
        self.page_size = config.page_size
        self.pagination_style = config.pagination.style
        self.priority = config.priority
        self.requests_per_window = config.requests_per_window

        self._client = client
        self.max_retries = max_retries if max_retries is not None else settings.HTTP_MAX_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.HTTP_RETRY_DELAY_SECONDS
        self.timeout = timeout if timeout is not None else settings.HTTP_TIMEOUT_SECONDS

    def __repr__(self) -> str:
        return f"<GenericSourceAdapter(source={self.source_id}, pagination={self.pagination_style})>"

    # ========================================================================
    # Fetch
    # ========================================================================

    def partitions(self, filters: Dict[str, Any]) -> List[Optional[str]]:
        partition_config = self.config.partitions
        if partition_config is None:
            return [None]
        if partition_config.values:
            return list(partition_config.values)
        if partition_config.years_back:
            current_year = date.today().year
            return [str(year) for year in range(current_year, current_year - partition_config.years_back, -1)]
        return [None]

    def _credential(self) -> Optional[str]:
        auth = self.config.auth
        value = None
        if auth.settings_key:
            value = getattr(settings, auth.settings_key, None)
        return value or auth.value

    def build_request(
        self,
        params: PageParams
    ) -> Tuple[str, Dict[str, Any], Optional[Dict[str, Any]], Dict[str, str]]:
        """
        Render one page request.

        Returns:
            (url, query_params, json_body, headers); json_body is None for GET
        """
        config = self.config
        pagination = config.pagination

        url = config.endpoint
        if "{partition}" in url:
            if not params.partition:
                raise ConfigurationError(
                    f"Endpoint for {self.source_id} requires a partition",
                    context={"source": self.source_id, "endpoint": url}
                )
            url = url.replace("{partition}", params.partition)

        payload: Dict[str, Any] = copy.deepcopy(config.base_params)
        query: Dict[str, Any] = {}
        headers: Dict[str, str] = {"Accept": "application/json", **config.headers}

        if pagination.style == "offset":
            set_path(payload, pagination.offset_param, params.offset)
            set_path(payload, pagination.limit_param, self.page_size)
        elif pagination.style == "page":
            set_path(payload, pagination.page_param, params.page)
            set_path(payload, pagination.limit_param, self.page_size)
        else:
            if not pagination.sql_template:
                raise ConfigurationError(
                    f"SQL pagination for {self.source_id} requires sql_template",
                    context={"source": self.source_id}
                )
            payload[pagination.sql_param] = pagination.sql_template.format(
                limit=self.page_size, offset=params.offset
            )

        partition_config = config.partitions
        if params.partition and partition_config and partition_config.param:
            value: Any = params.partition
            if partition_config.as_int_list:
                value = [int(params.partition)]
            set_path(payload, partition_config.param, value)

        window = config.date_window
        if window:
            today = date.today()
            set_path(payload, window.from_param, (today - timedelta(days=window.days_back)).strftime(window.date_format))
            set_path(payload, window.to_param, today.strftime(window.date_format))

        for key, value in params.filters.items():
            set_path(payload, key, value)

        auth = config.auth
        if auth.scheme != "none":
            credential = self._credential()
            if not credential:
                raise ConfigurationError(
                    f"Missing credential for {self.source_id}",
                    context={"source": self.source_id, "settings_key": auth.settings_key}
                )
            if auth.scheme == "bearer":
                headers["Authorization"] = f"Bearer {credential}"
            elif auth.location == "header":
                headers[auth.param] = credential
            else:
                query[auth.param] = credential

        if config.method == "POST":
            headers.setdefault("Content-Type", "application/json")
            return url, query, payload, headers
        return url, {**payload, **query}, None, headers

    async def _make_request_with_retry(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Dict[str, str],
        params: Dict[str, Any],
        json_body: Optional[Dict[str, Any]] = None
    ) -> httpx.Response:
        """
        Make HTTP request with retry logic and exponential backoff.

        Raises:
            AuthenticationError: HTTP 401/403
            ResourceNotFoundError: HTTP 404
            UpstreamRejectedError: Any other 4xx
            TransientFetchError: 429, 5xx, timeout or network error after max retries
        """
        context = {"source": self.source_id, "api_url": url}

        for attempt in range(self.max_retries):
            delay = self.retry_delay * (2 ** attempt)
            is_last = attempt >= self.max_retries - 1
            try:
                logger.debug(f"Request attempt {attempt + 1}/{self.max_retries} to {url}")

                response = await client.request(
                    self.config.method,
                    url,
                    headers=headers,
                    params=params,
                    json=json_body,
                    timeout=self.timeout
                )
            except httpx.TimeoutException as e:
                if is_last:
                    raise TransientFetchError(
                        f"Request timeout after {self.max_retries} retries",
                        context={**context, "timeout": self.timeout, "retry_count": attempt + 1},
                        original_exception=e
                    )
                logger.warning(f"Request timeout for {self.source_id}. Retrying in {delay} seconds")
                await asyncio.sleep(delay)
                continue
            except httpx.TransportError as e:
                if is_last:
                    raise TransientFetchError(
                        f"Network error after {self.max_retries} retries",
                        context={**context, "retry_count": attempt + 1},
                        original_exception=e
                    )
                logger.warning(f"Network error for {self.source_id}. Retrying in {delay} seconds")
                await asyncio.sleep(delay)
                continue

            status = response.status_code

            if status in (401, 403):
                raise AuthenticationError(
                    f"Authentication failed for {url}",
                    context={**context, "status_code": status}
                )

            if status == 404:
                raise ResourceNotFoundError(
                    f"Resource not found: {url}",
                    context={**context, "status_code": 404}
                )

            if status == 429 or status >= 500:
                if is_last:
                    raise TransientFetchError(
                        f"Upstream returned {status} after {self.max_retries} retries",
                        context={
                            **context,
                            "status_code": status,
                            "retry_count": attempt + 1,
                            "response_body": response.text[:500]
                        }
                    )
                if status == 429:
                    delay = _retry_after(response, delay)
                    logger.warning(f"Rate limited by {self.source_id}. Retrying after {delay} seconds")
                else:
                    logger.warning(
                        f"Server error {status} from {self.source_id}. "
                        f"Retrying in {delay} seconds (attempt {attempt + 1}/{self.max_retries})"
                    )
                await asyncio.sleep(delay)
                continue

            if status >= 400:
                raise UpstreamRejectedError(
                    f"Upstream rejected request with {status}",
                    context={**context, "status_code": status, "response_body": response.text[:500]}
                )

            return response

        # Only reachable with max_retries < 1
        raise TransientFetchError("No request attempts configured", context=context)

    def extract_records(self, data: Any) -> List[Dict[str, Any]]:
        """Locate the record list inside a decoded response body."""
        if self.config.records_path:
            records = get_path(data, self.config.records_path)
        else:
            records = data
        if records is None:
            return []
        # Some registries key records by id instead of returning a list
        if isinstance(records, dict):
            return [value for value in records.values() if isinstance(value, dict)]
        if not isinstance(records, list):
            raise ResponseFormatError(
                f"Expected a record list at {self.config.records_path or '<root>'}",
                context={"source": self.source_id, "found_type": type(records).__name__}
            )
        return records

    async def fetch(self, params: PageParams) -> List[Dict[str, Any]]:
        url, query, json_body, headers = self.build_request(params)

        if self._client is not None:
            response = await self._make_request_with_retry(self._client, url, headers, query, json_body)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await self._make_request_with_retry(client, url, headers, query, json_body)

        try:
            data = response.json()
        except ValueError as e:
            raise ResponseFormatError(
                "Failed to parse JSON response",
                context={
                    "source": self.source_id,
                    "api_url": url,
                    "offset": params.offset,
                    "page": params.page,
                    "response_body": response.text[:500]
                },
                original_exception=e
            )

        records = self.extract_records(data)
        if params.partition:
            records = [
                {**record, "_partition": params.partition} if isinstance(record, dict) else record
                for record in records
            ]

        logger.debug(
            f"Fetched {len(records)} records from {self.source_id} "
            f"(offset={params.offset}, page={params.page}, partition={params.partition})"
        )
        return records

    # ========================================================================
    # Transform
    # ========================================================================

    def is_included(self, raw: Dict[str, Any]) -> bool:
        rule = self.config.include_rule
        if rule is None:
            return True

        for path in rule.required_paths:
            if get_path(raw, path) in _EMPTY:
                return False

        for path, allowed in rule.field_in.items():
            value = get_path(raw, path)
            if value is None or str(value).strip().lower() not in {a.lower() for a in allowed}:
                return False

        if rule.text_contains_any:
            text = " ".join(_text(get_path(raw, path)) or "" for path in rule.text_paths).lower()
            if not any(term.lower() in text for term in rule.text_contains_any):
                return False

        return True

    def native_id(self, raw: Dict[str, Any]) -> Optional[str]:
        value = first_value(raw, self.config.native_id_paths)
        if value not in _EMPTY:
            return str(value).strip()[:255] or None
        for template in self.config.native_id_templates:
            rendered = render_template(template, raw)
            if rendered:
                return rendered[:255]
        return None

    def transform(self, raw: Dict[str, Any]) -> Optional[NormalizedGrantData]:
        if not isinstance(raw, dict):
            raise RecordTransformError(
                "Raw record is not an object",
                context={"source": self.source_id, "found_type": type(raw).__name__}
            )

        if not self.is_included(raw):
            return None

        native_id = self.native_id(raw)
        if not native_id:
            raise RecordTransformError(
                "Record has no native identifier",
                context={"source": self.source_id, "id_paths": self.config.native_id_paths}
            )

        try:
            values = self._mapped_values(raw)
            grant = self._build_grant(raw, native_id, values)
            description = values.get("description")
            bundle = NormalizedGrantData(
                grant=grant,
                details=self._build_details(values),
                categories=self._build_categories(raw),
                keywords=self._build_keywords(raw, grant.title, description),
                eligibility=self._build_eligibility(raw),
                locations=self._build_locations(raw),
                contacts=self._build_contacts(raw),
            )
        except ValidationError as e:
            raise RecordTransformError(
                f"Validation failed for {self.source_id} record {native_id}",
                context={
                    "source": self.source_id,
                    "source_native_id": native_id,
                    "field_errors": [
                        f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
                        for error in e.errors()
                    ]
                },
                original_exception=e
            )

        return bundle

    def _mapped_values(self, raw: Dict[str, Any]) -> Dict[str, Any]:
        """Field map lookups, then template overrides, then constants for whatever is still empty."""
        config = self.config
        values: Dict[str, Any] = {
            field: first_value(raw, paths) for field, paths in config.field_map.items()
        }

        if config.title_template:
            rendered = render_template(config.title_template, raw)
            if rendered:
                values["title"] = rendered

        if values.get("source_url") in _EMPTY and config.source_url_template:
            values["source_url"] = render_template(config.source_url_template, raw)

        # Status constants apply only after date-derived status had its chance
        values["_mapped_status"] = values.get("status")
        for field, constant in config.constants.items():
            if values.get(field) in _EMPTY:
                values[field] = constant

        return values

    def _resolve_status(self, values: Dict[str, Any], dates: Dict[str, Any]) -> GrantStatus:
        raw_status = values.get("_mapped_status")
        if raw_status in _EMPTY and self.config.status_from_dates:
            derived = _status_from_dates(dates)
            if derived is not None:
                return derived
        if raw_status in _EMPTY:
            raw_status = values.get("status")
        raw_status = _scalar(raw_status)
        if not raw_status:
            return GrantStatus.ACTIVE
        key = str(raw_status).strip().lower()
        return GrantNormalizer.normalize_status(self.config.status_map.get(key, raw_status))

    def _build_grant(self, raw: Dict[str, Any], native_id: str, values: Dict[str, Any]) -> NormalizedGrant:
        dates = {field: GrantNormalizer.parse_date(values.get(field)) for field in DATE_FIELDS}

        amounts = {field: GrantNormalizer.parse_amount(values.get(field)) for field in AMOUNT_FIELDS}
        for rule in self.config.amount_rules:
            _apply_amount_rule(raw, rule.kind, rule.paths, rule.targets, amounts)

        title = _text(values.get("title"))
        description = _text(values.get("description"))

        activity_code = _text(values.get("activity_code"))
        if not activity_code:
            activity_code = GrantNormalizer.extract_activity_code(" ".join(filter(None, [title, description])))

        return NormalizedGrant(
            source_id=self.source_id,
            source_native_id=native_id,
            title=title or "",
            status=self._resolve_status(values, dates),
            currency=GrantNormalizer.normalize_currency(values.get("currency")),
            expected_awards_count=GrantNormalizer.parse_count(values.get("expected_awards_count")),
            source_url=(_text(values.get("source_url")) or "")[:2048] or None,
            activity_code=activity_code[:20] if activity_code else None,
            raw_data=raw,
            **{field: _text(values.get(field)) for field in TEXT_FIELDS},
            **amounts,
            **dates,
        )

    def _build_details(self, values: Dict[str, Any]) -> Optional[GrantDetailsCreate]:
        details = GrantDetailsCreate(**{field: _text(values.get(field)) for field in DETAIL_FIELDS})
        return None if details.is_empty() else details

    def _build_categories(self, raw: Dict[str, Any]) -> List[CategoryCreate]:
        categories: List[CategoryCreate] = []
        seen = set()
        for rule in self.config.category_rules:
            added = 0
            for name, code in _category_items(raw, rule):
                key = (rule.category_type, code, name.lower())
                if key in seen:
                    continue
                seen.add(key)
                categories.append(CategoryCreate(
                    category_type=rule.category_type,
                    category_code=code[:100] if code else None,
                    category_name=name[:500],
                ))
                added += 1
                if rule.limit and added >= rule.limit:
                    break
        return categories

    def _build_keywords(
        self,
        raw: Dict[str, Any],
        title: Optional[str],
        description: Any
    ) -> List[KeywordCreate]:
        rule = self.config.keyword_rule
        words: List[str] = []
        for path in rule.paths:
            for item in _as_list(get_path(raw, path)):
                if isinstance(item, dict):
                    item = item.get(rule.name_key) if rule.name_key else _first_named(item)
                if item in _EMPTY:
                    continue
                words.extend(part.strip() for part in _KEYWORD_SPLIT_RE.split(str(item)))

        keywords: List[KeywordCreate] = []
        seen = set()
        for word in words + list(rule.extra):
            if not word or word.lower() in seen:
                continue
            seen.add(word.lower())
            keywords.append(KeywordCreate(keyword=word[:255], keyword_source=KeywordSource.API_PROVIDED))
            if len(keywords) >= MAX_API_KEYWORDS:
                break

        if not words and rule.extract_fallback:
            text = " ".join(filter(None, [title, _text(description)]))
            for word in GrantNormalizer.extract_keywords(text):
                if word in seen:
                    continue
                seen.add(word)
                keywords.append(KeywordCreate(keyword=word, keyword_source=KeywordSource.EXTRACTED))

        return keywords

    def _build_eligibility(self, raw: Dict[str, Any]) -> List[EligibilityCreate]:
        rule = self.config.eligibility_rule
        if rule is None:
            return []

        entries: List[EligibilityCreate] = []
        if rule.path:
            for item in _as_list(get_path(raw, rule.path)):
                if isinstance(item, dict):
                    value = item.get(rule.value_key) if rule.value_key else _first_named(item)
                    description = _text(item.get("description"))
                else:
                    value, description = item, None
                value = _text(value)
                if value:
                    entries.append(EligibilityCreate(eligibility_value=value[:500], description=description))

        text = " ".join(filter(None, (_text(get_path(raw, path)) for path in rule.text_paths)))
        entries.extend(GrantNormalizer.parse_eligibility(text))
        entries.extend(EligibilityCreate(eligibility_value=value) for value in rule.static)

        unique: Dict[Tuple[str, str], EligibilityCreate] = {}
        for entry in entries:
            unique.setdefault((entry.eligibility_type, entry.eligibility_value.lower()), entry)
        return list(unique.values())

    def _build_locations(self, raw: Dict[str, Any]) -> List[LocationCreate]:
        locations: List[LocationCreate] = []
        seen = set()
        for rule in self.config.location_rules:
            items = _as_list(get_path(raw, rule.list_path)) if rule.list_path else [raw]
            for item in items:
                if isinstance(item, dict):
                    country = _scalar(get_path(item, rule.country_path)) if rule.country_path else None
                    region = _scalar(get_path(item, rule.region_path)) if rule.region_path else None
                    city = _scalar(get_path(item, rule.city_path)) if rule.city_path else None
                else:
                    country, region, city = _scalar(item), None, None

                country = country or rule.country
                region = region or rule.region
                # Registries that list country names instead of codes
                if country and len(country) > 3:
                    region = region or country
                    country = None

                if not any([country, region, city]):
                    continue
                key = (rule.location_type, country, region, city)
                if key in seen:
                    continue
                seen.add(key)
                locations.append(LocationCreate(
                    location_type=rule.location_type,
                    country_code=country.upper() if country else None,
                    region=region[:255] if region else None,
                    city=city[:255] if city else None,
                ))
        return locations

    def _build_contacts(self, raw: Dict[str, Any]) -> List[ContactCreate]:
        contacts: List[ContactCreate] = []
        for rule in self.config.contact_rules:
            items = _as_list(get_path(raw, rule.list_path)) if rule.list_path else [raw]
            for item in items:
                if not isinstance(item, dict):
                    continue
                name = render_template(rule.name_template, item) if rule.name_template else None
                name = name or _text(first_value(item, rule.name_paths))
                email = _scalar(get_path(item, rule.email_path)) if rule.email_path else None
                phone = _scalar(get_path(item, rule.phone_path)) if rule.phone_path else None
                if not any([name, email, phone]):
                    continue
                contacts.append(ContactCreate(
                    contact_type=rule.contact_type,
                    name=name[:255] if name else None,
                    email=email[:255] if email else None,
                    phone=phone[:50] if phone else None,
                    title=rule.title,
                ))
        return contacts


# ============================================================================
# Helpers
# ============================================================================

def _retry_after(response: httpx.Response, default: float) -> float:
    try:
        return float(response.headers.get("Retry-After", default))
    except (TypeError, ValueError):
        return default


def _as_list(value: Any) -> List[Any]:
    if value in _EMPTY:
        return []
    return value if isinstance(value, list) else [value]


def _text(value: Any) -> Optional[str]:
    """Flatten a raw value to stripped text; lists are joined, empties become None."""
    if value in _EMPTY:
        return None
    if isinstance(value, list):
        value = " ".join(str(v) for v in value if v not in _EMPTY)
    elif isinstance(value, dict):
        value = _first_named(value)
    text = str(value).strip() if value is not None else ""
    return text or None


def _scalar(value: Any) -> Optional[str]:
    if isinstance(value, list):
        value = value[0] if value else None
    return _text(value)


def _first_named(item: Dict[str, Any]) -> Any:
    return first_value(item, ["name", "display_name", "text", "description", "value", "label"])


def _status_from_dates(dates: Dict[str, Any]) -> Optional[GrantStatus]:
    today = date.today()
    closes = dates.get("application_deadline") or dates.get("end_date")
    if closes and closes < today:
        return GrantStatus.CLOSED
    posted = dates.get("posted_date")
    if posted and posted > today:
        return GrantStatus.FORECASTED
    return None


def _apply_amount_rule(
    raw: Dict[str, Any],
    kind: str,
    paths: List[str],
    targets: List[str],
    amounts: Dict[str, Optional[float]]
) -> None:
    """Fill still-empty amount targets; earlier rules win."""
    if all(amounts.get(target) is not None for target in targets):
        return

    if kind == "range":
        for path in paths:
            low, high = GrantNormalizer.parse_amount_range(get_path(raw, path))
            if low is None:
                continue
            bounds = [low, high] if len(targets) > 1 else [high]
            for target, value in zip(targets, bounds):
                if amounts.get(target) is None:
                    amounts[target] = value
            return
        return

    value = None
    for path in paths:
        candidate = get_path(raw, path)
        if kind == "field":
            value = GrantNormalizer.parse_amount(candidate)
        elif kind == "json_budget":
            value = GrantNormalizer.sum_budget_json(candidate)
        else:
            value = GrantNormalizer.parse_money_text(_text(candidate))
        if value is not None:
            break

    if value is None:
        return
    for target in targets:
        if amounts.get(target) is None:
            amounts[target] = value


def _category_items(raw: Dict[str, Any], rule: CategoryRule) -> List[Tuple[str, Optional[str]]]:
    """(name, code) pairs for one category rule."""
    items = _as_list(get_path(raw, rule.path))
    if rule.split:
        expanded: List[Any] = []
        for item in items:
            if isinstance(item, str):
                expanded.extend(part.strip() for part in item.split(rule.split))
            else:
                expanded.append(item)
        items = expanded

    pairs: List[Tuple[str, Optional[str]]] = []
    for item in items:
        if isinstance(item, dict):
            if rule.min_score is not None:
                score = GrantNormalizer.parse_amount(item.get(rule.score_key))
                if score is None or score < rule.min_score:
                    continue
            name = _text(item.get(rule.name_key) if rule.name_key else _first_named(item))
            code = _text(item.get(rule.code_key)) if rule.code_key else None
            if not name and code and rule.name_template:
                name = rule.name_template.format(code=code)
        else:
            value = _text(item)
            if not value:
                continue
            if rule.name_template:
                name, code = rule.name_template.format(code=value), value
            else:
                name, code = value, None
        if name:
            pairs.append((name, code))
    return pairs


# ============================================================================
# Registry
# ============================================================================

def build_adapter(name: str, client: Optional[httpx.AsyncClient] = None) -> GenericSourceAdapter:
    """Adapter for a catalog source; ConfigurationError for unknown names."""
    return GenericSourceAdapter(get_source_config(name), client=client)
