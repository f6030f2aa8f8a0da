"""
Discount input normalization.

Responsibilities:
- field-by-field coercion of raw admin input
- sign conventions (amounts and percent stored as reductions)
- percent vs fraction disambiguation
- date coercion
- association id sets

Normalization is defined on raw, user-facing input only. Feeding a stored
rule's values back in is not idempotent: stored amounts are negative and are
rejected as invalid_amount.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone, tzinfo
from decimal import Decimal, DecimalException, InvalidOperation, getcontext
from typing import Any, Callable, Dict, List, Mapping, NamedTuple, Optional, Tuple

from pydantic import TypeAdapter, ValidationError

from . import rules
from .models import DiscountRule, NormalizationResult, ValidationErrorKind, ValidationIssue


class _Missing:
    """Marker for a key that is not present in the raw input at all."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


class NumberOutOfRange(ValueError):
    """A number too large or too small to store."""


_DATETIME = TypeAdapter(datetime)


class FieldSpec(NamedTuple):
    raw_key: str
    target: str
    convert: Callable[[Any], Any]


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _to_text(value: Any) -> str:
    if _is_blank(value):
        return ""
    if isinstance(value, (str, int, float, Decimal)) and not isinstance(value, bool):
        return str(value).strip()
    raise ValueError("expected text")


def _to_name(value: Any) -> str:
    text = _to_text(value)
    if not text:
        raise ValueError("name is required")
    return text


def _to_optional_text(value: Any) -> Optional[str]:
    return _to_text(value) or None


def _to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if value is None:
        return False
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in rules.TRUE_STRINGS:
            return True
        if lowered in rules.FALSE_STRINGS:
            return False
    raise ValueError("expected a boolean")


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        raise ValueError("expected an integer")
    if isinstance(value, int):
        return value
    number = _to_decimal(value)
    if number != number.to_integral_value():
        raise ValueError("expected an integer")
    return int(number)


def _to_optional_int(value: Any) -> Optional[int]:
    if _is_blank(value):
        return None
    return _to_int(value)


def _to_non_negative_int(value: Any) -> int:
    if _is_blank(value):
        return 0
    number = _to_int(value)
    if number < 0:
        raise ValueError("must not be negative")
    return number


def _to_decimal(value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError("expected a number")
    if isinstance(value, Decimal):
        number = value
    elif isinstance(value, int):
        number = Decimal(value)
    elif isinstance(value, float):
        # go through str so 0.1 stays 0.1
        number = Decimal(str(value))
    elif isinstance(value, str):
        try:
            number = Decimal(value.strip())
        except InvalidOperation:
            raise ValueError("expected a number") from None
    else:
        raise ValueError("expected a number")
    if not number.is_finite():
        raise ValueError("expected a finite number")
    context = getcontext()
    if number and not context.Emin <= number.adjusted() <= context.Emax:
        raise NumberOutOfRange("number out of range")
    return number


def _negate(number: Decimal, divisor: int = 1) -> Decimal:
    """0 - number, optionally divided; arithmetic failures become ValueError."""
    try:
        # subtract from zero so a zero magnitude is stored as 0, not -0
        result = (Decimal("0") - number) / divisor
    except DecimalException:
        raise NumberOutOfRange("number out of range") from None
    if not result.is_finite():
        raise NumberOutOfRange("number out of range")
    return result


def _to_non_negative_decimal(value: Any) -> Decimal:
    if _is_blank(value):
        return Decimal("0")
    number = _to_decimal(value)
    if number < 0:
        raise ValueError("must not be negative")
    return number


# Shared attributes copied straight across, coerced to their declared type.
DIRECT_FIELDS: Tuple[FieldSpec, ...] = (
    FieldSpec("id", "id", _to_optional_int),
    FieldSpec("name", "name", _to_name),
    FieldSpec("description", "description", _to_text),
    FieldSpec("enabled", "enabled", _to_bool),
    FieldSpec("stopProcessing", "stop_processing", _to_bool),
    FieldSpec("sortOrder", "sort_order", _to_optional_int),
    FieldSpec("purchaseTotal", "purchase_total", _to_non_negative_decimal),
    FieldSpec("purchaseQty", "purchase_qty", _to_non_negative_int),
    FieldSpec("maxPurchaseQty", "max_purchase_qty", _to_non_negative_int),
    FieldSpec("freeShipping", "free_shipping", _to_bool),
    FieldSpec("excludeOnSale", "exclude_on_sale", _to_bool),
    FieldSpec("code", "code", _to_optional_text),
    FieldSpec("perUserLimit", "per_user_limit", _to_non_negative_int),
    FieldSpec("perEmailLimit", "per_email_limit", _to_non_negative_int),
    FieldSpec("totalUseLimit", "total_use_limit", _to_non_negative_int),
)

AMOUNT_TARGETS = {
    "baseDiscount": "base_discount",
    "perItemDiscount": "per_item_discount",
}

DATE_TARGETS = {
    "dateFrom": "date_from",
    "dateTo": "date_to",
}

ASSOCIATION_TARGETS = (
    (rules.PRODUCTS_KEYS, "product_ids"),
    (rules.PRODUCT_TYPES_KEYS, "product_type_ids"),
    (rules.GROUPS_KEYS, "user_group_ids"),
)


def _issue(field: str, kind: ValidationErrorKind, value: Any, message: str) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue=kind,
        value=None if value is None or value is MISSING else str(value),
        message=message,
    )


def normalize_amount(value: Any) -> Decimal:
    """
    Turn a user-entered discount magnitude into its stored (negative) form.

    Absent or empty input means no discount. Raises ValueError for anything
    that is not a finite, non-negative number.
    """
    if value is MISSING or _is_blank(value):
        return Decimal("0")
    magnitude = _to_decimal(value)
    if magnitude < 0:
        raise ValueError("discount amount must not be negative")
    return _negate(magnitude)


def normalize_percent(value: Any, percent_symbol: str = rules.DEFAULT_PERCENT_SYMBOL) -> Decimal:
    """
    Turn user input like "10%", 10 or 0.1 into a stored fraction (-0.1).

    Rules:
    - Input containing the percent symbol is a percentage.
    - Input >= 1 is a percentage too, so 1 means 1% (not 100%). Stored rules
      depend on this, keep it.
    - Anything else is already a fraction and is only negated.

    Raises ValueError for non-numeric input and NumberOutOfRange for numbers
    too large to store. The caller checks the [-1, 0] range.
    """
    if value is MISSING or _is_blank(value):
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError("expected a number")

    text = value if isinstance(value, str) else str(_to_decimal(value))
    has_symbol = bool(percent_symbol) and percent_symbol in text
    if has_symbol:
        text = text.replace(percent_symbol, "")
    amount = _to_decimal(text)

    if has_symbol or amount >= 1:
        return _negate(amount, 100)
    return _negate(amount)


def parse_date(value: Any, tz: tzinfo = timezone.utc) -> Optional[datetime]:
    """
    Parse a date bound. Empty input means no bound (None).

    Accepts datetimes, dates, unix timestamps, ISO-8601 strings, the formats in
    rules.DATE_INPUT_FORMATS and {"date": ..., "time": ...} widget mappings.
    Naive results are placed in ``tz``. Raises ValueError otherwise.
    """
    if value is MISSING or _is_blank(value):
        return None

    if isinstance(value, Mapping):
        date_part = _to_text(value.get("date"))
        time_part = _to_text(value.get("time"))
        if not date_part:
            return None
        value = f"{date_part} {time_part}".strip()

    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime.combine(value, time.min)
    elif isinstance(value, bool):
        raise ValueError("expected a date")
    else:
        parsed = _parse_date_value(value)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _parse_date_value(value: Any) -> datetime:
    try:
        return _DATETIME.validate_python(value)
    except ValidationError:
        pass

    if isinstance(value, str):
        text = value.strip()
        for fmt in rules.DATE_INPUT_FORMATS:
            try:
                return datetime.strptime(text, fmt)
            except ValueError:
                continue
    raise ValueError(f"unrecognised date: {value!r}")


def parse_id_set(value: Any) -> frozenset:
    """
    Collect association ids. Absent or empty input is an empty set.

    Accepts lists, a single id, or a "1|2|3" / "1,2,3" string.
    Raises ValueError on an id that is not an integer.
    """
    if value is MISSING or _is_blank(value):
        return frozenset()

    if isinstance(value, (list, tuple, set, frozenset)):
        items: List[Any] = list(value)
    elif isinstance(value, str):
        text = value
        for sep in rules.ID_SEPARATORS[1:]:
            text = text.replace(sep, rules.ID_SEPARATORS[0])
        items = text.split(rules.ID_SEPARATORS[0])
    else:
        items = [value]

    return frozenset(_to_int(item) for item in items if not _is_blank(item))


def _lookup(raw: Mapping[str, Any], keys: Tuple[str, ...]) -> Tuple[str, Any]:
    for key in keys:
        if key in raw:
            return key, raw[key]
    return keys[0], MISSING


def normalize_discount_input(
    raw: Mapping[str, Any],
    *,
    percent_symbol: str = rules.DEFAULT_PERCENT_SYMBOL,
    tz: tzinfo = timezone.utc,
) -> NormalizationResult:
    """
    Build a canonical DiscountRule from raw admin input.

    Every field is checked; problems are collected and returned together
    instead of stopping at the first one. The rule is set only when there are
    no errors.
    """
    values: Dict[str, Any] = {}
    errors: List[ValidationIssue] = []

    for spec in DIRECT_FIELDS:
        raw_value = raw.get(spec.raw_key, MISSING)
        if raw_value is MISSING:
            continue
        try:
            values[spec.target] = spec.convert(raw_value)
        except ValueError as e:
            errors.append(_issue(spec.raw_key, ValidationErrorKind.INVALID_FIELD, raw_value, str(e)))

    if "name" not in values and not any(e.field == "name" for e in errors):
        errors.append(_issue("name", ValidationErrorKind.INVALID_FIELD, None, "name is required"))

    for raw_key, target in AMOUNT_TARGETS.items():
        raw_value = raw.get(raw_key, MISSING)
        try:
            values[target] = normalize_amount(raw_value)
        except ValueError as e:
            errors.append(_issue(raw_key, ValidationErrorKind.INVALID_AMOUNT, raw_value, str(e)))

    for raw_key, target in DATE_TARGETS.items():
        raw_value = raw.get(raw_key, MISSING)
        try:
            values[target] = parse_date(raw_value, tz)
        except ValueError as e:
            errors.append(_issue(raw_key, ValidationErrorKind.INVALID_DATE, raw_value, str(e)))

    date_from, date_to = values.get("date_from"), values.get("date_to")
    if date_from and date_to and date_from > date_to:
        errors.append(_issue(
            "dateTo",
            ValidationErrorKind.INVALID_DATE,
            raw.get("dateTo"),
            "dateTo must not be before dateFrom",
        ))

    raw_percent = raw.get(rules.PERCENT_FIELD, MISSING)
    try:
        percent = normalize_percent(raw_percent, percent_symbol)
    except NumberOutOfRange as e:
        errors.append(_issue(rules.PERCENT_FIELD, ValidationErrorKind.PERCENT_OUT_OF_RANGE, raw_percent, str(e)))
    except ValueError as e:
        errors.append(_issue(rules.PERCENT_FIELD, ValidationErrorKind.INVALID_FIELD, raw_percent, str(e)))
    else:
        if -1 <= percent <= 0:
            values["percent_discount"] = percent
        else:
            errors.append(_issue(
                rules.PERCENT_FIELD,
                ValidationErrorKind.PERCENT_OUT_OF_RANGE,
                raw_percent,
                "percent discount must be between 0% and 100%",
            ))

    for keys, target in ASSOCIATION_TARGETS:
        raw_key, raw_value = _lookup(raw, keys)
        try:
            values[target] = parse_id_set(raw_value)
        except ValueError as e:
            errors.append(_issue(raw_key, ValidationErrorKind.INVALID_FIELD, raw_value, str(e)))

    if errors:
        return NormalizationResult(errors=errors)
    return NormalizationResult(rule=DiscountRule(**values))
