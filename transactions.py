"""Product transactions: record model, filters, aggregates and pagination.

Everything here is pure and operates on in-memory sequences; nothing is
mutated in place. The HTTP layer in ``app.py`` turns query parameters into
the arguments these functions take.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


@dataclass(frozen=True)
class Transaction:
	title: str
	description: str
	price: float
	date_of_sale: Optional[dt.datetime]
	sold: bool
	raw: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

	@classmethod
	def from_record(cls, record: Mapping[str, Any]) -> "Transaction":
		return cls(
			title=str(record.get("title") or ""),
			description=str(record.get("description") or ""),
			price=_coerce_price(record.get("price")),
			date_of_sale=parse_datetime(record.get("dateOfSale")),
			sold=bool(record.get("sold")),
			raw=dict(record),
		)

	def to_dict(self) -> Dict[str, Any]:
		return dict(self.raw)


def _coerce_price(value: Any) -> float:
	if isinstance(value, bool):
		return float(value)
	if isinstance(value, (int, float)):
		return value
	try:
		return float(value)
	except (TypeError, ValueError):
		return 0.0


def parse_datetime(value: Any) -> Optional[dt.datetime]:
	"""Parse an ISO-8601 date or date-time; naive values are taken as UTC.

	Returns None for anything that is not a parseable string.
	"""
	if not value or not isinstance(value, str):
		return None
	text = value.strip()
	if text.endswith("Z"):
		text = text[:-1] + "+00:00"
	try:
		parsed = dt.datetime.fromisoformat(text)
	except ValueError:
		return None
	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=dt.timezone.utc)
	return parsed


# -------------------------
# Filters
# -------------------------
class MonthFilter:
	"""Every month (``all()``), one calendar month 1-12 (``specific()``), or
	nothing at all (``unmatched()``) for a month value that names no month.
	"""

	ALL_TOKEN = "all"

	__slots__ = ("month", "unmatched_value")

	def __init__(self, month: Optional[int] = None, *, unmatched_value: Optional[str] = None) -> None:
		if month is not None and not 1 <= month <= 12:
			raise ValueError("month must be between 1 and 12")
		self.month = month
		self.unmatched_value = None if month is not None else unmatched_value

	@classmethod
	def all(cls) -> "MonthFilter":
		return cls(None)

	@classmethod
	def specific(cls, month: int) -> "MonthFilter":
		return cls(int(month))

	@classmethod
	def unmatched(cls, value: Any = "") -> "MonthFilter":
		return cls(None, unmatched_value="" if value is None else str(value))

	@classmethod
	def parse(cls, value: Any) -> "MonthFilter":
		text = str(value).strip()
		if text.lower() == cls.ALL_TOKEN:
			return cls.all()
		try:
			month = int(text)
		except ValueError:
			raise ValueError("month must be between 1 and 12 or 'all'")
		return cls.specific(month)

	@classmethod
	def from_query(cls, value: Optional[str]) -> "MonthFilter":
		"""Like ``parse`` but total: a blank or unusable value selects nothing."""
		if value is None or not value.strip():
			return cls.unmatched(value)
		try:
			return cls.parse(value)
		except ValueError:
			return cls.unmatched(value)

	@property
	def is_all(self) -> bool:
		return self.month is None and self.unmatched_value is None

	@property
	def is_unmatched(self) -> bool:
		return self.unmatched_value is not None

	def matches(self, when: Optional[dt.datetime]) -> bool:
		if self.is_unmatched:
			return False
		if self.month is None:
			return True
		return when is not None and when.month == self.month

	def to_json(self) -> Any:
		if self.is_unmatched:
			return self.unmatched_value
		return self.ALL_TOKEN if self.month is None else self.month

	def _key(self) -> Tuple[Optional[int], Optional[str]]:
		return (self.month, self.unmatched_value)

	def __eq__(self, other: object) -> bool:
		return isinstance(other, MonthFilter) and other._key() == self._key()

	def __hash__(self) -> int:
		return hash(self._key())

	def __repr__(self) -> str:
		if self.is_unmatched:
			return f"MonthFilter.unmatched({self.unmatched_value!r})"
		return f"MonthFilter({self.to_json()!r})"


def by_month(transactions: Iterable[Transaction], month: MonthFilter) -> List[Transaction]:
	if month.is_all:
		return list(transactions)
	return [t for t in transactions if month.matches(t.date_of_sale)]


def by_date_range(
	transactions: Iterable[Transaction],
	start: Optional[str],
	end: Optional[str],
) -> List[Transaction]:
	"""Keep transactions sold within ``[start, end]``, both inclusive.

	Only applied when both bounds are given. An unparseable bound matches
	nothing.
	"""
	if not start or not end:
		return list(transactions)
	lower = parse_datetime(start)
	upper = parse_datetime(end)
	if lower is None or upper is None:
		return []
	return [
		t for t in transactions
		if t.date_of_sale is not None and lower <= t.date_of_sale <= upper
	]


def price_text(price: float) -> str:
	if isinstance(price, float) and price.is_integer():
		return str(int(price))
	return str(price)


def by_search(transactions: Iterable[Transaction], term: Optional[str]) -> List[Transaction]:
	if not term:
		return list(transactions)
	needle = term.lower()
	return [
		t for t in transactions
		if needle in t.title.lower()
		or needle in t.description.lower()
		or needle in price_text(t.price)
	]


def apply_filters(
	transactions: Iterable[Transaction],
	*,
	month: MonthFilter,
	start: Optional[str] = None,
	end: Optional[str] = None,
	search: Optional[str] = None,
) -> List[Transaction]:
	# Date range refines the month, so the order is fixed.
	result = by_month(transactions, month)
	result = by_date_range(result, start, end)
	return by_search(result, search)


# -------------------------
# Aggregates
# -------------------------
@dataclass(frozen=True)
class SalesStatistics:
	total_sale_amount: float
	total_sold_items: int
	total_not_sold_items: int


def statistics(transactions: Iterable[Transaction]) -> SalesStatistics:
	total: float = 0
	sold = 0
	not_sold = 0
	for t in transactions:
		if t.sold:
			total += t.price
			sold += 1
		else:
			not_sold += 1
	return SalesStatistics(
		total_sale_amount=total,
		total_sold_items=sold,
		total_not_sold_items=not_sold,
	)


UNDER_50 = "Under $50"
FROM_50_TO_100 = "$50 - $100"
FROM_101_TO_200 = "$101 - $200"
FROM_201_TO_500 = "$201 - $500"
OVER_500 = "Over $500"

PRICE_BUCKETS = (UNDER_50, FROM_50_TO_100, FROM_101_TO_200, FROM_201_TO_500, OVER_500)


def price_bucket(price: float) -> str:
	if price < 50:
		return UNDER_50
	if 50 <= price <= 100:
		return FROM_50_TO_100
	if 100 < price <= 200:
		return FROM_101_TO_200
	if 200 < price <= 500:
		return FROM_201_TO_500
	# Anything left over, NaN included, lands here so every record is counted.
	return OVER_500


def price_histogram(transactions: Iterable[Transaction]) -> Dict[str, int]:
	counts = {bucket: 0 for bucket in PRICE_BUCKETS}
	for t in transactions:
		counts[price_bucket(t.price)] += 1
	return counts


# -------------------------
# Pagination
# -------------------------
@dataclass(frozen=True)
class Page:
	items: List[Transaction]
	total_records: int
	page: int
	per_page: int

	@property
	def total_pages(self) -> int:
		return math.ceil(self.total_records / self.per_page)


def paginate(transactions: Sequence[Transaction], page: int, per_page: int) -> Page:
	"""Slice out 1-based ``page``; a page past the end is empty, not an error."""
	if page < 1:
		raise ValueError("page must be >= 1")
	if per_page < 1:
		raise ValueError("per_page must be >= 1")
	start = (page - 1) * per_page
	return Page(
		items=list(transactions[start:start + per_page]),
		total_records=len(transactions),
		page=page,
		per_page=per_page,
	)
