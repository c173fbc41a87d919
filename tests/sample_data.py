from typing import Any, Dict, List, Optional
from unittest import mock

from fetcher import FetchResult
from transactions import Transaction


def _record(id: int, title: str, price: Any, sold: bool, date_of_sale: str, **extra: Any) -> Dict[str, Any]:
	record = {
		"id": id,
		"title": title,
		"price": price,
		"description": extra.pop("description", f"{title} description"),
		"category": extra.pop("category", "electronics"),
		"image": f"https://example.com/{id}.jpg",
		"sold": sold,
		"dateOfSale": date_of_sale,
	}
	record.update(extra)
	return record


# Shaped like the public product_transaction.json feed.
RECORDS: List[Dict[str, Any]] = [
	_record(1, "Fjallraven Foldsack Backpack", 109.95, False, "2021-11-27T20:29:54+05:30", category="men's clothing"),
	_record(2, "Mens Casual Premium Slim Fit T-Shirts", 22.3, True, "2021-10-27T20:29:54+05:30", category="men's clothing"),
	_record(3, "Mens Cotton Jacket", 615.89, True, "2022-03-27T20:29:54+05:30", category="men's clothing"),
	_record(4, "Mens Casual Slim Fit", 15.99, False, "2022-03-02T20:29:54+05:30", description="The color could be slightly different"),
	_record(5, "Solid Gold Petite Micropave", 168, True, "2022-03-10T20:29:54+05:30", category="jewelery"),
	_record(6, "WD 2TB Elements Portable Drive", 64, True, "2022-03-15T20:29:54+05:30"),
	_record(7, "SanDisk SSD PLUS 1TB", 109, False, "2021-03-20T20:29:54+05:30"),
	_record(8, "Samsung 49-Inch Gaming Monitor", 999.99, False, "2022-03-31T23:00:00+05:30"),
	_record(9, "Silicon Power 256GB SSD", 350, True, "2021-07-05T20:29:54+05:30"),
	_record(10, "Rain Jacket Women Windbreaker", 39.99, True, "2022-03-05T08:00:00+05:30", category="women's clothing"),
	_record(11, "BIYLACLESEN Snowboard Jacket", 56.99, False, "2022-01-12T10:00:00Z", category="women's clothing"),
	_record(12, "Opna Short Sleeve Moisture", 100, True, "2021-03-18T12:00:00", category="women's clothing"),
]


def transactions() -> List[Transaction]:
	return [Transaction.from_record(r) for r in RECORDS]


def march() -> List[Transaction]:
	return [t for t in transactions() if t.raw["dateOfSale"][5:7] == "03"]


class StubSource:
	"""Stands in for ``TransactionSource`` in app tests."""

	def __init__(self, records: Optional[List[Dict[str, Any]]] = None, error: Optional[str] = None) -> None:
		self.records = RECORDS if records is None else records
		self.error = error
		self.calls = 0

	def fetch(self) -> FetchResult:
		self.calls += 1
		if self.error:
			return FetchResult.failure(self.error)
		return FetchResult(transactions=tuple(Transaction.from_record(r) for r in self.records))


def json_response(payload: Any, status: int = 200) -> mock.Mock:
	resp = mock.Mock()
	resp.status_code = status
	resp.json.return_value = payload
	resp.raise_for_status.return_value = None
	return resp
