"""Remote product transaction dataset.

The dataset lives at a single URL serving a JSON array. ``fetch()`` never
raises: failures come back as a ``FetchResult`` with ``ok`` False so the
HTTP layer can choose between an empty answer and a 502.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import requests

from transactions import Transaction


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
	transactions: Tuple[Transaction, ...] = ()
	error: Optional[str] = None

	@property
	def ok(self) -> bool:
		return self.error is None

	@classmethod
	def failure(cls, error: str) -> "FetchResult":
		return cls(transactions=(), error=error)


class TransactionSource:
	def __init__(
		self,
		url: str,
		*,
		timeout: float = 10.0,
		cache_ttl: float = 0.0,
		session: Optional[requests.Session] = None,
		clock: Callable[[], float] = time.monotonic,
	) -> None:
		self.url = url
		self.timeout = timeout
		self.cache_ttl = cache_ttl
		self._http = session or requests
		self._clock = clock
		self._lock = threading.Lock()
		self._cached: Optional[FetchResult] = None
		self._cached_at = 0.0

	def fetch(self) -> FetchResult:
		if self.cache_ttl <= 0:
			return self._fetch_remote()
		with self._lock:
			if self._cached is not None and self._clock() - self._cached_at < self.cache_ttl:
				return self._cached
			self._cached = None
			result = self._fetch_remote()
			if result.ok:
				self._cached = result
				self._cached_at = self._clock()
			return result

	def invalidate(self) -> None:
		with self._lock:
			self._cached = None

	def _fetch_remote(self) -> FetchResult:
		try:
			r = self._http.get(self.url, timeout=self.timeout)
			r.raise_for_status()
		except requests.RequestException as e:
			logger.error("product_fetch_failed url=%s error=%s", self.url, e)
			return FetchResult.failure(f"request failed: {e}")

		try:
			payload = r.json()
		except ValueError as e:
			logger.error("product_fetch_invalid_json url=%s error=%s", self.url, e)
			return FetchResult.failure(f"invalid JSON: {e}")

		if not isinstance(payload, list):
			logger.error("product_fetch_unexpected_payload url=%s type=%s", self.url, type(payload).__name__)
			return FetchResult.failure("expected a JSON array of transactions")

		records = []
		for index, item in enumerate(payload):
			if not isinstance(item, dict):
				logger.warning("product_record_skipped url=%s index=%s", self.url, index)
				continue
			records.append(Transaction.from_record(item))
		logger.debug("product_fetch_ok url=%s count=%s", self.url, len(records))
		return FetchResult(transactions=tuple(records))
