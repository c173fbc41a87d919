from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional, Tuple

import dicttoxml
from flask import Flask, Response, current_app, jsonify, make_response, request
from flask_cors import CORS
from werkzeug.exceptions import BadGateway, BadRequest, HTTPException, NotFound

from config import Config
from fetcher import TransactionSource
from transactions import (
	MonthFilter,
	Transaction,
	apply_filters,
	by_date_range,
	by_month,
	paginate,
	price_histogram,
	statistics,
)


logger = logging.getLogger(__name__)

FAILURE_MODES = {"degrade", "error"}


class MissingParameter(BadRequest):
	pass


def _parse_int(value: Any, field: str, *, minimum: Optional[int] = None, maximum: Optional[int] = None) -> int:
	try:
		parsed = int(value)
	except (TypeError, ValueError):
		raise BadRequest(f"{field} must be an integer")
	if minimum is not None and parsed < minimum:
		raise BadRequest(f"{field} must be >= {minimum}")
	if maximum is not None and parsed > maximum:
		raise BadRequest(f"{field} must be <= {maximum}")
	return parsed


def _parse_month(value: Optional[str], *, default: Optional[str] = None, required: bool = False) -> MonthFilter:
	# Only presence is checked; a month that names no month selects nothing.
	if value is None or not value.strip():
		if required:
			raise MissingParameter("Month is required")
		if default is not None:
			value = default
	return MonthFilter.from_query(value)


def _parse_page() -> Tuple[int, int]:
	cfg = current_app.config
	page = _parse_int(request.args.get("page", 1), "page", minimum=1)
	per_page = _parse_int(
		request.args.get("perPage", cfg["DEFAULT_PER_PAGE"]),
		"perPage",
		minimum=1,
		maximum=cfg["MAX_PER_PAGE"],
	)
	return page, per_page


def _get_format() -> str:
	fmt = (request.args.get("format") or "json").strip().lower()
	if fmt not in {"json", "xml"}:
		raise BadRequest("format must be 'json' or 'xml'")
	return fmt


def _to_xml(payload: Any, root: str = "response") -> bytes:
	return dicttoxml.dicttoxml(payload, custom_root=root, attr_type=False)


def api_response(payload: Any, status: int = 200, *, root: str = "response") -> Response:
	try:
		fmt = _get_format()
	except BadRequest:
		# The error for a bad format is itself rendered as JSON.
		fmt = "json"
	if fmt == "xml":
		resp = make_response(_to_xml(payload, root=root), status)
		resp.headers["Content-Type"] = "application/xml; charset=utf-8"
		return resp
	return make_response(jsonify(payload), status)


def error_response(message: str, status: int, *, details: Optional[Dict[str, Any]] = None) -> Response:
	payload: Dict[str, Any] = {"error": message, "message": message, "status": status}
	if details:
		payload["details"] = details
	return api_response(payload, status=status, root="error")


def _source() -> TransactionSource:
	return current_app.extensions["transaction_source"]


def _load_transactions() -> Tuple[Transaction, ...]:
	result = _source().fetch()
	if not result.ok:
		if current_app.config["PRODUCT_FETCH_FAILURE_MODE"] == "error":
			raise BadGateway("Product data source unavailable")
		logger.warning("serving_empty_dataset reason=%s", result.error)
	return result.transactions


def _listing(month: MonthFilter, *, start: Optional[str] = None, end: Optional[str] = None) -> Response:
	page, per_page = _parse_page()
	filtered = apply_filters(
		_load_transactions(),
		month=month,
		start=start,
		end=end,
		search=request.args.get("search", ""),
	)
	result = paginate(filtered, page, per_page)
	return api_response(
		{
			"currentPage": result.page,
			"perPage": result.per_page,
			"totalRecords": result.total_records,
			"totalPages": result.total_pages,
			"data": [t.to_dict() for t in result.items],
		}
	)


def create_app(config: Optional[Dict[str, Any]] = None, *, source: Optional[TransactionSource] = None) -> Flask:
	app = Flask(__name__)
	app.config.from_object(Config)

	# Ensure env vars always take precedence (Config class attributes are evaluated at import time).
	def _env(name: str, default: Any) -> Any:
		value = os.getenv(name)
		if value is None:
			return default
		return value

	app.config["PRODUCT_DATA_URL"] = _env("PRODUCT_DATA_URL", app.config.get("PRODUCT_DATA_URL"))
	app.config["PRODUCT_FETCH_TIMEOUT"] = float(_env("PRODUCT_FETCH_TIMEOUT", app.config.get("PRODUCT_FETCH_TIMEOUT", 10)))
	app.config["PRODUCT_CACHE_TTL"] = float(_env("PRODUCT_CACHE_TTL", app.config.get("PRODUCT_CACHE_TTL", 0)))
	app.config["PRODUCT_FETCH_FAILURE_MODE"] = _env("PRODUCT_FETCH_FAILURE_MODE", app.config.get("PRODUCT_FETCH_FAILURE_MODE"))
	app.config["DEFAULT_MONTH"] = _env("DEFAULT_MONTH", app.config.get("DEFAULT_MONTH", "3"))
	app.config["DEFAULT_PER_PAGE"] = int(_env("DEFAULT_PER_PAGE", app.config.get("DEFAULT_PER_PAGE", 10)))
	app.config["MAX_PER_PAGE"] = int(_env("MAX_PER_PAGE", app.config.get("MAX_PER_PAGE", 100)))
	app.config["CORS_ALLOW_ORIGINS"] = _env("CORS_ALLOW_ORIGINS", app.config.get("CORS_ALLOW_ORIGINS", "*"))
	app.config["LOG_LEVEL"] = _env("LOG_LEVEL", app.config.get("LOG_LEVEL", "INFO"))

	if config:
		app.config.update(config)

	mode = str(app.config["PRODUCT_FETCH_FAILURE_MODE"]).strip().lower()
	if mode not in FAILURE_MODES:
		raise ValueError(f"PRODUCT_FETCH_FAILURE_MODE must be one of {sorted(FAILURE_MODES)}")
	app.config["PRODUCT_FETCH_FAILURE_MODE"] = mode

	if source is None:
		source = TransactionSource(
			app.config["PRODUCT_DATA_URL"],
			timeout=app.config["PRODUCT_FETCH_TIMEOUT"],
			cache_ttl=app.config["PRODUCT_CACHE_TTL"],
		)
	app.extensions["transaction_source"] = source

	origins = [o.strip() for o in str(app.config["CORS_ALLOW_ORIGINS"]).split(",") if o.strip()]
	if not origins or origins == ["*"]:
		origins = "*"
	CORS(app, resources={r"/api/*": {"origins": origins}})

	@app.get("/health")
	def health() -> Response:
		return api_response({"status": "ok"})

	# -------------------------
	# Transaction listings
	# -------------------------
	@app.get("/api/products")
	def list_products() -> Response:
		month = _parse_month(request.args.get("month"), default=app.config["DEFAULT_MONTH"])
		return _listing(month)

	@app.get("/api/allproducts")
	def list_all_products() -> Response:
		month = _parse_month(request.args.get("month"), default=MonthFilter.ALL_TOKEN)
		return _listing(month)

	@app.get("/api/products/month-date")
	def list_products_by_month_and_date() -> Response:
		month = _parse_month(request.args.get("month"))
		return _listing(month, start=request.args.get("startDate"), end=request.args.get("endDate"))

	# -------------------------
	# Reports
	# -------------------------
	@app.get("/api/statistics")
	def sales_statistics() -> Response:
		month = _parse_month(request.args.get("month"), required=True)
		start = request.args.get("startDate")
		end = request.args.get("endDate")
		logger.debug("statistics month=%s start=%s end=%s", month.to_json(), start, end)
		selected = by_date_range(by_month(_load_transactions(), month), start, end)
		stats = statistics(selected)
		return api_response(
			{
				"month": month.to_json(),
				"totalSaleAmount": round(stats.total_sale_amount, 2),
				"totalSoldItems": stats.total_sold_items,
				"totalNotSoldItems": stats.total_not_sold_items,
			}
		)

	@app.get("/api/bar-chart")
	def price_bar_chart() -> Response:
		month = _parse_month(request.args.get("month"), required=True)
		selected = by_month(_load_transactions(), month)
		return api_response({"month": month.to_json(), "priceRanges": price_histogram(selected)})

	# -------------------------
	# Consistent JSON/XML errors
	# -------------------------
	@app.errorhandler(BadRequest)
	def _bad_request(err: BadRequest):
		return error_response(str(err.description or "Bad request"), 400)

	@app.errorhandler(NotFound)
	def _not_found(err: NotFound):
		return error_response("Not found", 404)

	@app.errorhandler(BadGateway)
	def _bad_gateway(err: BadGateway):
		return error_response(str(err.description or "Bad gateway"), 502)

	@app.errorhandler(Exception)
	def _unhandled(err: Exception):
		if isinstance(err, HTTPException):
			return error_response(str(err.description or err.name), err.code or 500)
		logger.exception("unhandled_error path=%s", request.path)
		return error_response("Internal server error", 500)

	return app


app = create_app()


if __name__ == "__main__":
	logging.basicConfig(
		level=app.config["LOG_LEVEL"],
		format="%(asctime)s %(levelname)s %(name)s %(message)s",
	)
	port = int(os.getenv("PORT", 5000))
	app.run(host="0.0.0.0", port=port, debug=True)
