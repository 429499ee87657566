from stockledger.schemas.common import ErrorOut


_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("bad_request", "Bad request"),
    401: ("unauthorized", "Unauthorized"),
    403: ("forbidden", "Forbidden"),
    404: ("not_found", "Resource not found"),
    409: ("conflict", "Conflict"),
    422: ("validation_error", "Validation error"),
    429: ("rate_limited", "Too many requests"),
    500: ("internal_error", "Internal server error"),
    503: ("storage_error", "Storage unavailable"),
}

# Domain failures that share a status code with generic errors but carry their own code.
_DOMAIN_EXAMPLES: dict[str, tuple[int, str, dict | None]] = {
    "insufficient_stock": (
        409,
        "Insufficient stock",
        {"item_id": "item-id", "available": 6.0, "requested": 8.0},
    ),
    "already_reviewed": (
        409,
        "This requisition has already been processed",
        {"requisition_id": "requisition-id", "status": "approved"},
    ),
    "invalid_transfer": (400, "Source and destination locations must differ", None),
    "item_inactive": (409, "Item has been retired", {"item_id": "item-id"}),
}


def _example(code: str, message: str, details: dict | None = None) -> dict:
    return {
        "error": {
            "code": code,
            "message": message,
            "request_id": "request-id",
            "path": "/example",
            "details": details,
        }
    }


def error_responses(*status_codes: int, domain_codes: tuple[str, ...] = ()) -> dict[int, dict]:
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        code, message = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {"application/json": {"example": _example(code, message)}},
        }

    for domain_code in domain_codes:
        status_code, message, details = _DOMAIN_EXAMPLES[domain_code]
        entry = responses.setdefault(
            status_code,
            {"model": ErrorOut, "description": message, "content": {"application/json": {}}},
        )
        media = entry["content"]["application/json"]
        examples = media.setdefault("examples", {})
        if "example" in media:
            generic = media.pop("example")
            examples[generic["error"]["code"]] = {"value": generic}
        examples[domain_code] = {"value": _example(domain_code, message, details)}
    return responses
