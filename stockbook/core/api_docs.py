from stockbook.schemas.common import ErrorOut

_ERROR_EXAMPLES: dict[int, tuple[str, str]] = {
    400: ("bad_request", "Bad request"),
    401: ("unauthorized", "Unauthorized"),
    404: ("not_found", "Resource not found"),
    422: ("validation_error", "Validation failed"),
    429: ("rate_limited", "Too many failed sign-in attempts"),
    500: ("internal_error", "Internal server error"),
    503: ("backend_error", "Storage backend error"),
}

_CONFLICT_EXAMPLES: dict[str, str] = {
    "insufficient_stock": "Not enough stock for Olive Oil 1L. Available: 2",
    "negative_stock": "Deleting this purchase would drive stock for Olive Oil 1L below zero",
    "conflict": "Supplier is referenced by 3 purchase(s)",
}


def error_responses(*status_codes: int, conflict: str = "insufficient_stock") -> dict[int, dict]:
    """OpenAPI `responses` entries in the error envelope; `conflict` picks the 409 example."""
    responses: dict[int, dict] = {}
    for status_code in status_codes:
        if status_code == 409:
            code, message = conflict, _CONFLICT_EXAMPLES.get(conflict, "Conflict")
        else:
            code, message = _ERROR_EXAMPLES.get(status_code, ("http_error", "HTTP error"))
        responses[status_code] = {
            "model": ErrorOut,
            "description": message,
            "content": {
                "application/json": {
                    "example": {
                        "error": {
                            "code": code,
                            "message": message,
                            "request_id": "request-id",
                            "path": "/sales",
                            "details": None,
                        }
                    }
                }
            },
        }
    return responses
