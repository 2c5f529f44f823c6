"""Redaction and error-exposure rules shared by logging and error handling."""

# Matched as case-insensitive substrings: "api_key" also covers
# "openai_api_key" and "text" also covers "selected_text".
SENSITIVE_KEYS: frozenset[str] = frozenset(
    {
        # Provider credentials and request secrets
        "password",
        "secret",
        "token",
        "authorization",
        "api_key",
        "bearer",
        "cookie",
        "session_id",
        "x-api-key",
        "x-auth-token",
        # User-authored text and model output
        "text",
        "content",
        "prompt",
        "instructions",
        "word",
        "suggestion",
        # Contact details
        "email",
        "phone",
        "address",
    }
)

# Fields every error envelope may carry
PRODUCTION_ERROR_FIELDS: frozenset[str] = frozenset({"correlation_id", "type"})

# Debugging aids, only exposed outside production
DEBUG_ERROR_FIELDS: frozenset[str] = frozenset(
    {"details", "traceback", "exception_type", "validation_errors"}
)


def get_allowed_error_fields(environment: str) -> set[str]:
    """Return the ``error`` fields an envelope may expose in ``environment``."""
    if environment == "production":
        return set(PRODUCTION_ERROR_FIELDS)
    return set(PRODUCTION_ERROR_FIELDS | DEBUG_ERROR_FIELDS)


def is_sensitive_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)
