class DomainError(Exception):
    def __init__(self, code: str, message: str, details: dict | None = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(DomainError):
    def __init__(self, field: str, message: str, details: dict | None = None):
        code = f"VAL_{field.upper()}_001"
        msg = f"Validation failed for {field}: {message}"
        super().__init__(code, msg, details or {"field": field})


class ParseValidationError(DomainError):
    """A library document section failed structural validation."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__("LIB_PARSE_001", message, details)


class LibraryError(DomainError):
    def __init__(self, message: str, code: str = "LIB_001", details: dict | None = None):
        super().__init__(code, message, details)


class LibraryNotInitializedError(LibraryError):
    def __init__(self):
        super().__init__(
            "Exercise library index has not been initialized; call init_library_index() first",
            code="LIB_002",
        )


class ManifestError(LibraryError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="LIB_003", details=details)


class LLMError(DomainError):
    def __init__(self, message: str, code: str = "LLM_001", details: dict | None = None):
        super().__init__(code, message, details)


class LLMConfigurationError(LLMError):
    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message, code="LLM_CONFIG_001", details=details)


class LLMResponseError(LLMError):
    def __init__(self, message: str, code: str = "LLM_RESPONSE_001", details: dict | None = None):
        super().__init__(message, code=code, details=details)


class CatalogError(DomainError):
    def __init__(self, message: str, code: str = "CAT_001", details: dict | None = None):
        super().__init__(code, message, details)


class PlanCancelledError(DomainError):
    """Plan composition was aborted through its cancellation token.

    Never converted into section or exercise error data.
    """

    def __init__(self, message: str = "Plan composition cancelled", details: dict | None = None):
        super().__init__("PLAN_CANCELLED", message, details)
