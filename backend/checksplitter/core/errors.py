class SplitterError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(SplitterError):
    """Malformed input: empty friend list, mismatched quantities, duplicates."""

    status_code = 400


class NotFoundError(SplitterError):
    """Referenced receipt, item, unit or friend is absent or not owned by the caller."""

    status_code = 404


class VersionConflictError(SplitterError):
    status_code = 409

    def __init__(self, detail: str = "Version conflict, please refresh"):
        super().__init__(detail)


class ConsistencyError(SplitterError):
    """Aggregation could not reconcile the receipt (raised only in strict mode)."""

    status_code = 422

    def __init__(self, detail: str, warnings: list | None = None):
        super().__init__(detail)
        self.warnings = warnings or []
