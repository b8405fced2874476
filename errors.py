"""Error types raised by the CRM core.

Hierarchy:
    CRMError
    ├── ValidationError: field-level problems, collected before raising
    └── NotFoundError: entity lookup miss

Divide-by-zero in analytics is never an error; ratios guard to 0.
"""


class CRMError(Exception):
    """Base exception for all CRM core errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class ValidationError(CRMError):
    """One or more fields failed validation.

    `errors` maps field name -> list of messages, in the order they were found.
    """

    def __init__(self, errors: dict[str, list[str]]):
        self.errors = errors
        fields = ", ".join(sorted(errors))
        super().__init__(
            f"Validation failed for: {fields}",
            code="VALIDATION_FAILED",
            details={"errors": errors},
        )


class NotFoundError(CRMError):
    """Requested entity does not exist."""

    def __init__(self, entity: str, entity_id):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(
            f"{entity} {entity_id} not found",
            code="NOT_FOUND",
            details={"entity": entity, "id": str(entity_id)},
        )
