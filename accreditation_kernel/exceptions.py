"""
Typed Exception Hierarchy for the Accreditation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A gate operator, an approval screen and a reporting job all need to react
differently to "record not found", "already approved" and "reason missing".
Parsing message strings for that is fragile, so every failure the kernel can
raise is:

  1. A TYPED exception class (catch by type, not message)
  2. Tagged with a CODE attribute (machine-readable, API-safe)
  3. Carrying structured DATA (record id, actual status, field name...)

Example:
    try:
        operations.approve(record_id, approver_id="admin1")
    except InvalidTransitionError as e:
        respond(409, code=e.code, actual=e.actual_status)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    AccreditationKernelError (base)
    |
    +-- NotFoundError                      NOT_FOUND
    |   +-- RecordNotFoundError
    |   +-- ProjectNotFoundError
    |
    +-- ConflictError                      CONFLICT
    |   +-- InvalidTransitionError
    |   +-- ProjectHasApprovedRecordsError
    |   +-- DuplicateProjectCodeError
    |
    +-- ValidationError                    VALIDATION
    |   +-- MissingReasonError
    |   +-- MissingFieldError
    |   +-- InvalidAccessGroupError
    |   +-- PhaseWindowError
    |   +-- InvalidIdentificationError
    |   +-- UnknownFieldError
    |   +-- InvalidTokenSettingsError
    |
    +-- TokenExhaustedError                TOKEN_EXHAUSTED
    |
    +-- ImmutabilityViolationError         IMMUTABILITY_VIOLATION

Subclasses share their category's ``code``.  The category is what callers
map to a response; the subclass and its attributes say what exactly failed.

Verification outcomes (REVOKED, NOT_VALID_NOW, ...) are NOT exceptions --
see ``accreditation_kernel.domain.verification.VerificationOutcome``.
"""


class AccreditationKernelError(Exception):
    """
    Base exception for all accreditation kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ACCREDITATION_KERNEL_ERROR"


# =============================================================================
# NOT_FOUND
# =============================================================================


class NotFoundError(AccreditationKernelError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class RecordNotFoundError(NotFoundError):
    """Accreditation record with the given ID does not exist."""

    def __init__(self, record_id: str):
        self.record_id = record_id
        super().__init__(f"Accreditation record not found: {record_id}")


class ProjectNotFoundError(NotFoundError):
    """Accreditation project with the given ID does not exist."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Accreditation project not found: {project_id}")


# =============================================================================
# CONFLICT
# =============================================================================


class ConflictError(AccreditationKernelError):
    """Base exception for operations the current state does not permit."""

    code: str = "CONFLICT"


class InvalidTransitionError(ConflictError):
    """
    Status transition attempted from a state that does not permit it.

    Raised both by the explicit precondition check and when the conditional
    write matched zero rows because a concurrent caller moved the record
    first.  ``actual_status`` is always the status observed in storage.
    """

    def __init__(
        self,
        record_id: str,
        action: str,
        actual_status: str,
        expected_status: str,
    ):
        self.record_id = record_id
        self.action = action
        self.actual_status = actual_status
        self.expected_status = expected_status
        super().__init__(
            f"Cannot {action} accreditation {record_id}: status is "
            f"{actual_status}, expected {expected_status}"
        )


class ProjectHasApprovedRecordsError(ConflictError):
    """Project cannot be deleted while APPROVED credentials reference it."""

    def __init__(self, project_id: str, approved_count: int):
        self.project_id = project_id
        self.approved_count = approved_count
        super().__init__(
            f"Cannot delete project {project_id} with "
            f"{approved_count} approved accreditation(s)"
        )


class DuplicateProjectCodeError(ConflictError):
    """A project with the same code already exists."""

    def __init__(self, project_code: str):
        self.project_code = project_code
        super().__init__(f"Accreditation project code already exists: {project_code}")


# =============================================================================
# VALIDATION
# =============================================================================


class ValidationError(AccreditationKernelError):
    """Base exception for rejected input."""

    code: str = "VALIDATION"


class MissingReasonError(ValidationError):
    """A transition that requires a reason was called without one."""

    def __init__(self, record_id: str, action: str):
        self.record_id = record_id
        self.action = action
        super().__init__(f"A reason is required to {action} accreditation {record_id}")


class MissingFieldError(ValidationError):
    """A mandatory field is missing or blank."""

    def __init__(self, field_name: str):
        self.field_name = field_name
        super().__init__(f"Field '{field_name}' is required")


class InvalidAccessGroupError(ValidationError):
    """Access group is not one of the project's allowed groups."""

    def __init__(self, access_group: str, allowed_groups: list[str]):
        self.access_group = access_group
        self.allowed_groups = allowed_groups
        super().__init__(
            f"Invalid access group '{access_group}'; "
            f"allowed: {', '.join(allowed_groups)}"
        )


class PhaseWindowError(ValidationError):
    """A phase window is incomplete, inverted, or outside its bounds."""

    def __init__(self, phase: str, reason: str):
        self.phase = phase
        self.reason = reason
        super().__init__(f"Invalid {phase} window: {reason}")


class InvalidIdentificationError(ValidationError):
    """An identity document field is present but malformed."""

    def __init__(self, field_name: str, reason: str):
        self.field_name = field_name
        self.reason = reason
        super().__init__(f"Invalid {field_name}: {reason}")


class UnknownFieldError(ValidationError):
    """An edit referenced fields that are not editable."""

    def __init__(self, field_names: list[str]):
        self.field_names = field_names
        super().__init__(f"Fields cannot be edited: {', '.join(field_names)}")


class InvalidTokenSettingsError(ValidationError):
    """Token issuer configured below a minimum (entropy or retry bound)."""

    def __init__(self, setting: str, value: int, minimum: int):
        self.setting = setting
        self.value = value
        self.minimum = minimum
        super().__init__(
            f"Token setting {setting}={value} is below the minimum of {minimum}"
        )


# =============================================================================
# TOKEN_EXHAUSTED
# =============================================================================


class TokenExhaustedError(AccreditationKernelError):
    """
    Every candidate token collided with an existing one.

    With 128 bits of randomness this signals a broken random source, not
    bad luck.  The surrounding transition is aborted with no partial write.
    """

    code: str = "TOKEN_EXHAUSTED"

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(
            f"Failed to generate a unique QR token after {attempts} attempts"
        )


# =============================================================================
# IMMUTABILITY_VIOLATION
# =============================================================================


class ImmutabilityViolationError(AccreditationKernelError):
    """Attempt to modify or delete a protected row."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
