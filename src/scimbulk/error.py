from collections import defaultdict
from enum import Enum
from typing import Any, Collection, Iterator, Optional, Sequence, TypedDict, Union

from typing_extensions import NotRequired

ERROR_SCHEMA = "urn:ietf:params:scim:api:messages:2.0:Error"


class ScimErrorType(str, Enum):
    INVALID_FILTER = "invalidFilter"
    TOO_MANY = "tooMany"
    UNIQUENESS = "uniqueness"
    MUTABILITY = "mutability"
    INVALID_SYNTAX = "invalidSyntax"
    INVALID_PATH = "invalidPath"
    NO_TARGET = "noTarget"
    INVALID_VALUE = "invalidValue"
    INVALID_VERS = "invalidVers"
    SENSITIVE = "sensitive"


class ScimErrorDict(TypedDict):
    schemas: list[str]
    status: str
    scimType: NotRequired[str]
    detail: NotRequired[str]


class ScimError(Exception):
    """
    Base class for errors that can be reported as SCIM Error messages, as specified in
    [RFC-7644](https://www.rfc-editor.org/rfc/rfc7644#section-3.12).

    Args:
        status: HTTP status code of the error.
        scim_type: SCIM detail error keyword. Can be specified for status `400` only.
        detail: Human-readable description of the error.
    """

    default_status: int = 500
    default_scim_type: Optional[ScimErrorType] = None

    def __init__(
        self,
        detail: str = "",
        *,
        status: Optional[int] = None,
        scim_type: Optional[Union[str, ScimErrorType]] = None,
    ):
        status = int(status if status is not None else self.default_status)
        if scim_type is None:
            scim_type = self.default_scim_type
        if scim_type is not None:
            scim_type = ScimErrorType(scim_type)
            if status != 400:
                raise ValueError("'scim_type' can be specified for status 400 only")
        if not 300 <= status < 600:
            raise ValueError("error status must be greater or equal to 300 and lesser than 600")
        super().__init__(detail)
        self.status = status
        self.scim_type = scim_type
        self.detail = detail

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status={self.status}, detail={self.detail!r})"

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, ScimError):
            return False
        return (
            type(self) is type(other)
            and self.status == other.status
            and self.scim_type == other.scim_type
            and self.detail == other.detail
        )

    def __hash__(self) -> int:
        return hash((type(self), self.status, self.scim_type, self.detail))

    def to_dict(self) -> ScimErrorDict:
        """
        Converts the error to SCIM Error message.
        """
        output: ScimErrorDict = {"schemas": [ERROR_SCHEMA], "status": str(self.status)}
        if self.scim_type is not None:
            output["scimType"] = self.scim_type.value
        if self.detail:
            output["detail"] = self.detail
        return output


class BatchError(ScimError):
    """
    Error that concerns the whole bulk request. None of the operations is executed
    if it occurs.
    """

    default_status = 400


class InvalidBatchShape(BatchError):
    """
    Bulk request or one of its operations is malformed. Validation issues are available
    in `issues` attribute.
    """

    default_scim_type = ScimErrorType.INVALID_SYNTAX

    def __init__(self, issues: "ValidationIssues", detail: str = ""):
        super().__init__(
            detail or "The request body message structure was invalid or did not conform "
            "to the request schema."
        )
        self.issues = issues


class DuplicateTemporaryId(BatchError):
    default_scim_type = ScimErrorType.UNIQUENESS

    def __init__(self, bulk_id: str, indexes: Sequence[int]):
        super().__init__(
            f"bulkId {bulk_id!r} is used by more than one POST operation "
            f"(operations {', '.join(str(i + 1) for i in indexes)})"
        )
        self.bulk_id = bulk_id
        self.indexes = list(indexes)


class BatchLimitExceeded(BatchError):
    default_status = 413

    def __init__(self, detail: str, *, limit: int):
        super().__init__(detail)
        self.limit = limit


class OperationError(ScimError):
    """
    Error local to a single bulk operation. It is reported in the operation's `response`.
    """


class DanglingReferenceError(OperationError):
    default_status = 400
    default_scim_type = ScimErrorType.INVALID_VALUE

    def __init__(self, bulk_id: str):
        super().__init__(f"No POST operation found matching bulkId {bulk_id!r}")
        self.bulk_id = bulk_id


class CircularReferenceError(OperationError):
    default_status = 409

    def __init__(self, bulk_ids: Sequence[str]):
        if len(bulk_ids) == 1:
            detail = f"Operation with bulkId {bulk_ids[0]!r} references itself"
        else:
            detail = "Circular reference between operations with bulkIds: " + ", ".join(
                repr(bulk_id) for bulk_id in bulk_ids
            )
        super().__init__(detail)
        self.bulk_ids = list(bulk_ids)


class DependencyFailedError(OperationError):
    default_status = 412

    def __init__(self, bulk_id: str):
        super().__init__(f"Referenced POST operation with bulkId {bulk_id!r} was not successful")
        self.bulk_id = bulk_id


class AbortedError(OperationError):
    default_status = 412

    def __init__(self, fail_on_errors: int):
        super().__init__(
            f"Operation not attempted, number of errors reached 'failOnErrors' "
            f"limit ({fail_on_errors})"
        )
        self.fail_on_errors = fail_on_errors


class ResourceStoreError(OperationError):
    """
    Error reported by the resource store when executing an operation. Passed through
    to the bulk response as is.
    """

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceStoreError":
        return cls(
            data.get("detail", ""),
            status=int(data.get("status", cls.default_status)),
            scim_type=data.get("scimType"),
        )


class ValidationError:
    """
    Represents a validation error. Uniquely identified by the error code.

    Pre-formatted messages stored in `message_by_code` can be modified, as long as embedded
    string parameters stay the same.
    """

    message_by_code = {
        1: "bad value syntax",
        2: "bad type, expecting '{expected}'",
        4: "bad value content",
        5: "missing",
        9: "must be one of: {expected_values}",
        10: "contains duplicates, which are not allowed",
        12: "missing main schema",
        14: "unknown schema",
        18: "error status must be greater or equal to 300 and lesser than 600",
        23: "value must be resource type endpoint",
        24: "value must be resource object endpoint",
        25: "unknown bulk operation resource",
        31: "value or operation not supported",
        32: "empty bulk request",
    }

    def __init__(
        self,
        code: int,
        scim_error: Union[str, ScimErrorType],
        message: Optional[str] = None,
        **context: Any,
    ):
        """
        Args:
            code: The error code. Can be one of built-in error_codes (see `message_by_code`
                attribute) or custom. If custom, it must be greater than 1000.
            scim_error: SCIM error corresponding to the validation error.
            message: Error message. Can replace built-in message or be specified for custom
                validation error.
            **context: Parameters passed to pre-formatted messages.
        """
        if code not in self.message_by_code and code <= 1000:
            raise ValueError("error code for custom validation error must be greater than 1000")
        self.code = code
        if message is None:
            message = "" if code > 1000 else self.message_by_code[code].format(**context)
        self.message = message
        self.context = context
        self.scim_error = ScimErrorType(scim_error)

    @classmethod
    def bad_value_syntax(cls, scim_error: str = ScimErrorType.INVALID_SYNTAX):
        return cls(code=1, scim_error=scim_error)

    @classmethod
    def bad_type(cls, expected: str, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=2, scim_error=scim_error, expected=expected)

    @classmethod
    def bad_value_content(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=4, scim_error=scim_error)

    @classmethod
    def missing(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=5, scim_error=scim_error)

    @classmethod
    def must_be_one_of(
        cls,
        expected_values: Collection[Any],
        scim_error: str = ScimErrorType.INVALID_VALUE,
    ):
        return cls(code=9, scim_error=scim_error, expected_values=expected_values)

    @classmethod
    def duplicated_values(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=10, scim_error=scim_error)

    @classmethod
    def missing_main_schema(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=12, scim_error=scim_error)

    @classmethod
    def unknown_schema(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=14, scim_error=scim_error)

    @classmethod
    def bad_error_status(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=18, scim_error=scim_error)

    @classmethod
    def resource_type_endpoint_required(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=23, scim_error=scim_error)

    @classmethod
    def resource_object_endpoint_required(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=24, scim_error=scim_error)

    @classmethod
    def unknown_operation_resource(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=25, scim_error=scim_error)

    @classmethod
    def not_supported(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=31, scim_error=scim_error)

    @classmethod
    def empty_bulk_request(cls, scim_error: str = ScimErrorType.INVALID_VALUE):
        return cls(code=32, scim_error=scim_error)

    def __eq__(self, other):
        if not isinstance(other, ValidationError):
            return False
        return self.code == other.code


class ValidationWarning:
    """
    Represents a validation warning. Uniquely identified by the warning code.
    """

    message_by_code = {
        1: "value should be one of: {expected_values}",
        4: "missing",
    }

    def __init__(self, code: int, message: Optional[str] = None, **context: Any):
        if code not in self.message_by_code and code <= 1000:
            raise ValueError("error code for custom validation error must be greater than 1000")
        self.code = code
        if message is None:
            message = "" if code > 1000 else self.message_by_code[code].format(**context)
        self.message = message
        self.context = context

    @classmethod
    def should_be_one_of(cls, expected_values: Collection[Any]):
        return cls(code=1, expected_values=expected_values)

    @classmethod
    def missing(cls):
        return cls(code=4)

    def __eq__(self, other):
        if not isinstance(other, ValidationWarning):
            return False
        return self.code == other.code


class ValidationIssueDict(TypedDict):
    code: int
    error: NotRequired[str]
    context: NotRequired[dict]


class ValidationIssues:
    """
    Keeps track of validation errors and warnings.
    """

    def __init__(self) -> None:
        self._errors: dict[tuple, list[ValidationError]] = defaultdict(list)
        self._warnings: dict[tuple, list[ValidationWarning]] = defaultdict(list)
        self._stop_proceeding: dict[tuple, set[int]] = defaultdict(set)

    @property
    def errors(self) -> Iterator[tuple[tuple[str, ...], list[ValidationError]]]:
        """Validation errors by locations where they were added."""
        return iter(self._errors.items())

    @property
    def warnings(self) -> Iterator[tuple[tuple[str, ...], list[ValidationWarning]]]:
        """Validation warnings by locations where they were added."""
        return iter(self._warnings.items())

    def merge(
        self,
        issues: "ValidationIssues",
        location: Optional[Sequence[Union[str, int]]] = None,
    ) -> None:
        """
        Merges provided validation `issues` under specified `location`, if specified, in the
        top-level otherwise.
        """
        location = tuple(location or tuple())
        for other_location, errors in issues._errors.items():
            new_location = location + other_location
            self._errors[new_location].extend(errors)
            codes = issues._stop_proceeding.get(other_location)
            if codes:
                self._stop_proceeding[new_location].update(codes)
        for other_location, warnings in issues._warnings.items():
            new_location = location + other_location
            self._warnings[new_location].extend(warnings)

    def add_error(
        self,
        issue: ValidationError,
        proceed: bool,
        location: Optional[Sequence[Union[str, int]]] = None,
    ) -> None:
        """
        Adds a validation error under specified `location`, if specified, in the top-level. The
        `proceed` flag is an indicator whether the specified `location` could continue to be
        validated against different conditions (`True`), or further validation should be terminated
        (`False`).
        """
        location = tuple(location or tuple())
        self._errors[location].append(issue)
        if not proceed:
            self._stop_proceeding[location].add(issue.code)

    def add_warning(
        self,
        issue: ValidationWarning,
        location: Optional[Sequence[Union[str, int]]] = None,
    ) -> None:
        location = tuple(location or tuple())
        self._warnings[location].append(issue)

    def get(
        self,
        error_codes: Optional[Collection[int]] = None,
        location: Optional[Sequence[Union[str, int]]] = None,
    ) -> "ValidationIssues":
        """
        Retrieves validation errors for the specified `location`, or all of them if not specified.
        The returned errors can be filtered by `error_codes`.
        """
        copy = ValidationIssues()
        location = tuple(location or tuple())
        for location_, errors in self._errors.items():
            if location_[: len(location)] != location:
                continue
            errors = [error for error in errors if error_codes is None or error.code in error_codes]
            if errors:
                copy._errors[location_[len(location) :]] = errors
                codes = self._stop_proceeding.get(location_, set())
                if codes:
                    copy._stop_proceeding[location_[len(location) :]] = set(codes)
        return copy

    def can_proceed(self, *locations: Sequence[Union[str, int]]) -> bool:
        """
        Returns flag indicating whether validation could proceed given `locations`. If all
        the provided `locations` have no errors, or these errors have not been added with
        `proceed=True`, then `True` is returned.
        """
        if not locations:
            locations = (tuple(),)
        for location in locations:
            location = tuple(location)
            for i in range(len(location) + 1):
                if location[:i] in self._stop_proceeding:
                    return False
        return True

    def has_errors(self, *locations: Sequence[Union[str, int]]) -> bool:
        """
        Returns flag indicating whether any errors have been added under specified `locations`.
        """
        if not locations:
            locations = (tuple(),)

        for location in locations:
            location = tuple(location)
            for issue_location in self._errors:
                if issue_location[: len(location)] == location:
                    return True

        return False

    def to_dict(self, msg: bool = False, ctx: bool = False) -> dict:
        """
        Converts `ValidationIssues` to a dictionary.
        """
        output: dict = {}
        self._to_dict("_errors", self._errors, output, msg=msg, ctx=ctx)
        self._to_dict("_warnings", self._warnings, output, msg=msg, ctx=ctx)
        return output

    @staticmethod
    def _to_dict(
        key: str, structure: dict, output: dict, msg: bool = False, ctx: bool = False
    ) -> dict:
        for location, errors in structure.items():
            if location:
                current_level = output
                for i, part in enumerate(location):
                    part = str(part)
                    if part not in current_level:
                        current_level[part] = {}
                    if i == len(location) - 1:
                        current_level[part][key] = []
                        for error in errors:
                            current_level[part][key].append(
                                ValidationIssues._issue_to_dict(error, msg=msg, ctx=ctx)
                            )
                    current_level = current_level[part]
            else:
                output[key] = []
                for error in errors:
                    output[key].append(ValidationIssues._issue_to_dict(error, msg=msg, ctx=ctx))

        return output

    @staticmethod
    def _issue_to_dict(
        issue: Union[ValidationError, ValidationWarning],
        msg: bool = False,
        ctx: bool = False,
    ) -> ValidationIssueDict:
        output: ValidationIssueDict = {"code": issue.code}
        if msg:
            output["error"] = issue.message
        if ctx:
            output["context"] = issue.context
        return output
