"""Exception hierarchy for OrthoSketch.

Every error knows how to render itself as the JSON envelope returned by the
MCP tools::

    {"success": False,
     "error": {"type": ..., "message": ..., "suggestion": ..., "context": {...}}}

The suggestion is written for the person editing the sketch, so it names the
sketch entity or field to change.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from .logging import correlation_id_var


@dataclass
class ErrorContext:
    """Sketch entities involved in an error.

    Only populated fields are rendered; ``details`` is merged flat into the
    output.
    """
    entity_id: Optional[str] = None
    known_ids: Optional[List[str]] = None
    value: Optional[Any] = None
    involved: Optional[List[str]] = None
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            key: val
            for key, val in asdict(self).items()
            if key != "details" and val is not None
        }
        data.update(self.details)
        return data


@dataclass
class ErrorDetail:
    """The ``error`` member of a failed tool response."""
    type: str
    message: str
    suggestion: str
    context: Dict[str, Any] = field(default_factory=dict)
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.type,
            "message": self.message,
            "suggestion": self.suggestion,
        }
        if self.context:
            data["context"] = self.context
        if self.correlation_id:
            data["correlation_id"] = self.correlation_id
        return data


@dataclass
class ErrorResponse:
    """A failed tool response."""
    error: ErrorDetail

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.error.to_dict()}


class OrthoSketchError(Exception):
    """Base class for errors raised by the sketch engine."""

    error_type: str = "OrthoSketchError"
    default_suggestion: str = "Run validate_template() on the sketch and fix what it reports."

    def __init__(
        self,
        message: str,
        context: Optional[ErrorContext] = None,
        suggestion: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or ErrorContext()
        self.suggestion = suggestion or self.default_suggestion

    def to_response(self) -> ErrorResponse:
        # The id of the action in progress, if a LogContext is active.
        return ErrorResponse(
            error=ErrorDetail(
                type=self.error_type,
                message=self.message,
                suggestion=self.suggestion,
                context=self.context.to_dict(),
                correlation_id=correlation_id_var.get(),
            )
        )

    def to_dict(self) -> Dict[str, Any]:
        return self.to_response().to_dict()


class ExpressionError(OrthoSketchError):
    """An expression failed to parse or evaluate."""

    error_type = "ExpressionError"
    default_suggestion = (
        "Use numbers, params.<name>, + - * / and parentheses, "
        "or an allowed Math function such as Math.sqrt."
    )

    def __init__(self, expression: Any, reason: str, **kwargs):
        super().__init__(
            f"Invalid expression '{expression}': {reason}",
            context=ErrorContext(value=str(expression)),
            **kwargs,
        )
        self.expression = expression
        self.reason = reason


class CircularDependencyError(OrthoSketchError):
    """Parameters reference each other in a loop."""

    error_type = "CircularDependency"
    default_suggestion = "Give one of the parameters in the loop a literal value."

    def __init__(self, cycle: List[str], **kwargs):
        self.cycle = list(cycle)
        super().__init__(
            "Circular parameter dependency: " + " -> ".join(self.cycle),
            context=ErrorContext(involved=self.cycle),
            **kwargs,
        )


class EntityNotFoundError(OrthoSketchError):
    """A vertex, contour, constraint, dimension or parameter id is unknown."""

    error_type = "EntityNotFound"
    default_suggestion = "Pick one of the ids listed in context.known_ids."

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        available_entities: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(
            f"{entity_type} '{entity_id}' does not exist",
            context=ErrorContext(entity_id=entity_id, known_ids=sorted(available_entities or [])),
            **kwargs,
        )


class InvalidParameterError(OrthoSketchError):
    """An argument, or a sketch parameter, has an unusable value."""

    error_type = "InvalidParameter"
    default_suggestion = "Adjust the value and try again."

    def __init__(
        self,
        parameter_name: str,
        value: Any,
        reason: Optional[str] = None,
        valid_values: Optional[List[Any]] = None,
        **kwargs,
    ):
        context = ErrorContext(entity_id=parameter_name, value=value)
        if reason:
            message = f"Invalid value for '{parameter_name}': {reason}"
        else:
            message = f"Invalid value '{value}' for '{parameter_name}'"
        if valid_values:
            message += f", expected one of {valid_values}"
            context.details["valid_values"] = list(valid_values)
        super().__init__(message, context=context, **kwargs)


class ReferenceInUseError(OrthoSketchError):
    """Removing an entity would leave dangling references."""

    error_type = "ReferenceInUse"
    default_suggestion = "Remove or rewire the entities listed in context.involved first."

    def __init__(self, entity_type: str, entity_id: str, referenced_by: List[str], **kwargs):
        super().__init__(
            f"{entity_type} '{entity_id}' is still referenced by: {', '.join(referenced_by)}",
            context=ErrorContext(entity_id=entity_id, involved=list(referenced_by)),
            **kwargs,
        )


class GeometryError(OrthoSketchError):
    """A geometric operation has no meaningful result."""

    error_type = "GeometryError"
    default_suggestion = "Run validate_geometry() and fix the reported errors first."

    def __init__(
        self,
        operation: str,
        reason: str,
        affected_entities: Optional[List[str]] = None,
        **kwargs,
    ):
        super().__init__(
            f"Cannot complete {operation}: {reason}",
            context=ErrorContext(involved=affected_entities),
            **kwargs,
        )
        self.reason = reason


class NoOuterContourError(GeometryError):
    error_type = "NoOuterContour"
    default_suggestion = "Add a contour with type 'outer' describing the silhouette."

    def __init__(self, **kwargs):
        super().__init__("extrusion", "the sketch has no outer contour", **kwargs)


class DegenerateDimensionError(GeometryError):
    """A dimension cannot be measured on the current vertex positions."""

    error_type = "DegenerateDimension"
    default_suggestion = "Make sure the dimension's vertices exist and do not coincide."

    def __init__(self, dimension_id: str, reason: str, **kwargs):
        super().__init__(f"measurement of '{dimension_id}'", reason, affected_entities=[dimension_id], **kwargs)
        self.dimension_id = dimension_id


class ConstraintError(OrthoSketchError):
    error_type = "ConstraintError"
    default_suggestion = "Check the constraint type against the number of vertices it names."

    def __init__(self, constraint_id: str, issue: str, **kwargs):
        super().__init__(
            f"Constraint '{constraint_id}': {issue}",
            context=ErrorContext(entity_id=constraint_id),
            **kwargs,
        )


class DragStateError(OrthoSketchError):
    """A drag gesture received an event its current state does not accept."""

    error_type = "DragStateError"
    default_suggestion = "Start a new gesture with begin() before sending positions."

    def __init__(self, state: str, event: str, **kwargs):
        super().__init__(
            f"Cannot {event} while the drag gesture is {state}",
            context=ErrorContext(details={"state": state, "event": event}),
            **kwargs,
        )
        self.state = state
        self.event = event
