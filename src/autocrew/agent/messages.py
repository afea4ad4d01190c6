"""Request/response model for the worker contract.

A worker receives one :class:`WorkerRequest` and returns one
:class:`WorkerResponse`. The response ``result`` is a tagged phase result:
one dataclass per phase shape, each carrying a ``KIND`` tag so it survives
a trip through the JSON project record (see :func:`result_to_dict` and
:func:`result_from_dict`). Plain JSON values are accepted too and pass
through unchanged.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from typing import TYPE_CHECKING, Any, ClassVar

if TYPE_CHECKING:
    from autocrew.project.models import ProjectContext


# ---------------------------------------------------------------------------
# Tagged phase results
# ---------------------------------------------------------------------------


@dataclass
class RequirementsResult:
    KIND: ClassVar[str] = "requirements"

    functional: list[str] = field(default_factory=list)
    non_functional: dict[str, list[str]] = field(default_factory=dict)
    user_stories: list[str] = field(default_factory=list)


@dataclass
class ArchitectureResult:
    KIND: ClassVar[str] = "architecture"

    pattern: str = ""
    components: list[str] = field(default_factory=list)
    decisions: list[str] = field(default_factory=list)
    directories: list[str] = field(default_factory=list)


@dataclass
class DevelopmentResult:
    KIND: ClassVar[str] = "development"

    files: dict[str, str] = field(default_factory=dict)
    """Relative path -> file content."""

    notes: list[str] = field(default_factory=list)


@dataclass
class TestingResult:
    KIND: ClassVar[str] = "testing"
    __test__: ClassVar[bool] = False  # not a pytest class

    strategy: dict[str, Any] = field(default_factory=dict)
    test_files: dict[str, str] = field(default_factory=dict)
    coverage_target: float = 0.0


@dataclass
class DevopsResult:
    KIND: ClassVar[str] = "devops"

    files: dict[str, str] = field(default_factory=dict)
    pipelines: list[str] = field(default_factory=list)


@dataclass
class DocumentationResult:
    KIND: ClassVar[str] = "documentation"

    documents: dict[str, str] = field(default_factory=dict)


@dataclass
class SummaryResult:
    KIND: ClassVar[str] = "summary"

    summary: str = ""
    highlights: list[str] = field(default_factory=list)


@dataclass
class GenericResult:
    KIND: ClassVar[str] = "generic"

    data: dict[str, Any] = field(default_factory=dict)


PhaseResult = (
    RequirementsResult
    | ArchitectureResult
    | DevelopmentResult
    | TestingResult
    | DevopsResult
    | DocumentationResult
    | SummaryResult
    | GenericResult
)

RESULT_TYPES: dict[str, type] = {
    cls.KIND: cls
    for cls in (
        RequirementsResult,
        ArchitectureResult,
        DevelopmentResult,
        TestingResult,
        DevopsResult,
        DocumentationResult,
        SummaryResult,
        GenericResult,
    )
}


def result_to_dict(result: Any) -> Any:
    """Convert a tagged result to a JSON-safe dict with a ``kind`` key."""
    if is_dataclass(result) and not isinstance(result, type) and hasattr(result, "KIND"):
        data = asdict(result)
        data["kind"] = result.KIND
        return data
    return result


def result_from_dict(data: Any) -> Any:
    """Inverse of :func:`result_to_dict`; untagged values are returned as-is."""
    if not isinstance(data, dict):
        return data
    cls = RESULT_TYPES.get(data.get("kind", ""))
    if cls is None:
        return data
    known = {f.name for f in fields(cls)}
    return cls(**{k: v for k, v in data.items() if k in known})


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------


@dataclass
class WorkerRequest:
    """Input handed to ``Worker.execute``."""

    user_message: str = ""
    """Free-form user message that started (or steered) the run."""

    previous_results: dict[str, Any] = field(default_factory=dict)
    """Phase name -> result of every completed phase so far."""

    project: ProjectContext | None = None
    """Reference to the live project context (read it, don't mutate it)."""

    metadata: dict[str, Any] = field(default_factory=dict)

    phase: str = ""
    role: str = ""


@dataclass
class WorkerResponse:
    """Output of ``Worker.execute``."""

    success: bool
    result: PhaseResult | Any = None
    artifacts: dict[str, Any] = field(default_factory=dict)
    """Named artifacts to store on the project (JSON-safe values)."""

    message: str = ""
    """Human-readable summary."""

    error: str = ""
    """Error detail when ``success`` is False."""

    exception: BaseException | None = field(default=None, repr=False, compare=False)

    @classmethod
    def ok(cls, result: Any = None, *, artifacts: dict[str, Any] | None = None, message: str = "") -> WorkerResponse:
        return cls(success=True, result=result, artifacts=dict(artifacts or {}), message=message)

    @classmethod
    def failure(cls, error: str, *, message: str = "", exception: BaseException | None = None) -> WorkerResponse:
        return cls(success=False, error=error, message=message, exception=exception)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "result": result_to_dict(self.result),
            "artifacts": self.artifacts,
            "message": self.message,
            "error": self.error,
        }


def validate_request(request: Any) -> list[str]:
    """Return a list of problems with *request* (empty when valid)."""
    if not isinstance(request, WorkerRequest):
        return [f"request must be a WorkerRequest, got {type(request).__name__}"]

    errors = []
    if not isinstance(request.user_message, str):
        errors.append("user_message must be a string")
    if not isinstance(request.previous_results, dict):
        errors.append("previous_results must be a dict")
    if not isinstance(request.metadata, dict):
        errors.append("metadata must be a dict")
    return errors
