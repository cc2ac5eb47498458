"""Data models for codebox."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from fractions import Fraction

from pydantic import BaseModel, ConfigDict, Field


PYTHON_CHART_ALIAS = "python-with-charts"


class Language(str, Enum):
    """Supported language kinds. Each maps to exactly one container runtime."""

    PYTHON = "python"
    PYTHON_CHART = "python-chart"
    NODE = "node"

    @classmethod
    def _missing_(cls, value: object) -> Language | None:
        # Long-form name of the chart kind
        if isinstance(value, str) and value.lower() == PYTHON_CHART_ALIAS:
            return cls.PYTHON_CHART
        return None


class MimeKind(str, Enum):
    """Coarse classification of a collected output file."""

    IMAGE = "image"
    TEXT = "text"


@dataclass(frozen=True)
class LanguageRuntime:
    """Fixed runtime for one language kind: image, entry command, source filename."""

    image: str
    command: tuple[str, ...]
    filename: str


class ExecutionRequest(BaseModel):
    """A snippet of untrusted source code to run to completion."""

    model_config = ConfigDict(frozen=True)

    source_code: str = Field(max_length=1_000_000, description="Source text written to the workspace (max 1MB)")
    language: Language = Field(description="Language kind selecting image, command and filename")


class ContainerSpec(BaseModel):
    """Resource-constrained container definition for one language kind.

    Host directories are not part of the spec: the orchestrator binds the
    workspace of each execution to ``input_dir`` (read-only) and
    ``output_dir`` (read-write) at create time.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    image: str
    command: tuple[str, ...]
    workdir: str
    memory_limit_bytes: int = Field(gt=0)
    cpu_share: Fraction = Field(description="CPU quota as a fraction of one period (1/2 = half a core)")
    network_disabled: bool = True
    input_dir: str = "/code"
    output_dir: str = "/output"


class OutputFile(BaseModel):
    """A file produced by the sandboxed program, encoded for transport."""

    name: str
    content: str = Field(description="UTF-8 text, or base64 for images")
    kind: MimeKind
    mime_type: str


class ExecutionResult(BaseModel):
    """Outcome of one execution. Always fully populated, also on failure."""

    success: bool
    output: str = Field(default="", description="Captured standard output")
    error: str | None = Field(default=None, description="Human-readable failure reason")
    files: list[OutputFile] = Field(default_factory=list)
    execution_time_ms: int = Field(default=0, ge=0, description="Wall-clock time of the whole execution")
    error_type: str | None = Field(default=None, description="Error kind, e.g. \"ExecutionTimeoutError\"")

    @classmethod
    def failure(
        cls,
        error: str,
        execution_time_ms: int = 0,
        *,
        error_type: str | None = None,
    ) -> ExecutionResult:
        """Build the uniform failure record: empty output, no files."""
        return cls(
            success=False,
            output="",
            error=error,
            files=[],
            execution_time_ms=execution_time_ms,
            error_type=error_type,
        )
