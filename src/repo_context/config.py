from __future__ import annotations

from enum import StrEnum, auto

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class FrameworkID(StrEnum):
    """Ecosystem tags used to pick a rule set.

    Declaration order is significant: detection ties go to the first member.
    """

    NODEJS = auto()
    FLUTTER = auto()
    PYTHON = auto()
    JAVA = auto()
    GO = auto()
    RUST = auto()
    UNKNOWN = auto()


class Precision(StrEnum):
    """How aggressively non-essential files are left out, ordered CORE < STANDARD < FULL."""

    CORE = auto()
    STANDARD = auto()
    FULL = auto()

    @property
    def rank(self) -> int:
        return list(Precision).index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Precision):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Precision):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Precision):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Precision):
            return NotImplemented
        return self.rank >= other.rank


class OutlierMethod(StrEnum):
    """Threshold strategies for size outlier detection."""

    MEAN = auto()
    MEDIAN = auto()
    IQR = auto()


class EntryKind(StrEnum):
    FILE = auto()
    DIRECTORY = auto()


class SourceOrigin(StrEnum):
    """Where the bytes of a record come from when its content is requested."""

    REMOTE_API = auto()
    LOCAL_FILESYSTEM = auto()
    ARCHIVE_ENTRY = auto()


class FileRecord(BaseModel):
    """One entry discovered in a source tree.

    Attributes:
        path: Forward-slash path relative to the source root, without a leading slash.
        kind: File or directory. Only files take part in selection and rendering.
        size: Size in bytes, or None when the listing source does not know it.
        origin: Which collaborator can later return the content.
    """

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="Normalized path relative to the source root")
    kind: EntryKind = Field(default=EntryKind.FILE, description="File or directory")
    size: int | None = Field(default=None, ge=0, description="Size in bytes, if known")
    origin: SourceOrigin = Field(default=SourceOrigin.LOCAL_FILESYSTEM, description="Content origin")

    @field_validator("path")
    @classmethod
    def _normalize_path(cls, value: str) -> str:
        return value.replace("\\", "/").lstrip("/")

    @computed_field
    @property
    def is_file(self) -> bool:
        return self.kind is EntryKind.FILE

    @computed_field
    @property
    def depth(self) -> int:
        """Number of directories above the entry (0 for root-level entries)."""
        return self.path.count("/")

    @computed_field
    @property
    def is_root_level(self) -> bool:
        return self.depth == 0


class FileContent(BaseModel):
    """Fetched text of one selected file."""

    model_config = ConfigDict(frozen=True)

    path: str
    body: str = ""


class FrameworkSignature(BaseModel):
    """A file (or ``dir/`` marker) whose presence at the root hints at a framework."""

    model_config = ConfigDict(frozen=True)

    filename: str
    weight: int = Field(..., gt=0)
    requires: tuple[str, ...] = ()

    @computed_field
    @property
    def is_directory(self) -> bool:
        return self.filename.endswith("/")


class FrameworkDef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: FrameworkID
    name: str
    signatures: tuple[FrameworkSignature, ...] = ()


class RuleSet(BaseModel):
    """Ordered include and exclude patterns for one (framework, precision) pair."""

    model_config = ConfigDict(frozen=True)

    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()


class OutlierStats(BaseModel):
    """Size statistics; quartiles are only filled in by the IQR method."""

    model_config = ConfigDict(frozen=True)

    mean: float = 0.0
    median: float = 0.0
    q1: float | None = None
    q3: float | None = None
    iqr: float | None = None


class OutlierReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    threshold: float = 0.0
    method: OutlierMethod = OutlierMethod.MEDIAN
    stats: OutlierStats = Field(default_factory=OutlierStats)
    flagged: frozenset[str] = frozenset()


class RenderedArtifact(BaseModel):
    """The generated context text.

    Attributes:
        diagram: The box-drawing directory tree.
        entries: The rendered files, in output order.
        text: The complete artifact.
        token_count: Approximate cl100k token count, or None when the tokenizer
            was unavailable. Zero is a real count, not a failure marker.
    """

    model_config = ConfigDict(frozen=True)

    diagram: str
    entries: tuple[FileContent, ...] = ()
    text: str
    token_count: int | None = None

    @computed_field
    @property
    def token_count_available(self) -> bool:
        return self.token_count is not None

    @computed_field
    @property
    def paths(self) -> tuple[str, ...]:
        return tuple(entry.path for entry in self.entries)
