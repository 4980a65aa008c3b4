"""Finding types shared by the static, dynamic and contract stages."""

import uuid
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any

EVIDENCE_LIMIT = 500


class Severity(Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @classmethod
    def parse(cls, value: "str | Severity") -> "Severity":
        if isinstance(value, Severity):
            return value
        return cls(str(value).strip().upper())

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Severity):
            return NotImplemented
        return self.rank >= other.rank


_SEVERITY_RANK = {
    Severity.LOW: 0,
    Severity.MEDIUM: 1,
    Severity.HIGH: 2,
    Severity.CRITICAL: 3,
}


def clip_evidence(text: str, limit: int = EVIDENCE_LIMIT) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


@dataclass
class Vulnerability:
    """A security finding attached to one endpoint.

    Only ``severity`` and ``recommendation`` change after creation, and
    only during AI triage.
    """

    category: str
    title: str
    description: str
    severity: Severity
    endpoint: str
    method: str
    parameter: str | None = None
    evidence: str = ""
    recommendation: str = ""
    source: str = "dynamic"
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.severity = Severity.parse(self.severity)
        self.method = self.method.upper()
        self.evidence = clip_evidence(self.evidence or "")

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Vulnerability":
        return cls(**data)


class MismatchKind(Enum):
    STATUS_CODE = "STATUS_CODE"
    SCHEMA = "SCHEMA"
    HEADER = "HEADER"
    MISSING_FIELD = "MISSING_FIELD"
    EXTRA_FIELD = "EXTRA_FIELD"


@dataclass
class ContractMismatch:
    """Observed response disagreeing with the documented contract."""

    endpoint: str
    method: str
    kind: MismatchKind
    expected: str
    actual: str
    severity: Severity
    message: str
    field: str | None = None

    def __post_init__(self) -> None:
        self.kind = MismatchKind(self.kind)
        self.severity = Severity.parse(self.severity)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["kind"] = self.kind.value
        data["severity"] = self.severity.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContractMismatch":
        return cls(**data)
