"""
Data model shared by the bundle resolver stages
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


PLACEHOLDER_PATTERN = re.compile(r'\{(.*?)\}')
HTTP_METHODS = ('get', 'put', 'post', 'delete', 'options', 'head', 'patch', 'trace')


class ParameterLocation(Enum):
    """OpenAPI parameter locations produced by the resolver"""
    HEADER = "header"
    QUERY = "query"
    PATH = "path"


class Severity(Enum):
    """Diagnostic severity levels"""
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem found while converting one unit of a bundle"""
    severity: Severity
    source: str  # archive entry name, or "document" for post-conversion checks
    message: str

    def __str__(self) -> str:
        return f"[{self.severity.value}] {self.source}: {self.message}"


@dataclass(frozen=True)
class ProxyMetadata:
    """Descriptor values that feed the document's info section"""
    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    revision: Optional[str] = None

    @property
    def title(self) -> str:
        return self.display_name or self.name

    @property
    def summary(self) -> str:
        return (self.description or
                f"Auto-generated OpenApi specification for API Proxy: {self.name}")

    @property
    def version(self) -> str:
        return f"1.0.{self.revision or 0}"


@dataclass(frozen=True)
class ExtractedParameter:
    """A request parameter declared by an ExtractVariables policy"""
    policy_name: str
    kind: ParameterLocation  # HEADER or QUERY
    name: str
    example: str


@dataclass(frozen=True)
class FlowCondition:
    """Routing predicate recovered from a flow's Condition element"""
    expression: Optional[str] = None
    method: Optional[str] = None
    path_suffix: Optional[str] = None

    @property
    def is_default(self) -> bool:
        """True when the flow has no condition at all"""
        return not (self.expression and self.expression.strip())

    @property
    def placeholders(self) -> List[str]:
        """Placeholder names in the path suffix, left to right"""
        if not self.path_suffix:
            return []
        return [name for name in PLACEHOLDER_PATTERN.findall(self.path_suffix) if name]


@dataclass
class FlowDefinition:
    name: str
    description: Optional[str] = None
    condition: Optional[str] = None
    request_steps: List[Any] = field(default_factory=list)
    response_steps: List[Any] = field(default_factory=list)


@dataclass
class EndpointDefinition:
    """A ProxyEndpoint reduced to what the resolver reads"""
    name: str
    base_path: str
    preflow_request_steps: List[Any] = field(default_factory=list)
    flows: List[FlowDefinition] = field(default_factory=list)

    @property
    def has_flows(self) -> bool:
        return bool(self.flows)


@dataclass
class EndpointContribution:
    """Paths, tags and diagnostics emitted by resolving one endpoint"""
    endpoint_name: str
    paths: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    tags: List[Dict[str, str]] = field(default_factory=list)
    diagnostics: List[Diagnostic] = field(default_factory=list)


@dataclass
class ConversionResult:
    """The produced document plus everything that was skipped on the way"""
    document: Dict[str, Any]
    diagnostics: List[Diagnostic] = field(default_factory=list)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.WARNING]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.severity is Severity.ERROR]

    def summary(self) -> Tuple[int, int, int]:
        """(paths, operations, tags) counts of the produced document"""
        paths = self.document.get('paths', {})
        operations = sum(
            1 for item in paths.values() for key in item if key in HTTP_METHODS
        )
        return len(paths), operations, len(self.document.get('tags', []))

