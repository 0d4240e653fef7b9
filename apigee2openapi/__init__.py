"""Apigee API proxy bundles to OpenAPI 3.0 specifications."""

__version__ = "0.1.0"

from .archive import ProxyArchive
from .converter import ConversionJob, ProxyBundleConverter, convert_archive, convert_bundle, convert_many
from .errors import Apigee2OpenApiError
from .models import ConversionResult, Diagnostic, Severity

__all__ = [
    "__version__",
    "Apigee2OpenApiError",
    "ConversionJob",
    "ConversionResult",
    "Diagnostic",
    "ProxyArchive",
    "ProxyBundleConverter",
    "Severity",
    "convert_archive",
    "convert_bundle",
    "convert_many",
]
