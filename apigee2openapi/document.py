"""OpenAPI document assembly.

The document is a plain ``dict``. Each step returns an updated copy, so one
conversion threads its document through endpoint merges without sharing a
mutable reference with anything else.
"""

import copy
import logging
from collections import Counter
from typing import Any, Dict, Iterable, List, Tuple

from .models import (
    HTTP_METHODS,
    PLACEHOLDER_PATTERN,
    Diagnostic,
    EndpointContribution,
    ProxyMetadata,
    Severity,
)

logger = logging.getLogger(__name__)

OPENAPI_VERSION = '3.0.0'
CONTACT_EMAIL = 'apigee@google.com'
DOCUMENT_SOURCE = 'document'


def new_document(metadata: ProxyMetadata, hostnames: Iterable[str] = ()) -> Dict[str, Any]:
    """Create an empty OpenAPI document for one proxy"""
    return {
        'openapi': OPENAPI_VERSION,
        'info': {
            'title': metadata.title,
            'description': metadata.summary,
            'version': metadata.version,
            'contact': {'email': CONTACT_EMAIL},
        },
        'servers': [{'url': f"https://{hostname}"} for hostname in hostnames],
        'tags': [],
        'paths': {},
    }


def parameter_key(parameter: Dict[str, Any]) -> Tuple[str, str]:
    return parameter.get('name'), parameter.get('in')


def dedupe_parameters(parameters: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop parameters whose (name, in) pair was already seen, keeping the first"""
    seen = set()
    unique = []
    for parameter in parameters:
        key = parameter_key(parameter)
        if key in seen:
            continue
        seen.add(key)
        unique.append(parameter)
    return unique


def merge_path_item(target: Dict[str, Any], incoming: Dict[str, Any]) -> List[str]:
    """
    Merge a path item fragment into an existing path item in place

    Descriptions are overwritten, path-level parameters are unioned with
    (name, in) dedup, and operations are merged field by field so that a
    later flow for the same method reuses the operation.

    Returns:
        Methods whose operation already existed in ``target``
    """
    reused = []
    for key, value in incoming.items():
        if key == 'parameters':
            combined = list(target.get('parameters', [])) + copy.deepcopy(list(value))
            target['parameters'] = dedupe_parameters(combined)
        elif key in HTTP_METHODS:
            if key in target:
                reused.append(key)
                target[key].update(copy.deepcopy(value))
            else:
                target[key] = copy.deepcopy(value)
        else:
            target[key] = copy.deepcopy(value)
    return reused


def merge_contribution(document: Dict[str, Any],
                       contribution: EndpointContribution) -> Tuple[Dict[str, Any], List[Diagnostic]]:
    """
    Merge one endpoint's paths and tags into the document

    Args:
        document: Document built so far
        contribution: Output of resolving one proxy endpoint

    Returns:
        (updated copy of the document, diagnostics for replaced operations)
    """
    merged = copy.deepcopy(document)
    diagnostics = []
    paths = merged.setdefault('paths', {})

    for path, fragment in contribution.paths.items():
        item = paths.setdefault(path, {})
        for method in merge_path_item(item, fragment):
            message = (f"{method.upper()} {path} from endpoint '{contribution.endpoint_name}' "
                       f"replaces an operation defined by an earlier endpoint")
            logger.warning(message)
            diagnostics.append(Diagnostic(Severity.WARNING, DOCUMENT_SOURCE, message))

    merged.setdefault('tags', []).extend(copy.deepcopy(contribution.tags))
    return merged, diagnostics


def finalize_document(document: Dict[str, Any]) -> Dict[str, Any]:
    """Deduplicate tags by name, keeping the first record in first-seen order"""
    finalized = copy.deepcopy(document)
    tags = {}
    for tag in finalized.get('tags', []):
        tags.setdefault(tag['name'], tag)
    finalized['tags'] = list(tags.values())
    return finalized


def check_document(document: Dict[str, Any]) -> List[Diagnostic]:
    """
    Report structural problems in a produced document

    Nothing is changed; each violation becomes a warning for the caller.
    """
    warnings = []

    def warn(message: str):
        warnings.append(Diagnostic(Severity.WARNING, DOCUMENT_SOURCE, message))

    paths = document.get('paths', {})
    if not paths:
        warn("No paths found in specification")

    operation_ids = Counter()
    for path, item in paths.items():
        parameters = item.get('parameters', [])

        keys = Counter(parameter_key(p) for p in parameters)
        for (name, location), count in keys.items():
            if count > 1:
                warn(f"Parameter '{name}' in {location} declared {count} times on {path}")

        placeholders = [name for name in PLACEHOLDER_PATTERN.findall(path) if name]
        declared = {p.get('name') for p in parameters if p.get('in') == 'path'}
        for name in placeholders:
            if name not in declared:
                warn(f"Path placeholder '{{{name}}}' on {path} has no path parameter")
        for name in sorted(declared - set(placeholders)):
            warn(f"Path parameter '{name}' on {path} has no matching placeholder")

        for method in HTTP_METHODS:
            operation = item.get(method)
            if operation is None:
                continue
            if operation.get('operationId'):
                operation_ids[operation['operationId']] += 1
            if not operation.get('responses'):
                warn(f"No responses defined for {method.upper()} {path}")

    for operation_id, count in operation_ids.items():
        if count > 1:
            warn(f"operationId '{operation_id}' is used by {count} operations")

    names = Counter(tag.get('name') for tag in document.get('tags', []))
    for name, count in names.items():
        if count > 1:
            warn(f"Tag '{name}' is declared {count} times")

    return warnings
