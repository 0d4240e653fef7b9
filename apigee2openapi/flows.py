"""Proxy endpoint flow resolution.

Turns one ProxyEndpoint document into the paths, operations and tags it
contributes to the OpenAPI document.
"""

import logging
from typing import Any, Dict, List

from .conditions import interpret_condition, recover_condition
from .document import merge_path_item
from .errors import ConditionSyntaxError, EndpointStructureError, MarkupError
from .markup import as_list, attribute, child, parse_markup, root_of, text_of
from .models import (
    Diagnostic,
    EndpointContribution,
    EndpointDefinition,
    ExtractedParameter,
    FlowCondition,
    FlowDefinition,
    ParameterLocation,
    Severity,
)
from .policies import lookup

logger = logging.getLogger(__name__)

STANDARD_RESPONSES = {
    '200': 'Successful response',
    '4XX': 'Client error responses',
    '5XX': 'Server error responses',
}


# ==================== ENDPOINT PARSING ====================

def _steps(flow: Any, section: str) -> List[Any]:
    return as_list(child(child(flow, section), 'Step'))


def parse_flow(node: Any) -> FlowDefinition:
    return FlowDefinition(
        name=attribute(node, 'name', ''),
        description=text_of(child(node, 'Description')) or None,
        condition=text_of(child(node, 'Condition')) or None,
        request_steps=_steps(node, 'Request'),
        response_steps=_steps(node, 'Response'),
    )


def parse_endpoint(tree: Dict[str, Any]) -> EndpointDefinition:
    """
    Reduce a normalized ProxyEndpoint document to an EndpointDefinition

    Raises:
        MarkupError: if the root element is not ProxyEndpoint
        EndpointStructureError: if HTTPProxyConnection/BasePath is missing
    """
    endpoint = root_of(tree, 'ProxyEndpoint')
    name = attribute(endpoint, 'name', '')

    base_path = text_of(child(child(endpoint, 'HTTPProxyConnection'), 'BasePath'))
    if not base_path:
        raise EndpointStructureError(f"Proxy endpoint '{name}' has no HTTPProxyConnection/BasePath")

    return EndpointDefinition(
        name=name,
        base_path=base_path,
        preflow_request_steps=_steps(child(endpoint, 'PreFlow'), 'Request'),
        flows=[parse_flow(flow) for flow in as_list(child(child(endpoint, 'Flows'), 'Flow'))],
    )


# ==================== PARAMETERS ====================

def resolve_parameters(steps: Any, table: List[ExtractedParameter]) -> List[Dict[str, Any]]:
    """
    Resolve policy steps to OpenAPI parameters through the policy table

    Steps invoking policies that declare no parameters contribute nothing.
    """
    parameters = []
    for step in as_list(steps):
        if not isinstance(step, dict):
            continue
        policy_name = text_of(step.get('Name'))
        if not policy_name:
            continue
        for entry in lookup(table, policy_name):
            parameters.append({
                'in': entry.kind.value,
                'name': entry.name,
                'required': True,
                'schema': {'type': 'string'},
                'example': entry.example,
            })
    return parameters


def path_parameters(condition: FlowCondition) -> List[Dict[str, Any]]:
    return [
        {
            'name': name,
            'in': ParameterLocation.PATH.value,
            'required': True,
            'schema': {'type': 'string'},
        }
        for name in condition.placeholders
    ]


# ==================== PATHS ====================

def _strip_leading_slash(value: str) -> str:
    return value[1:] if value.startswith('/') else value


def join_path(base_path: str, suffix: str) -> str:
    """Base path plus a path suffix with one trailing slash removed"""
    if suffix.endswith('/'):
        suffix = suffix[:-1]
    if base_path.endswith('/') and suffix.startswith('/'):
        base_path = base_path[:-1]
    return f"{base_path}{suffix}"


def operation_id(base_path: str, suffix: str, method: str) -> str:
    """e.g. ('/v1/orders', '/{id}', 'get') -> 'v1-orders-id-get'"""
    if suffix.endswith('/'):
        suffix = suffix[:-1]
    stripped = _strip_leading_slash(suffix).replace('{', '').replace('}', '')
    return f"{_strip_leading_slash(base_path)}-{stripped}-{method}".replace('/', '-')


def path_description(endpoint_name: str, path: str) -> str:
    return f"Operations for proxy endpoint '{endpoint_name}' for path '{path}'"


def build_operation(endpoint: EndpointDefinition, flow: FlowDefinition,
                    condition: FlowCondition, path: str,
                    table: List[ExtractedParameter]) -> Dict[str, Any]:
    operation = {
        'summary': flow.name,
        'description': (flow.description or
                        f"A definition of a {condition.method.upper()} operation on this path"),
        'operationId': operation_id(endpoint.base_path, condition.path_suffix, condition.method),
        'tags': [path],
        'responses': {code: {'description': text} for code, text in STANDARD_RESPONSES.items()},
    }
    # method-specific parameters stay on the operation
    parameters = resolve_parameters(flow.request_steps, table)
    if parameters:
        operation['parameters'] = parameters
    return operation


class _ContributionBuilder:
    """Accumulates the path items and tags of one endpoint"""

    def __init__(self, endpoint_name: str):
        self.contribution = EndpointContribution(endpoint_name=endpoint_name)

    def emit(self, path: str, fragment: Dict[str, Any], tag: str, source: str = 'endpoint',
             flow_name: str = ''):
        item = self.contribution.paths.setdefault(path, {})
        for method in merge_path_item(item, fragment):
            self.warn(source, f"Flow '{flow_name}' replaces the {method.upper()} {path} operation "
                              f"of an earlier flow")
        self.contribution.tags.append({'name': tag})

    def warn(self, source: str, message: str, severity: Severity = Severity.WARNING):
        logger.warning(f"{source}: {message}")
        self.contribution.diagnostics.append(Diagnostic(severity, source, message))


def resolve_flow(endpoint: EndpointDefinition, flow: FlowDefinition,
                 condition: FlowCondition, table: List[ExtractedParameter],
                 builder: _ContributionBuilder, source: str = 'endpoint'):
    """Emit the path item (and operation) for one flow of an endpoint"""
    base_path = endpoint.base_path
    preflow_parameters = resolve_parameters(endpoint.preflow_request_steps, table)

    if condition.is_default:
        builder.emit(base_path, {
            'description': path_description(endpoint.name, base_path),
            'parameters': preflow_parameters,
        }, tag=base_path)
        return

    if not condition.path_suffix:
        logger.debug(f"Flow '{flow.name}' does not route on proxy.pathsuffix, skipping")
        return

    path = join_path(base_path, condition.path_suffix)
    fragment = {'description': path_description(endpoint.name, f"{base_path}{condition.path_suffix}")}

    parameters = path_parameters(condition) + preflow_parameters
    if condition.method is None:
        parameters += resolve_parameters(flow.request_steps, table)
    if parameters:
        fragment['parameters'] = parameters
    if condition.method is not None:
        fragment[condition.method] = build_operation(endpoint, flow, condition, path, table)

    builder.emit(path, fragment, tag=path, source=source, flow_name=flow.name)


def resolve_endpoint(endpoint: EndpointDefinition, table: List[ExtractedParameter],
                     source: str = 'endpoint') -> EndpointContribution:
    """
    Resolve every flow of an endpoint

    Args:
        endpoint: Parsed proxy endpoint
        table: Parameter table built from the bundle's policies
        source: Archive entry name, used in diagnostics

    Returns:
        EndpointContribution with paths, tags and diagnostics
    """
    builder = _ContributionBuilder(endpoint.name)

    if not endpoint.has_flows:
        builder.emit(endpoint.base_path, {
            'description': path_description(endpoint.name, endpoint.base_path),
        }, tag=endpoint.base_path)
        return builder.contribution

    for flow in endpoint.flows:
        try:
            condition = interpret_condition(flow.condition)
        except ConditionSyntaxError as e:
            builder.warn(source, f"Flow '{flow.name}' condition not understood ({e}), "
                                 f"routing on the constraints found in: {flow.condition}")
            condition = recover_condition(flow.condition)
        resolve_flow(endpoint, flow, condition, table, builder, source)

    return builder.contribution


def resolve_endpoint_document(xml_text: str, table: List[ExtractedParameter],
                              source: str = 'endpoint') -> EndpointContribution:
    """Parse and resolve one endpoint document, never raising"""
    try:
        endpoint = parse_endpoint(parse_markup(xml_text))
    except (MarkupError, EndpointStructureError) as e:
        logger.warning(f"Skipping proxy endpoint {source}: {e}")
        contribution = EndpointContribution(endpoint_name=_fallback_name(source))
        contribution.diagnostics.append(
            Diagnostic(Severity.ERROR, source, f"Proxy endpoint skipped: {e}"))
        return contribution

    logger.debug(f"{source}: endpoint '{endpoint.name}' at {endpoint.base_path}, "
                 f"{len(endpoint.flows)} flow(s)")
    return resolve_endpoint(endpoint, table, source)


def _fallback_name(source: str) -> str:
    name = source.rsplit('/', 1)[-1]
    return name[:-4] if name.endswith('.xml') else name
