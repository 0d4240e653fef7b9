"""ExtractVariables policy parsing.

Builds the flat parameter table that the flow resolver correlates with the
steps each endpoint invokes.
"""

import logging
from typing import Any, Dict, Iterable, List, Tuple

from .errors import MarkupError
from .markup import as_list, attribute, child, parse_markup, root_tag, text_of
from .models import Diagnostic, ExtractedParameter, ParameterLocation, Severity

logger = logging.getLogger(__name__)

EXTRACT_VARIABLES = 'ExtractVariables'

# Rule element -> parameter location. JSONPayload, XMLPayload, FormParam,
# URIPath and Variable sources are not part of the documented surface.
RULE_LOCATIONS = (
    ('Header', ParameterLocation.HEADER),
    ('QueryParam', ParameterLocation.QUERY),
)


def applies_to_request(policy: Dict[str, Any]) -> bool:
    """An absent Source, or Source 'request', means the request message"""
    source = child(policy, 'Source')
    if source is None:
        return True
    return text_of(source, 'request') == 'request'


def _first_pattern(rule: Any) -> str:
    for pattern in as_list(child(rule, 'Pattern')):
        value = text_of(pattern)
        if value:
            return value
    return ''


def extract_parameters(tree: Dict[str, Any]) -> List[ExtractedParameter]:
    """
    Extract declared header and query parameters from a policy tree

    Args:
        tree: Normalized policy document

    Returns:
        Parameters in document order; empty for any other policy kind
    """
    if root_tag(tree) != EXTRACT_VARIABLES:
        return []

    policy = tree[EXTRACT_VARIABLES]
    if not isinstance(policy, dict) or not applies_to_request(policy):
        return []

    policy_name = attribute(policy, 'name')
    if not policy_name:
        logger.warning("ExtractVariables policy without a name attribute, skipping")
        return []

    parameters = []
    for element, location in RULE_LOCATIONS:
        for rule in as_list(policy.get(element)):
            name = attribute(rule, 'name')
            pattern = _first_pattern(rule)
            if not name or not pattern:
                continue
            parameters.append(ExtractedParameter(
                policy_name=policy_name,
                kind=location,
                name=name,
                example=pattern,
            ))
    return parameters


def parse_policy(xml_text: str, source: str = 'policy') -> Tuple[List[ExtractedParameter], List[Diagnostic]]:
    """
    Parse one policy document, never raising

    Args:
        xml_text: Policy XML
        source: Archive entry name, used in diagnostics

    Returns:
        (parameters, diagnostics)
    """
    try:
        tree = parse_markup(xml_text)
    except MarkupError as e:
        logger.warning(f"Skipping policy {source}: {e}")
        return [], [Diagnostic(Severity.WARNING, source, f"Policy skipped: {e}")]

    try:
        return extract_parameters(tree), []
    except (AttributeError, TypeError) as e:
        logger.warning(f"Unrecognized structure in policy {source}: {e}")
        return [], [Diagnostic(Severity.WARNING, source, f"Unrecognized policy structure: {e}")]


def build_parameter_table(entries: Iterable[Tuple[str, str]]) -> Tuple[List[ExtractedParameter], List[Diagnostic]]:
    """Parse (entry name, xml text) pairs into one flat parameter table"""
    table: List[ExtractedParameter] = []
    diagnostics: List[Diagnostic] = []
    for source, xml_text in entries:
        parameters, problems = parse_policy(xml_text, source)
        table.extend(parameters)
        diagnostics.extend(problems)
        if parameters:
            logger.debug(f"{source}: {len(parameters)} parameter(s)")
    return table, diagnostics


def lookup(table: List[ExtractedParameter], policy_name: str) -> List[ExtractedParameter]:
    """All table entries declared by the named policy, in table order"""
    return [p for p in table if p.policy_name == policy_name]
