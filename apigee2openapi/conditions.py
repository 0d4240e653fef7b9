"""Flow condition interpreter.

Apigee guards conditional flows with expressions such as::

    (proxy.pathsuffix MatchesPath "/orders/{id}") and (request.verb = "GET")

The expression is tokenized and parsed into a small AST; the HTTP method
and path-suffix constraints are then read off the comparisons, each one
independently and in whatever order they appear.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple, Union

from .errors import ConditionSyntaxError
from .models import FlowCondition

# ==================== TOKENS ====================

LPAREN = 'LPAREN'
RPAREN = 'RPAREN'
STRING = 'STRING'
WORD = 'WORD'
AND = 'AND'
OR = 'OR'
NOT = 'NOT'
OPERATOR = 'OPERATOR'

# Longest first so that "==" is not read as "=" "="
SYMBOLS = (
    ('&&', AND), ('||', OR),
    ('==', OPERATOR), ('!=', OPERATOR), (':=', OPERATOR), ('=|', OPERATOR),
    ('~~', OPERATOR), ('~/', OPERATOR), ('<=', OPERATOR), ('>=', OPERATOR),
    ('=', OPERATOR), ('~', OPERATOR), ('<', OPERATOR), ('>', OPERATOR),
    ('!', NOT),
)

WORD_OPERATORS = {
    'equals', 'notequals', 'is', 'isnot', 'equalscaseinsensitive',
    'greaterthan', 'greaterthanorequals', 'lessthan', 'lessthanorequals',
    'startswith', 'matches', 'like', 'javaregex', 'matchespath', 'likepath',
}

WORD_PATTERN = re.compile(r'(?:[^\s()"=!~<>&|:]|:(?!=))+')

METHOD_VARIABLE = 'request.verb'
PATH_SUFFIX_VARIABLE = 'proxy.pathsuffix'
EQUALITY_OPERATORS = {'=', '==', 'equals', 'is'}
PATH_MATCH_OPERATORS = {'matchespath', 'likepath', '~/'}


@dataclass(frozen=True)
class Token:
    kind: str
    text: str
    position: int


def _read_string(expression: str, start: int) -> Tuple[Optional[str], int]:
    """Text of the literal opening at ``start`` and the index after it

    ``\\"`` stands for a quote inside the literal. The text is None when the
    closing quote is missing.
    """
    chars = []
    pos = start + 1
    while pos < len(expression):
        char = expression[pos]
        if char == '\\' and expression.startswith('"', pos + 1):
            chars.append('"')
            pos += 2
            continue
        if char == '"':
            return ''.join(chars), pos + 1
        chars.append(char)
        pos += 1
    return None, pos


def tokenize(expression: str, lenient: bool = False) -> List[Token]:
    """
    Split a condition expression into tokens

    Args:
        expression: Condition text
        lenient: Close an unterminated literal at the end of the text and
            drop unknown characters instead of raising

    Raises:
        ConditionSyntaxError: on an unterminated literal or an unknown
            character, unless ``lenient`` is set
    """
    tokens = []
    pos = 0
    length = len(expression)
    while pos < length:
        char = expression[pos]
        if char.isspace():
            pos += 1
            continue
        if char == '(':
            tokens.append(Token(LPAREN, char, pos))
            pos += 1
            continue
        if char == ')':
            tokens.append(Token(RPAREN, char, pos))
            pos += 1
            continue
        if char == '"':
            text, end = _read_string(expression, pos)
            if text is None:
                if not lenient:
                    raise ConditionSyntaxError("Unterminated string literal", expression, pos)
                text = expression[pos + 1:]
            tokens.append(Token(STRING, text, pos))
            pos = end
            continue

        for symbol, kind in SYMBOLS:
            if expression.startswith(symbol, pos):
                tokens.append(Token(kind, symbol, pos))
                pos += len(symbol)
                break
        else:
            match = WORD_PATTERN.match(expression, pos)
            if not match:
                if lenient:
                    pos += 1
                    continue
                raise ConditionSyntaxError(f"Unexpected character {char!r}", expression, pos)
            word = match.group(0)
            lowered = word.lower()
            if lowered == 'and':
                kind = AND
            elif lowered == 'or':
                kind = OR
            elif lowered == 'not':
                kind = NOT
            elif lowered in WORD_OPERATORS:
                kind = OPERATOR
            else:
                kind = WORD
            tokens.append(Token(kind, word, pos))
            pos = match.end()
    return tokens


# ==================== AST ====================

@dataclass(frozen=True)
class Operand:
    text: str
    quoted: bool


@dataclass(frozen=True)
class Comparison:
    left: Operand
    operator: Optional[str] = None
    right: Optional[Operand] = None


@dataclass(frozen=True)
class Not:
    operand: 'Node'


@dataclass(frozen=True)
class BoolOp:
    op: str  # AND / OR
    operands: Tuple['Node', ...]


Node = Union[Comparison, Not, BoolOp]


class _Parser:
    """Recursive-descent parser over the token list"""

    def __init__(self, expression: str):
        self.expression = expression
        self.tokens = tokenize(expression)
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _advance(self) -> Token:
        token = self.tokens[self.pos]
        self.pos += 1
        return token

    def _error(self, message: str, token: Optional[Token] = None):
        position = token.position if token else len(self.expression)
        raise ConditionSyntaxError(message, self.expression, position)

    def parse(self) -> Node:
        if not self.tokens:
            self._error("Empty condition")
        node = self._or_expr()
        token = self._peek()
        if token is not None:
            self._error(f"Unexpected {token.text!r}", token)
        return node

    def _or_expr(self) -> Node:
        operands = [self._and_expr()]
        while self._peek() is not None and self._peek().kind == OR:
            self._advance()
            operands.append(self._and_expr())
        return operands[0] if len(operands) == 1 else BoolOp(OR, tuple(operands))

    def _and_expr(self) -> Node:
        operands = [self._unary()]
        while self._peek() is not None and self._peek().kind == AND:
            self._advance()
            operands.append(self._unary())
        return operands[0] if len(operands) == 1 else BoolOp(AND, tuple(operands))

    def _unary(self) -> Node:
        token = self._peek()
        if token is not None and token.kind == NOT:
            self._advance()
            return Not(self._unary())
        return self._primary()

    def _primary(self) -> Node:
        token = self._peek()
        if token is None:
            self._error("Unexpected end of condition")
        if token.kind == LPAREN:
            self._advance()
            node = self._or_expr()
            closing = self._peek()
            if closing is None or closing.kind != RPAREN:
                self._error("Missing closing parenthesis", closing)
            self._advance()
            return node
        if token.kind in (WORD, STRING):
            left = self._operand()
            operator = self._peek()
            if operator is None or operator.kind != OPERATOR:
                return Comparison(left)
            self._advance()
            right = self._peek()
            if right is None or right.kind not in (WORD, STRING):
                self._error(f"Missing operand after {operator.text!r}", right)
            return Comparison(left, operator.text, self._operand())
        self._error(f"Unexpected {token.text!r}", token)

    def _operand(self) -> Operand:
        token = self._advance()
        return Operand(token.text, token.kind == STRING)


def parse_condition(expression: str) -> Node:
    """
    Parse a condition expression into an AST

    Raises:
        ConditionSyntaxError: if the expression is not well formed
    """
    return _Parser(expression).parse()


def iter_comparisons(node: Node, negated: bool = False) -> Iterator[Tuple[Comparison, bool]]:
    """Yield (comparison, negated) pairs in source order"""
    if isinstance(node, Comparison):
        yield node, negated
    elif isinstance(node, Not):
        yield from iter_comparisons(node.operand, not negated)
    else:
        for operand in node.operands:
            yield from iter_comparisons(operand, negated)


def _is_constraint(comparison: Comparison, variable: str, operators) -> bool:
    return (
        not comparison.left.quoted
        and comparison.left.text.lower() == variable
        and comparison.operator is not None
        and comparison.operator.lower() in operators
        and comparison.right is not None
        and comparison.right.quoted
        and bool(comparison.right.text)
    )


def _pick_constraints(comparisons: Iterable[Comparison]) -> Tuple[Optional[str], Optional[str]]:
    """First method and first path-suffix constraint among the comparisons"""
    method = None
    path_suffix = None
    for comparison in comparisons:
        if method is None and _is_constraint(comparison, METHOD_VARIABLE, EQUALITY_OPERATORS):
            method = comparison.right.text.lower()
        elif path_suffix is None and _is_constraint(comparison, PATH_SUFFIX_VARIABLE, PATH_MATCH_OPERATORS):
            path_suffix = comparison.right.text
    return method, path_suffix


def interpret_condition(expression: Optional[str]) -> FlowCondition:
    """
    Recover the method and path-suffix constraints of a flow condition

    Args:
        expression: Condition text; None or blank for a default flow

    Returns:
        FlowCondition; both constraints are None when the expression is
        valid but routes on something else

    Raises:
        ConditionSyntaxError: if the expression is not well formed
    """
    if expression is None or not expression.strip():
        return FlowCondition(expression=expression)

    # Comparisons under not/! never route a flow, unlike a plain text scan
    # of the expression, which would take e.g. the suffix in
    # !(proxy.pathsuffix MatchesPath "/health").
    method, path_suffix = _pick_constraints(
        comparison
        for comparison, negated in iter_comparisons(parse_condition(expression))
        if not negated
    )
    return FlowCondition(expression=expression, method=method, path_suffix=path_suffix)


def recover_condition(expression: str) -> FlowCondition:
    """
    Best-effort constraints of a condition that does not parse

    Every ``variable operator "literal"`` run in the token stream is read
    as a comparison, ignoring grouping and negation.
    """
    tokens = tokenize(expression, lenient=True)
    comparisons = [
        Comparison(Operand(left.text, False), operator.text, Operand(right.text, True))
        for left, operator, right in zip(tokens, tokens[1:], tokens[2:])
        if left.kind == WORD and operator.kind == OPERATOR and right.kind == STRING
    ]
    method, path_suffix = _pick_constraints(comparisons)
    return FlowCondition(expression=expression, method=method, path_suffix=path_suffix)
