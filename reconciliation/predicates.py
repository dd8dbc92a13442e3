"""
Predicates

First-class filter values over device records. Predicates compose with ``&``,
``|`` and ``~`` and only read records, so filtering can never disturb the
annotation state of a snapshot.

Filter expressions typed on the command line are parsed into the same objects:

    ad and not aad and not intune
    aad and (not intune or trustType = Workplace)
"""

import re
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple, Union

from .config import NameMatcher
from .exceptions import PredicateSyntaxError
from .models.device_record import DeviceRecord, DeviceSource


class Predicate:
    """A named boolean test over a DeviceRecord."""

    def __init__(self, func: Callable[[DeviceRecord], Any], description: str = "<predicate>"):
        self._func = func
        self.description = description

    def __call__(self, record: DeviceRecord) -> bool:
        return bool(self._func(record))

    def __and__(self, other: "PredicateLike") -> "Predicate":
        other = as_predicate(other)
        return Predicate(
            lambda record: self(record) and other(record),
            f"({self.description} and {other.description})",
        )

    def __or__(self, other: "PredicateLike") -> "Predicate":
        other = as_predicate(other)
        return Predicate(
            lambda record: self(record) or other(record),
            f"({self.description} or {other.description})",
        )

    def __invert__(self) -> "Predicate":
        return Predicate(lambda record: not self(record), f"not {self.description}")

    def __repr__(self) -> str:
        return f"Predicate({self.description})"


PredicateLike = Union[Predicate, Callable[[DeviceRecord], Any]]


def as_predicate(value: PredicateLike) -> Predicate:
    if isinstance(value, Predicate):
        return value
    if callable(value):
        return Predicate(value, getattr(value, "__name__", "<callable>"))
    raise TypeError(f"Cannot use {value!r} as a device predicate")


def presence(source: DeviceSource) -> Predicate:
    return Predicate(lambda record: record.has_presence(source), source.flag_name)


IN_DIRECTORY = presence(DeviceSource.DIRECTORY)
IN_IDENTITY_SERVICE = presence(DeviceSource.IDENTITY_SERVICE)
IN_DEVICE_MANAGEMENT = presence(DeviceSource.DEVICE_MANAGEMENT)


def attribute_equals(key: str, value: Any) -> Predicate:
    """Exact comparison of a pass-through attribute."""
    return Predicate(
        lambda record: record.attributes.get(key) == value, f"{key} == {value!r}"
    )


def attribute_matches(key: str, text: str) -> Predicate:
    """Case-insensitive comparison of an attribute's text form, for typed expressions."""
    expected = text.casefold()

    def check(record: DeviceRecord) -> bool:
        actual = record.attributes.get(key)
        return actual is not None and str(actual).casefold() == expected

    return Predicate(check, f"{key} = {text}")


def name_equals(name: str, name_matcher: Optional[NameMatcher] = None) -> Predicate:
    matcher = name_matcher or NameMatcher()
    return Predicate(lambda record: matcher.matches(record.name, name), f"name = {name}")


# ============================================================================
# STANDARD QUERIES
# ============================================================================


class StandardQuery(NamedTuple):
    name: str
    source: DeviceSource
    predicate: Predicate
    description: str


_STANDARD_QUERY_LIST = [
    StandardQuery(
        "directory-only",
        DeviceSource.DIRECTORY,
        IN_DIRECTORY & ~IN_IDENTITY_SERVICE & ~IN_DEVICE_MANAGEMENT,
        "AD computers missing from both Entra ID and Intune",
    ),
    StandardQuery(
        "directory-not-in-identity",
        DeviceSource.DIRECTORY,
        IN_DIRECTORY & ~IN_IDENTITY_SERVICE,
        "AD computers that never synced to Entra ID",
    ),
    StandardQuery(
        "directory-not-managed",
        DeviceSource.DIRECTORY,
        IN_DIRECTORY & IN_IDENTITY_SERVICE & ~IN_DEVICE_MANAGEMENT,
        "AD computers in Entra ID but not enrolled in Intune",
    ),
    StandardQuery(
        "fully-registered",
        DeviceSource.DIRECTORY,
        IN_DIRECTORY & IN_IDENTITY_SERVICE & IN_DEVICE_MANAGEMENT,
        "AD computers present in all three systems",
    ),
    StandardQuery(
        "identity-not-in-directory",
        DeviceSource.IDENTITY_SERVICE,
        IN_IDENTITY_SERVICE & ~IN_DIRECTORY,
        "Entra ID devices with no matching AD computer",
    ),
    StandardQuery(
        "identity-not-managed",
        DeviceSource.IDENTITY_SERVICE,
        IN_IDENTITY_SERVICE & ~IN_DEVICE_MANAGEMENT,
        "Entra ID devices not enrolled in Intune",
    ),
    StandardQuery(
        "managed-not-in-identity",
        DeviceSource.DEVICE_MANAGEMENT,
        IN_DEVICE_MANAGEMENT & ~IN_IDENTITY_SERVICE,
        "Intune devices whose Entra device id matches nothing",
    ),
    StandardQuery(
        "managed-not-in-directory",
        DeviceSource.DEVICE_MANAGEMENT,
        IN_DEVICE_MANAGEMENT & ~IN_DIRECTORY,
        "Intune devices not traced back to an AD computer",
    ),
]

STANDARD_QUERIES: Dict[str, StandardQuery] = {
    query.name: query for query in _STANDARD_QUERY_LIST
}


# ============================================================================
# EXPRESSION PARSER
# ============================================================================

FLAG_ALIASES: Dict[str, DeviceSource] = {
    "ad": DeviceSource.DIRECTORY,
    "directory": DeviceSource.DIRECTORY,
    "in_directory": DeviceSource.DIRECTORY,
    "aad": DeviceSource.IDENTITY_SERVICE,
    "entra": DeviceSource.IDENTITY_SERVICE,
    "identity": DeviceSource.IDENTITY_SERVICE,
    "in_identity_service": DeviceSource.IDENTITY_SERVICE,
    "intune": DeviceSource.DEVICE_MANAGEMENT,
    "mdm": DeviceSource.DEVICE_MANAGEMENT,
    "managed": DeviceSource.DEVICE_MANAGEMENT,
    "in_device_management": DeviceSource.DEVICE_MANAGEMENT,
}

_TOKEN_PATTERN = re.compile(
    r"""\s*(?:
        (?P<lparen>\()
      | (?P<rparen>\))
      | (?P<op>!=|=)
      | "(?P<dquoted>[^"]*)"
      | '(?P<squoted>[^']*)'
      | (?P<word>[^\s()=!"']+)
    )""",
    re.VERBOSE,
)

Token = Tuple[str, str]


def _tokenize(text: str) -> List[Token]:
    tokens: List[Token] = []
    position = 0
    text = text.rstrip()
    while position < len(text):
        match = _TOKEN_PATTERN.match(text, position)
        if not match or match.end() == position:
            raise PredicateSyntaxError(
                f"Unexpected character {text[position:].strip()[:1]!r} at position {position}"
            )
        kind = match.lastgroup
        value = match.group(kind)
        if kind in ("dquoted", "squoted"):
            kind = "string"
        tokens.append((kind, value))
        position = match.end()
    return tokens


class _ExpressionParser:
    def __init__(self, tokens: List[Token], name_matcher: Optional[NameMatcher]):
        self.tokens = tokens
        self.position = 0
        self.name_matcher = name_matcher

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.position] if self.position < len(self.tokens) else None

    def _next(self) -> Token:
        token = self._peek()
        if token is None:
            raise PredicateSyntaxError("Unexpected end of expression")
        self.position += 1
        return token

    def _at_keyword(self, keyword: str) -> bool:
        token = self._peek()
        return token is not None and token[0] == "word" and token[1].lower() == keyword

    def parse(self) -> Predicate:
        predicate = self._or_expression()
        if self._peek() is not None:
            raise PredicateSyntaxError(f"Unexpected token {self._peek()[1]!r}")
        return predicate

    def _or_expression(self) -> Predicate:
        predicate = self._and_expression()
        while self._at_keyword("or"):
            self._next()
            predicate = predicate | self._and_expression()
        return predicate

    def _and_expression(self) -> Predicate:
        predicate = self._unary()
        while self._at_keyword("and"):
            self._next()
            predicate = predicate & self._unary()
        return predicate

    def _unary(self) -> Predicate:
        if self._at_keyword("not"):
            self._next()
            return ~self._unary()

        kind, value = self._next()
        if kind == "lparen":
            predicate = self._or_expression()
            if self._next()[0] != "rparen":
                raise PredicateSyntaxError("Expected ')'")
            return predicate
        if kind != "word":
            raise PredicateSyntaxError(f"Unexpected token {value!r}")
        return self._atom(value)

    def _atom(self, word: str) -> Predicate:
        token = self._peek()
        if token is None or token[0] != "op":
            source = FLAG_ALIASES.get(word.lower())
            if source is None:
                raise PredicateSyntaxError(
                    f"Unknown flag {word!r}. Use one of: {', '.join(sorted(FLAG_ALIASES))}"
                )
            return presence(source)

        operator = self._next()[1]
        kind, value = self._next()
        if kind not in ("word", "string"):
            raise PredicateSyntaxError(f"Expected a value after {word}{operator}")

        if word.lower() == "name":
            predicate = name_equals(value, self.name_matcher)
        else:
            predicate = attribute_matches(word, value)
        return ~predicate if operator == "!=" else predicate


def parse_predicate(text: str, name_matcher: Optional[NameMatcher] = None) -> Predicate:
    """
    Parse a filter expression into a Predicate.

    Grammar: ``expr := and_expr ("or" and_expr)*``,
    ``and_expr := term ("and" term)*``,
    ``term := "not" term | "(" expr ")" | FLAG | KEY ("=" | "!=") VALUE``.

    Raises:
        PredicateSyntaxError: If the expression is empty or malformed.
    """
    if not text or not text.strip():
        raise PredicateSyntaxError("Filter expression is empty")
    return _ExpressionParser(_tokenize(text), name_matcher).parse()
