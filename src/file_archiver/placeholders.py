"""
Placeholder evaluation for templated strings.

A placeholder is ``{name}`` or ``{name:format}``: the name is one or more
ASCII letters or digits, the format is anything up to the closing brace.
The evaluator does not know any placeholder itself; the caller supplies a
resolver that turns ``(raw, name, format)`` into text.

Usage:
    from file_archiver.placeholders import evaluate_string

    evaluate_string("logs_{Date:yyyyMMdd}.zip", resolver)
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, List, Optional

from .errors import InvalidArgumentError

PLACEHOLDER_PATTERN = re.compile(r"\{[a-zA-Z0-9]+(?::[^}]*)?\}")

PlaceholderResolver = Callable[[str, str, Optional[str]], str]


@dataclass(frozen=True)
class PlaceholderToken:
    raw: str
    name: str
    format: Optional[str] = None

    @classmethod
    def parse(cls, raw: str) -> PlaceholderToken:
        """Split a raw ``{name:format}`` token into its parts."""
        name, sep, fmt = raw[1:-1].partition(":")
        return cls(raw=raw, name=name, format=fmt if sep else None)


def find_placeholders(template: str) -> List[PlaceholderToken]:
    """Distinct tokens of ``template`` in order of first appearance."""
    seen: set[str] = set()
    tokens: List[PlaceholderToken] = []
    for match in PLACEHOLDER_PATTERN.finditer(template):
        raw = match.group(0)
        if raw in seen:
            continue
        seen.add(raw)
        tokens.append(PlaceholderToken.parse(raw))
    return tokens


def evaluate_string(template: str, resolve: Optional[PlaceholderResolver]) -> str:
    """
    Replace every placeholder of ``template`` with the resolver's output.

    Each distinct token is resolved once and all of its occurrences are
    replaced in the working string. Replacement is textual, so a resolved
    value that spells out a later token is itself replaced when that token's
    turn comes.

    Args:
        template: String to evaluate
        resolve: Callable receiving ``(raw, name, format)``; format is None
            when the token has no ``:format`` part

    Returns:
        The evaluated string

    Raises:
        InvalidArgumentError: If ``resolve`` is None
    """
    if resolve is None:
        raise InvalidArgumentError("resolve cannot be None.")

    result = template
    for token in find_placeholders(template):
        result = result.replace(token.raw, resolve(token.raw, token.name, token.format))
    return result
