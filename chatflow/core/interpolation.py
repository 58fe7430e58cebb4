# chatflow/core/interpolation.py
"""
``{{name}}`` placeholder substitution for node texts.
"""

from typing import Mapping
import re

PLACEHOLDER_PATTERN = re.compile(r"\{\{(\w+)\}\}", re.ASCII)


def interpolate(text: str, variables: Mapping[str, str]) -> str:
    """
    Replace ``{{name}}`` placeholders with session variables.

    A placeholder whose variable is missing or empty is left exactly as
    written, so the author can see which variable was not collected.
    Never raises for unknown names.
    """
    if not text or "{{" not in text:
        return text

    def _substitute(match: "re.Match[str]") -> str:
        value = variables.get(match.group(1))
        return value if value else match.group(0)

    return PLACEHOLDER_PATTERN.sub(_substitute, text)


def placeholders(text: str) -> list:
    """Names referenced by ``{{...}}`` placeholders, in order of appearance."""
    return PLACEHOLDER_PATTERN.findall(text or "")
