"""Regex helpers shared by data queries and regex based field actions."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ...errors import ConfigError

# $$ | ${name} | $name
_TEMPLATE_TOKEN = re.compile(r"\$\$|\$\{(?P<braced>\w+)\}|\$(?P<bare>\w+)")


def compile_pattern(pattern: str) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ConfigError(f"Invalid regular expression {pattern!r}: {exc}") from exc


@dataclass(slots=True)
class RegexReplace:
    """Substitute capture groups of ``pattern`` into ``template``.

    The template references groups as ``$1``, ``${1}``, ``$name`` or
    ``${name}``; ``$$`` is a literal dollar sign. Groups that did not
    participate in the match expand to an empty string.
    """

    pattern: str
    template: str
    _compiled: re.Pattern[str] = field(init=False, repr=False)
    _tokens: list[tuple[bool, str | int]] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._compiled = compile_pattern(self.pattern)
        self._tokens = _parse_template(self.template)

    def apply(self, text: str) -> str | None:
        """Replace the first match; ``None`` when the pattern does not match."""

        match = self._compiled.search(text)
        if match is None:
            return None
        return text[: match.start()] + self._expand(match) + text[match.end() :]

    def replace(self, text: str) -> str:
        """Like :meth:`apply` but leaves ``text`` untouched when nothing matches."""

        result = self.apply(text)
        return text if result is None else result

    def _expand(self, match: re.Match[str]) -> str:
        parts: list[str] = []
        for is_ref, value in self._tokens:
            if not is_ref:
                parts.append(str(value))
                continue
            try:
                parts.append(match.group(value) or "")
            except IndexError:
                # unknown group
                parts.append("")
        return "".join(parts)


def _parse_template(template: str) -> list[tuple[bool, str | int]]:
    tokens: list[tuple[bool, str | int]] = []
    position = 0
    for match in _TEMPLATE_TOKEN.finditer(template):
        if match.start() > position:
            tokens.append((False, template[position : match.start()]))
        name = match.group("braced") or match.group("bare")
        if name is None:
            tokens.append((False, "$"))
        elif name.isdigit():
            tokens.append((True, int(name)))
        else:
            tokens.append((True, name))
        position = match.end()
    if position < len(template):
        tokens.append((False, template[position:]))
    return tokens


def extract_captures(pattern: re.Pattern[str], text: str) -> str | None:
    """Concatenate every capture group of the first match, ``None`` if unmatched."""

    match = pattern.search(text)
    if match is None:
        return None
    return "".join(group for group in match.groups() if group is not None)


__all__ = ["RegexReplace", "compile_pattern", "extract_captures"]
