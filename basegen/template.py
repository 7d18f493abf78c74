"""Structured artifact template and its renderer.

A template is an ordered tuple of sections.  Fixed sections always
render; conditional sections render only when their capability was
found, with ``{{ packages }}`` replaced by the winning candidate.
Rendering is a pure function of (template, results).
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

from basegen.probe import Outcome

PACKAGES_PLACEHOLDER = "{{ packages }}"


class TemplateError(Exception):
    """The template is malformed (a programming error, not a runtime one)."""


@dataclass(frozen=True)
class FixedSection:
    text: str


@dataclass(frozen=True)
class ConditionalSection:
    capability: str
    text: str


Section = FixedSection | ConditionalSection


@dataclass(frozen=True)
class Template:
    sections: tuple[Section, ...] = ()


def _render_section(section: Section, results: Mapping[str, Outcome]) -> str | None:
    if isinstance(section, FixedSection):
        return section.text.strip("\n")
    if isinstance(section, ConditionalSection):
        try:
            outcome = results[section.capability]
        except KeyError:
            raise TemplateError(
                f"section references unknown capability: {section.capability}"
            ) from None
        if not outcome.available:
            return None
        packages = " ".join(outcome.candidate)
        return section.text.replace(PACKAGES_PLACEHOLDER, packages).strip("\n")
    raise TemplateError(f"unsupported section type: {type(section).__name__}")


def render(template: Template, results: Mapping[str, Outcome]) -> str:
    """Render *template* against *results*.

    Blocks are separated by one blank line and the output ends with a
    single newline.
    """
    blocks: list[str] = []
    for section in template.sections:
        block = _render_section(section, results)
        if block:
            blocks.append(block)
    return "\n\n".join(blocks) + "\n"
