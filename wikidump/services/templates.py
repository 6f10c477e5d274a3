#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Template expansion
==================
Finds ``{{name|arg|key=value}}`` invocations in wikitext and replaces each
one with the HTML produced by a registered handler.

Invocations nest (``{{outer|{{inner}}}}``) and may span many lines (an
infobox is one invocation), so spans are found with a brace-depth scanner
rather than a regular expression.  Arguments are expanded before the
invocation that receives them, so handlers only ever see finished text.

Handlers are looked up in a ``TemplateRegistry``: an ordered, immutable list
of bindings, each keyed on an exact template name or a name pattern.  The
first binding that matches wins.  A name with no binding renders as a
visible ``template-unknown`` span holding the original text.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import cached_property
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Optional, Union

from wikidump.core.errors import TemplateDepthError

if TYPE_CHECKING:
    from wikidump.services.renderer import RenderContext


log = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 40

TemplateHandler = Callable[["TemplateInvocation", "RenderContext"], str]

_WS_RE = re.compile(r"\s+")
_NAME_PREFIXES = ("template:", "subst:", "safesubst:", "msgnw:")
_NOT_IN_KEY = frozenset('<>[]{}"')


# -----------------------------------------------------------------------------

def normalize_name(name: str) -> str:
    """Canonical lookup key: trimmed, underscores as spaces, single spaces, casefolded."""
    key = _WS_RE.sub(" ", name.replace("_", " ")).strip().casefold()
    for prefix in _NAME_PREFIXES:
        if key.startswith(prefix):
            key = key[len(prefix):].strip()
    return key


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Scanning
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_OUTSIDE = 0
_CAPTURING = 1


def scan_templates(text: str) -> Iterator[tuple[int, int]]:
    """Yield ``(start, end)`` for every balanced top-level ``{{…}}`` span.

    Outside a span only ``{{`` matters.  Inside one every ``{`` and ``}``
    moves the depth, and the span ends on the ``}`` that brings it back to
    zero, so ``{{{param}}}`` and nested invocations stay whole.  A span still
    open when the text runs out is left as literal text.
    """
    state = _OUTSIDE
    depth = 0
    begin = 0
    i = 0
    n = len(text)
    while i < n:
        if state == _OUTSIDE:
            i = text.find("{{", i)
            if i == -1:
                return
            state, depth, begin = _CAPTURING, 2, i
            i += 2
            continue
        ch = text[i]
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                yield begin, i + 1
                state = _OUTSIDE
        i += 1


def split_arguments(inner: str) -> list[str]:
    """Split the text between the outer braces on top-level ``|`` only.

    Pipes inside a nested invocation or a ``[[link|label]]`` belong to it.
    The first element is the template name.
    """
    parts: list[str] = []
    braces = 0
    brackets = 0
    last = 0
    i = 0
    n = len(inner)
    while i < n:
        if inner.startswith("{{", i):
            braces += 1
            i += 2
            continue
        if braces and inner.startswith("}}", i):
            braces -= 1
            i += 2
            continue
        if inner.startswith("[[", i):
            brackets += 1
            i += 2
            continue
        if brackets and inner.startswith("]]", i):
            brackets -= 1
            i += 2
            continue
        if inner[i] == "|" and not braces and not brackets:
            parts.append(inner[last:i])
            last = i + 1
        i += 1
    parts.append(inner[last:])
    return parts


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Invocations and the registry
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

@dataclass(frozen=True)
class TemplateInvocation:
    name: str
    args: tuple[str, ...] = ()

    @cached_property
    def _split(self) -> tuple[list[str], dict[str, str]]:
        positional: list[str] = []
        named: dict[str, str] = {}
        for arg in self.args:
            key, sep, value = arg.partition("=")
            key = key.strip()
            if sep and key and not (_NOT_IN_KEY & set(key)):
                named[key.casefold()] = value.strip()
            else:
                positional.append(arg.strip())
        return positional, named

    @property
    def key(self) -> str:
        return normalize_name(self.name)

    @property
    def positional(self) -> list[str]:
        return self._split[0]

    @property
    def named(self) -> dict[str, str]:
        return self._split[1]

    def get(self, key: Union[str, int], default: str = "") -> str:
        """Named argument *key* (case-insensitive) or 0-based positional *key*."""
        if isinstance(key, int):
            positional = self.positional
            return positional[key] if key < len(positional) else default
        return self.named.get(key.casefold(), default)

    def first(self, *keys: Union[str, int], default: str = "") -> str:
        """First non-empty value among *keys*."""
        for key in keys:
            value = self.get(key)
            if value:
                return value
        return default


# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class TemplateBinding:
    handler: TemplateHandler
    name: Optional[str] = None
    pattern: Optional[re.Pattern] = field(default=None, compare=False)

    @classmethod
    def exact(cls, name: str, handler: TemplateHandler) -> "TemplateBinding":
        return cls(handler=handler, name=normalize_name(name))

    @classmethod
    def matching(cls, pattern: str, handler: TemplateHandler) -> "TemplateBinding":
        return cls(handler=handler, pattern=re.compile(pattern, re.IGNORECASE))

    def matches(self, key: str) -> bool:
        if self.name is not None:
            return key == self.name
        return self.pattern is not None and self.pattern.fullmatch(key) is not None


class TemplateRegistry:
    """Ordered, read-only set of template bindings."""

    __slots__ = ("_bindings",)

    def __init__(self, bindings: Iterable[TemplateBinding] = ()) -> None:
        self._bindings: tuple[TemplateBinding, ...] = tuple(bindings)

    def match(self, name: str) -> Optional[TemplateHandler]:
        key = normalize_name(name)
        for binding in self._bindings:
            if binding.matches(key):
                return binding.handler
        return None

    def with_binding(self, binding: TemplateBinding) -> "TemplateRegistry":
        """A new registry with *binding* appended after the existing ones."""
        return TemplateRegistry(self._bindings + (binding,))

    def __len__(self) -> int:
        return len(self._bindings)

    def __iter__(self) -> Iterator[TemplateBinding]:
        return iter(self._bindings)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Expansion
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _marked_span(span: str, css_class: str, title: str, ctx: "RenderContext") -> str:
    # Stashed whole: blank lines or leading spaces inside a multi-line span
    # must not reach the table and paragraph stages.
    title = title.replace("&", "&amp;").replace('"', "&quot;").replace("<", "&lt;")
    return ctx.stash(f'<span class="{css_class}" title="{title}">{span}</span>', block="\n" in span)


def unknown_template(span: str, ctx: "RenderContext") -> str:
    return _marked_span(span, "template-unknown", "Unknown template", ctx)


def failed_template(span: str, reason: str, ctx: "RenderContext") -> str:
    return _marked_span(span, "template-error", reason, ctx)


class TemplateExpander:

    def __init__(self, registry: TemplateRegistry, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
        self.registry = registry
        self.max_depth = max_depth

    def expand(self, text: str, ctx: "RenderContext", depth: int = 0) -> str:
        """Replace every top-level invocation in *text*.

        Each span is spliced back at its own position, so two textually
        identical invocations are resolved independently.  At the top level
        a nesting overflow only costs the offending span.
        """
        if "{{" not in text:
            return text

        pieces: list[str] = []
        cursor = 0
        for start, end in scan_templates(text):
            span = text[start:end]
            try:
                html = self.resolve(span, ctx, depth)
            except TemplateDepthError as exc:
                if depth:
                    raise
                log.warning("%s", exc.detail)
                html = failed_template(span, exc.detail, ctx)
            pieces.append(text[cursor:start])
            pieces.append(html)
            cursor = end
        pieces.append(text[cursor:])
        return "".join(pieces)

    def resolve(self, span: str, ctx: "RenderContext", depth: int) -> str:
        """Expand one ``{{…}}`` span, arguments first."""
        if depth >= self.max_depth:
            raise TemplateDepthError(span[2:].split("|", 1)[0].strip()[:60], self.max_depth)

        if span.startswith("{{{") and span.endswith("}}}"):
            # Parameter reference left over from a transcluded page: use its default.
            parts = split_arguments(span[3:-3])
            if len(parts) > 1:
                return self.expand(parts[1], ctx, depth + 1)
            return span

        parts = split_arguments(span[2:-2])
        name = self.expand(parts[0], ctx, depth + 1).strip()
        args = tuple(self.expand(arg, ctx, depth + 1) for arg in parts[1:])

        handler = self.registry.match(name)
        if handler is None:
            return unknown_template(span, ctx)

        invocation = TemplateInvocation(name, args)
        try:
            return handler(invocation, ctx)
        except TemplateDepthError:
            raise
        except Exception:
            log.exception("Template handler for '%s' failed", name)
            return failed_template(span, f"Template '{name}' failed to render", ctx)


# -----------------------------------------------------------------------------
