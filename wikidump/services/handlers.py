#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Built-in template handlers
==========================
The templates most Wikipedia articles lean on: hatnotes, citations,
footnotes, infoboxes, quotes, dates, units and inline formatting.  Page
furniture that makes no sense offline (navboxes, maintenance banners, short
descriptions, sort keys) renders as nothing.

Anything not covered here shows up as a ``template-unknown`` span.  To add
handlers, extend the registry returned by ``default_registry()`` with
``TemplateRegistry.with_binding()``.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import calendar
import html
import re
from datetime import date
from functools import lru_cache
from typing import TYPE_CHECKING, Optional

from wikidump.services.templates import (
    TemplateBinding, TemplateHandler, TemplateInvocation, TemplateRegistry,
)

if TYPE_CHECKING:
    from wikidump.services.renderer import RenderContext


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _join_links(ctx: "RenderContext", targets: list[str]) -> str:
    links = [ctx.link(t) for t in targets if t]
    if len(links) <= 2:
        return " and ".join(links)
    return ", ".join(links[:-1]) + ", and " + links[-1]


def _hatnote(text: str) -> str:
    return f'<div class="hatnote">{text}</div>'


def _int(value: str) -> Optional[int]:
    try:
        return int(value.strip())
    except ValueError:
        return None


def _format_date(year: str, month: str = "", day: str = "", day_first: bool = False) -> str:
    y, m, d = _int(year), _int(month), _int(day)
    if y is None:
        return year
    if m is None or not 1 <= m <= 12:
        return str(y)
    month_name = calendar.month_name[m]
    if d is None:
        return f"{month_name} {y}"
    return f"{d} {month_name} {y}" if day_first else f"{month_name} {d}, {y}"


def _age(born: tuple[int, int, int], on: tuple[int, int, int]) -> int:
    return on[0] - born[0] - ((on[1], on[2]) < (born[1], born[2]))


def _date_parts(values: list[str]) -> Optional[tuple[int, int, int]]:
    parts = [_int(v) for v in values[:3]]
    if len(parts) < 3 or None in parts:
        return None
    return parts[0], parts[1], parts[2]  # type: ignore[return-value]


def _day_first(inv: TemplateInvocation) -> bool:
    return inv.first("df").lower() in ("y", "yes", "1")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Hatnotes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def main_article(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    targets = inv.positional
    label = "Main articles" if len(targets) > 1 else "Main article"
    return _hatnote(f"{label}: {_join_links(ctx, targets)}")


def see_also(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return _hatnote(f"See also: {_join_links(ctx, inv.positional)}")


def further(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return _hatnote(f"Further information: {_join_links(ctx, inv.positional)}")


def about(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    args = inv.positional
    text = f"This article is about {args[0]}." if args and args[0] else "This article is about the subject."
    if len(args) >= 3:
        text += f" For {args[1] or 'other uses'}, see {ctx.link(args[2])}."
    return _hatnote(text)


def for_other(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    args = inv.positional
    if len(args) < 2:
        return ""
    return _hatnote(f"For {args[0] or 'other uses'}, see {_join_links(ctx, args[1:])}.")


def redirect_note(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    args = inv.positional
    if not args:
        return ""
    text = f"&quot;{args[0]}&quot; redirects here."
    if len(args) >= 3:
        text += f" For {args[1] or 'other uses'}, see {ctx.link(args[2])}."
    return _hatnote(text)


def distinguish(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return _hatnote(f"Not to be confused with {_join_links(ctx, inv.positional)}.")


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Citations and footnotes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_CITE_HIDDEN = frozenset({"ref", "mode", "df", "postscript", "url-status", "name-list-style"})


def _cite_authors(inv: TemplateInvocation) -> str:
    authors: list[str] = []
    for n in ("", "1", "2", "3", "4"):
        last = inv.first(f"last{n}", f"author{n}")
        first = inv.get(f"first{n}")
        if last:
            authors.append(f"{last}, {first}" if first else last)
    if len(authors) > 3:
        authors = authors[:3] + ["et al."]
    return "; ".join(authors)


def cite(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    """{{cite web|url=…|title=…|…}} and friends.

    The visible text is a compact citation; every argument is also kept in a
    hidden ``citation-table`` which the page script shows on hover.
    """
    title = inv.first("title", "chapter", "script-title", default="")
    url = inv.first("url", "chapter-url")
    work = inv.first("work", "website", "journal", "newspaper", "magazine", "publisher")
    when = inv.first("date", "year")

    parts: list[str] = []
    authors = _cite_authors(inv)
    if authors:
        parts.append(f"{authors}.")
    if title:
        shown = ctx.external_link(url, f"&quot;{title}&quot;") if url else f"&quot;{title}&quot;"
        parts.append(f"{shown}.")
    if work:
        parts.append(f"<i>{work}</i>.")
    if when:
        parts.append(f"{when}.")
    if inv.get("isbn"):
        parts.append(f"ISBN {inv.get('isbn')}.")
    if inv.get("access-date"):
        parts.append(f"Retrieved {inv.get('access-date')}.")

    rows = "".join(
        f"<tr><th>{html.escape(key)}</th><td>{value}</td></tr>"
        for key, value in inv.named.items()
        if value and key not in _CITE_HIDDEN
    )
    return (
        f'<cite class="citation citation-marker">{" ".join(parts)}'
        f'<table class="citation-table">{rows}</table></cite>'
    )


def reflist(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return ctx.references_html()


def sfn(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    """Short footnote: {{sfn|Author|Year|p=12}}."""
    note = " ".join(a for a in inv.positional if a)
    page = inv.first("p", "page")
    pages = inv.first("pp", "pages")
    if page:
        note += f", p. {page}"
    elif pages:
        note += f", pp. {pages}"
    return ctx.add_footnote(note + ".", name=f"sfn:{note}")


def efn(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return ctx.add_footnote(inv.first(0, "text"), name=inv.get("name") or None)


def citation_needed(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return '<sup class="noprint inline-template">[<i>citation needed</i>]</sup>'


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Infobox
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_INFOBOX_SKIP_RE = re.compile(
    r"^(?:name|title|image\w*|logo\w*|alt\w*|caption\w*|map\w*|signature\w*|"
    r"embed\w*|module\w*|child|bodyclass|\w*style)$"
)


def infobox(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    kind = inv.key[len("infobox"):].strip().capitalize()
    caption = inv.first("name", "title", default=kind)
    rows: list[str] = []
    for key, value in inv.named.items():
        if not value or _INFOBOX_SKIP_RE.match(key):
            continue
        label = key.replace("_", " ").strip().capitalize()
        rows.append(f"<tr><th>{html.escape(label)}</th><td>{value}</td></tr>")
    cap = f"<caption>{caption}</caption>" if caption else ""
    return f'<table class="infobox">{cap}{"".join(rows)}</table>'


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Inline formatting
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def quote(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    text = inv.first("text", "quote", 0)
    author = inv.first("author", "sign", 1)
    source = inv.first("source", "title", 2)
    attribution = ", ".join(p for p in (author, source) if p)
    cite_html = f"<cite>&mdash; {attribution}</cite>" if attribution else ""
    return f'<blockquote class="templatequote"><p>{text}</p>{cite_html}</blockquote>'


def lang(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    code = html.escape(inv.get(0), quote=True)
    return f'<span lang="{code}">{inv.get(1)}</span>'


def lang_prefixed(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    # {{lang-fr|texte}}: the language code is part of the template name
    code = html.escape(inv.key.partition("-")[2], quote=True)
    return f'<i lang="{code}">{inv.get(0)}</i>'


def nowrap(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return f'<span class="nowrap">{inv.get(0)}</span>'


def small(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return f"<small>{inv.get(0)}</small>"


def abbr(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return f'<abbr title="{html.escape(inv.get(1), quote=True)}">{inv.get(0)}</abbr>'


def ipa(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    if inv.key.startswith("ipac"):
        text = "/" + "".join(inv.positional) + "/"
    else:
        text = inv.get(0)
    return f'<span class="ipa">{text}</span>'


def sic(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return "[<i>sic</i>]"


def circa(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return f'<abbr title="circa">c.</abbr>&#160;{inv.get(0)}'


def literal(value: str) -> TemplateHandler:
    def _literal(inv: TemplateInvocation, ctx: "RenderContext") -> str:
        return value
    return _literal


def silent(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Dates, units, places
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def start_date(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    return _format_date(inv.get(0), inv.get(1), inv.get(2), _day_first(inv))


def birth_date_and_age(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    shown = _format_date(inv.get(0), inv.get(1), inv.get(2), _day_first(inv))
    born = _date_parts(inv.positional)
    if born is None:
        return shown
    today = date.today()
    return f"{shown} (age&#160;{_age(born, (today.year, today.month, today.day))})"


def death_date_and_age(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    shown = _format_date(inv.get(0), inv.get(1), inv.get(2), _day_first(inv))
    died = _date_parts(inv.positional)
    born = _date_parts(inv.positional[3:])
    if died is None or born is None:
        return shown
    return f"{shown} (aged&#160;{_age(born, died)})"


_RANGE_WORDS = frozenset({"to", "-", "and", "or", "by", "x", "&", "–"})


def convert(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    """{{convert|5|km|mi}} → "5 km"; {{convert|5|to|10|km}} → "5 to 10 km"."""
    args = inv.positional
    if not args:
        return ""
    if len(args) >= 4 and args[1] in _RANGE_WORDS:
        return f"{args[0]} {args[1]} {args[2]}&#160;{args[3]}"
    if len(args) >= 2:
        return f"{args[0]}&#160;{args[1]}"
    return args[0]


_HEMISPHERES = frozenset("NSEW")
_COORD_MARKS = ("°", "′", "″")


def coord(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    """{{coord|40|42|46|N|74|00|21|W}} → 40°42′46″N 74°00′21″W."""
    if "title" in inv.named.get("display", "") and "inline" not in inv.named.get("display", ""):
        return ""
    halves: list[str] = []
    current: list[str] = []
    for arg in inv.positional:
        if arg.upper() in _HEMISPHERES:
            marks = "".join(f"{value}{_COORD_MARKS[i]}" for i, value in enumerate(current[:3]))
            halves.append(marks + arg.upper())
            current = []
        elif ":" not in arg:
            current.append(arg)
    if not halves and len(current) >= 2:
        halves = [f"{current[0]}°", f"{current[1]}°"]
    return f'<span class="geo">{" ".join(halves)}</span>' if halves else ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Links
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def url_link(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    target = inv.get(0)
    if not target:
        return ""
    href = target if "://" in target or target.startswith("//") else f"http://{target}"
    return ctx.external_link(href, inv.get(1) or target)


def official_website(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    target = inv.first(0, "url")
    return ctx.external_link(target, inv.get(1) or "Official website") if target else ""


def interlanguage_link(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    target = inv.get(0)
    return ctx.link(target, inv.first("lt", default=target)) if target else ""


def flag(inv: TemplateInvocation, ctx: "RenderContext") -> str:
    country = inv.get(0)
    return ctx.link(country) if country else ""


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Registry
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_EXACT: list[tuple[tuple[str, ...], TemplateHandler]] = [
    (("!",), literal("|")),
    (("=",), literal("=")),
    (("main", "main article"), main_article),
    (("see also", "see also2"), see_also),
    (("further", "further information", "details"), further),
    (("about",), about),
    (("for",), for_other),
    (("redirect", "redirect-distinguish"), redirect_note),
    (("distinguish",), distinguish),
    (("citation",), cite),
    (("reflist", "references", "notelist", "notes"), reflist),
    (("sfn", "harvnb", "sfnp"), sfn),
    (("efn", "efn-ua", "efn-lr"), efn),
    (("citation needed", "cn", "fact", "citation-needed"), citation_needed),
    (("quote", "blockquote", "quotation", "cquote"), quote),
    (("lang",), lang),
    (("nowrap", "nobr"), nowrap),
    (("small",), small),
    (("abbr",), abbr),
    (("sic",), sic),
    (("circa", "c."), circa),
    (("br", "break"), literal("<br>")),
    (("clear", "clear left", "clear right"), literal('<div style="clear:both"></div>')),
    (("mdash", "em dash", "emdash"), literal("&mdash;")),
    (("ndash", "en dash", "endash"), literal("&ndash;")),
    (("snd", "spaced ndash", "spnd"), literal("&#160;&ndash; ")),
    (("nbsp",), literal("&#160;")),
    (("start date", "start date and age", "end date", "birth date", "death date",
      "date", "dts", "film date"), start_date),
    (("birth date and age", "bda"), birth_date_and_age),
    (("death date and age", "dda"), death_date_and_age),
    (("convert", "cvt"), convert),
    (("coord",), coord),
    (("url",), url_link),
    (("official website", "official"), official_website),
    (("ill", "interlanguage link", "interlanguage link multi"), interlanguage_link),
    (("flag", "flagcountry", "flagu"), flag),
    (("short description", "good article", "featured article", "authority control",
      "italic title", "toc", "toc limit", "tocright", "toc right", "portal", "portal bar",
      "commons", "commons category", "wiktionary", "wikiquote", "wikisource",
      "sister project links", "taxonbar", "refbegin", "refend", "multiple issues",
      "engvarb", "featured list", "spoken wikipedia", "flagicon",
      "dablink", "anchor", "wikibooks", "stack", "stack begin", "stack end",
      "external media", "reflist-talk", "lowercase title"), silent),
]

_PATTERNS: list[tuple[str, TemplateHandler]] = [
    (r"cite[ _].+", cite),
    (r"infobox(?:[ _].*)?", infobox),
    (r"lang-[\w-]+", lang_prefixed),
    (r"ipa(?:c)?(?:-[\w-]+)?", ipa),
    (r"defaultsort:.*", silent),
    (r"displaytitle:.*", silent),
    (r"use [\w ]+(?:dates|english|spelling)", silent),
    (r"pp(?:-[\w-]+)?", silent),
    (r".*(?:navbox|sidebar|footer|-stub|stub)", silent),
    (r"(?:more citations needed|refimprove|unreferenced|cleanup|update|citation style|"
     r"primary sources|original research|peacock|tone|copy edit|expand section)(?: .*)?", silent),
]


@lru_cache
def default_registry() -> TemplateRegistry:
    """The built-in handler set.  Built once; shared read-only by every engine."""
    bindings: list[TemplateBinding] = []
    for names, handler in _EXACT:
        bindings.extend(TemplateBinding.exact(name, handler) for name in names)
    for pattern, handler in _PATTERNS:
        bindings.append(TemplateBinding.matching(pattern, handler))
    return TemplateRegistry(bindings)


# -----------------------------------------------------------------------------
