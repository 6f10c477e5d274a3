#!/usr/bin/env python
#
#
# -----------------------------------------------------------------------------
"""
Markup renderer
===============
Converts MediaWiki wikitext to HTML.

The conversion runs as a fixed sequence of whole-text stages, each seeing the
output of the one before it:

    pre-pass     comments, magic words, <nowiki>/<pre>/<syntaxhighlight>/<math>
                 stashed out of reach, <ref> footnotes collected
    headers      = H1 =  /  == H2 ==  / ... / ====== H6 ======
    emphasis     '''''bold-italic'''''  /  '''bold'''  /  ''italic''
    lists        * item  /  ** nested  /  # ordered
    links        [[Page]]  /  [[Page|Label]]  /  [[Category:X]]  /  [http://x label]
    templates    {{name|arg|key=value}}  (see templates.py)
    tables       {| ... |}
    paragraphs   blank-line separated text, ; and : lines, ----, indented <pre>

All per-document state (footnotes, anchors, categories, stashed fragments)
lives in a ``RenderContext`` created for each conversion, so one engine can
be shared by every request.
"""
# -----------------------------------------------------------------------------

from __future__ import annotations

import html
import re
from typing import Optional
from urllib.parse import quote

from pygments import highlight
from pygments.formatters import HtmlFormatter
from pygments.lexers import TextLexer, get_lexer_by_name
from pygments.util import ClassNotFound

from wikidump.services.handlers import default_registry
from wikidump.services.templates import DEFAULT_MAX_DEPTH, TemplateExpander, TemplateRegistry


TOC_MIN_HEADINGS = 4
# File captions hold links; deeper [[ nesting stays literal text
MAX_LINK_DEPTH = 4
PYGMENTS_STYLE = "friendly"

_TOKEN_RE = re.compile(r"\x00([bi])(\d+)\x00")
_STRIP_TAGS_RE = re.compile(r"<[^>]+>")

_FORMATTER = HtmlFormatter(style=PYGMENTS_STYLE, cssclass="highlight")


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def _escape(text: str) -> str:
    return html.escape(text, quote=False)


def _highlight_code(code: str, lang: str) -> str:
    """Highlight *code* using Pygments.  Unknown languages render as plain text."""
    lang = lang.strip()
    try:
        lexer = get_lexer_by_name(lang, stripall=True) if lang else TextLexer()
    except ClassNotFound:
        lexer = TextLexer()
    return highlight(code, lexer, _FORMATTER)


def pygments_css() -> str:
    return _FORMATTER.get_style_defs(".highlight")


def _slugify_anchor(text: str) -> str:
    """Convert heading text to a URL-safe anchor ID."""
    text = _STRIP_TAGS_RE.sub("", text)
    text = text.strip().lower()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-") or "section"


_PLAIN_LINK_RE = re.compile(r"\[\[(?:[^|\]]*\|)?([^\]]*)\]\]")


def _plain_heading(text: str) -> str:
    """Heading text with link and emphasis markup removed."""
    text = _PLAIN_LINK_RE.sub(r"\1", text)
    return _STRIP_TAGS_RE.sub("", text.replace("'''", "").replace("''", "")).strip()


_HREF_SAFE = "/:(),!'*-._~"


def title_href(title: str, base_url: str = "") -> str:
    """``/wiki/<Title>`` with spaces as underscores, first letter capitalised."""
    title = title.strip().replace(" ", "_")
    if title:
        title = title[0].upper() + title[1:]
    return f"{base_url}/wiki/{quote(title, safe=_HREF_SAFE)}"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Per-conversion state
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

class RenderContext:
    """Mutable state for one conversion.  Never shared between conversions."""

    def __init__(self, engine: "MarkupEngine") -> None:
        self.engine = engine
        self.footnotes: list[str] = []
        self.categories: list[str] = []
        self.headings: list[tuple[int, str, str]] = []   # (level, anchor, plain text)
        self.no_toc = False
        self.force_toc = False
        self.toc_slot: Optional[int] = None
        self._footnote_names: dict[str, int] = {}
        self._anchors: dict[str, int] = {}
        self._stash: list[str] = []
        self._reference_slots: list[int] = []

    # ── stash ───────────────────────────────────────────────────────────────

    def stash(self, fragment: str, block: bool = False) -> str:
        """Hide finished HTML behind a token no later stage will touch."""
        self._stash.append(fragment)
        kind = "b" if block else "i"
        return f"\x00{kind}{len(self._stash) - 1}\x00"

    def reserve(self, block: bool = False) -> tuple[str, int]:
        """A stash token whose content is filled in at the end of the conversion."""
        token = self.stash("", block)
        return token, len(self._stash) - 1

    def fill(self, slot: int, fragment: str) -> None:
        self._stash[slot] = fragment

    def restore(self, text: str) -> str:
        return _TOKEN_RE.sub(lambda m: self.restore(self._stash[int(m.group(2))]), text)

    # ── anchors and links ───────────────────────────────────────────────────

    def anchor_for(self, text: str) -> str:
        base = _slugify_anchor(text)
        count = self._anchors.get(base, 0)
        self._anchors[base] = count + 1
        return base if count == 0 else f"{base}-{count}"

    def link(self, target: str, label: Optional[str] = None) -> str:
        return self.engine.wikilink(target, label)

    def external_link(self, url: str, label: Optional[str] = None) -> str:
        href = html.escape(url.strip(), quote=True)
        return f'<a href="{href}" class="external" rel="nofollow">{label or href}</a>'

    # ── footnotes ───────────────────────────────────────────────────────────

    def add_footnote(self, note: str, name: Optional[str] = None) -> str:
        """Record a footnote and return its superscript marker.

        A name seen before reuses the earlier number.  A named use that came
        before the definition (``<ref name=x/>`` first) gets its text later.
        """
        note = note.strip()
        if name:
            idx = self._footnote_names.get(name)
            if idx is not None:
                if note and not self.footnotes[idx - 1]:
                    self.footnotes[idx - 1] = note
                return self.footnote_marker(idx)
        self.footnotes.append(note)
        idx = len(self.footnotes)
        if name:
            self._footnote_names[name] = idx
        return self.footnote_marker(idx)

    @staticmethod
    def footnote_marker(idx: int) -> str:
        return f'<sup class="reference"><a href="#cite-note-{idx}" id="cite-ref-{idx}">[{idx}]</a></sup>'

    def references_html(self) -> str:
        """Placeholder for the footnote list, filled once every footnote is known.

        Only the first placeholder in a document receives the list.
        """
        token, slot = self.reserve(block=True)
        self._reference_slots.append(slot)
        return token

    def close_references(self) -> str:
        """Fill every footnote list placeholder.

        Returns a trailing placeholder to append when the document has
        footnotes but never asked for a list.
        """
        tail = ""
        if self.footnotes and not self._reference_slots:
            tail = self.references_html()
        items: list[str] = []
        i = 0
        # Notes may themselves add footnotes (an {{sfn}} inside a <ref>).
        while i < len(self.footnotes):
            note = self.engine.convert_inline(self.footnotes[i], self)
            i += 1
            items.append(f'<li id="cite-note-{i}"><a href="#cite-ref-{i}">↑</a> {note}</li>')
        listing = f'<div class="references"><ol>{"".join(items)}</ol></div>' if items else ""
        for n, slot in enumerate(self._reference_slots):
            self.fill(slot, listing if n == 0 else "")
        return tail


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Pre-pass
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_COMMENT_RE = re.compile(r"<!--.*?(?:-->|\Z)", re.DOTALL)
_MAGIC_RE = re.compile(r"__([A-Z]+)__")
_NOWIKI_RE = re.compile(r"<nowiki\s*>(.*?)</nowiki\s*>|<nowiki\s*/>", re.IGNORECASE | re.DOTALL)
_PRE_RE = re.compile(r"<pre(?:\s[^>]*)?>(.*?)</pre\s*>", re.IGNORECASE | re.DOTALL)
_CODE_RE = re.compile(
    r"<(syntaxhighlight|source)(\s[^>]*)?>(.*?)</\1\s*>", re.IGNORECASE | re.DOTALL,
)
_MATH_RE = re.compile(r"<math(?:\s[^>]*)?>(.*?)</math\s*>", re.IGNORECASE | re.DOTALL)
_LANG_ATTR_RE = re.compile(r"""lang\s*=\s*["']?([\w+#.-]+)""", re.IGNORECASE)
_UNSAFE_TAG_RE = re.compile(r"<(/?)(script|style|iframe|object|embed)\b", re.IGNORECASE)

_REF_RE = re.compile(r"<ref(\s[^>]*?)?(?:/>|>(.*?)</ref\s*>)", re.IGNORECASE | re.DOTALL)
_REFERENCES_RE = re.compile(
    r"<references(?:\s[^>]*?)?(?:/>|>(.*?)</references\s*>)", re.IGNORECASE | re.DOTALL,
)
_REF_NAME_RE = re.compile(r"""name\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'/>]+))""", re.IGNORECASE)


def _ref_name(attrs: Optional[str]) -> Optional[str]:
    if not attrs:
        return None
    m = _REF_NAME_RE.search(attrs)
    if m is None:
        return None
    return next(g for g in m.groups() if g is not None).strip() or None


def _prepass(text: str, ctx: RenderContext) -> str:
    text = _COMMENT_RE.sub("", text.replace("\x00", ""))

    text = _NOWIKI_RE.sub(lambda m: ctx.stash(_escape(m.group(1) or "")), text)
    text = _PRE_RE.sub(lambda m: ctx.stash(f"<pre>{_escape(m.group(1))}</pre>", block=True), text)

    def _code(m: re.Match) -> str:
        attrs = m.group(2) or ""
        code = m.group(3)
        if re.search(r"\binline\b", attrs, re.IGNORECASE):
            return ctx.stash(f"<code>{_escape(code)}</code>")
        lang = _LANG_ATTR_RE.search(attrs)
        return ctx.stash(_highlight_code(code.strip("\n"), lang.group(1) if lang else ""), block=True)
    text = _CODE_RE.sub(_code, text)

    text = _MATH_RE.sub(lambda m: ctx.stash(f'<span class="math">{_escape(m.group(1))}</span>'), text)
    text = _UNSAFE_TAG_RE.sub(r"&lt;\1\2", text)

    def _magic(m: re.Match) -> str:
        word = m.group(1)
        if word == "NOTOC":
            ctx.no_toc = True
        elif word == "FORCETOC":
            ctx.force_toc = True
        elif word == "TOC" and ctx.toc_slot is None:
            token, ctx.toc_slot = ctx.reserve(block=True)
            return token
        return ""
    text = _MAGIC_RE.sub(_magic, text)

    # <references>…</references> may define named refs used earlier in the text;
    # they are numbered after the body so the order of first use is kept.
    deferred: list[str] = []

    def _references(m: re.Match) -> str:
        if m.group(1):
            deferred.append(m.group(1))
        return ctx.references_html()
    text = _REFERENCES_RE.sub(_references, text)

    def _ref(m: re.Match) -> str:
        marker = ctx.add_footnote(m.group(2) or "", name=_ref_name(m.group(1)))
        return ctx.stash(marker)
    text = _REF_RE.sub(_ref, text)

    for block in deferred:
        for m in _REF_RE.finditer(block):
            ctx.add_footnote(m.group(2) or "", name=_ref_name(m.group(1)))
    return text


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Headers, emphasis, lists
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

def _parse_heading(line: str) -> Optional[tuple[int, str]]:
    """``(level, inner text)`` for a line framed by ``=``, else None.

    The level is the smaller of the leading and trailing runs (at most 6);
    surplus ``=`` on the longer side stays part of the heading text.
    """
    line = line.rstrip()
    lead = len(line) - len(line.lstrip("="))
    trail = len(line) - len(line.rstrip("="))
    if not lead or not trail or lead == len(line):
        return None
    level = min(lead, trail, 6)
    inner = line[level:len(line) - level]
    if not inner.strip():
        return None
    return level, inner.strip()


def _headers(text: str, ctx: RenderContext) -> str:
    lines = text.split("\n")
    for i, line in enumerate(lines):
        if not line.startswith("="):
            continue
        parsed = _parse_heading(line)
        if parsed is None:
            continue
        level, inner = parsed
        plain = _plain_heading(inner)
        anchor = ctx.anchor_for(plain)
        ctx.headings.append((level, anchor, plain))
        lines[i] = f'<h{level} id="{anchor}">{inner}</h{level}>'
    return "\n".join(lines)


_BOLD_ITALIC_RE = re.compile(r"'{5,}(.+?)'{5,}")
_BOLD_RE = re.compile(r"'''(.+?)'''")
_ITALIC_RE = re.compile(r"''(.+?)''")


def _emphasis(text: str) -> str:
    # Longest marker first so ''''' is never read as ''' + ''.
    text = _BOLD_ITALIC_RE.sub(r"<b><i>\1</i></b>", text)
    text = _BOLD_RE.sub(r"<b>\1</b>", text)
    return _ITALIC_RE.sub(r"<i>\1</i>", text)


_LIST_TAGS = {"*": "ul", "#": "ol"}


def _list_prefix(line: str) -> str:
    n = 0
    while n < len(line) and line[n] in _LIST_TAGS:
        n += 1
    return line[:n]


def _lists(text: str) -> str:
    """Turn runs of ``*``/``#`` lines into nested ``<ul>``/``<ol>``.

    Depth is the number of marker characters.  A line whose first marker
    differs from the open list closes the whole structure before starting a
    new one.  Every tag goes on its own line.
    """
    out: list[str] = []
    stack: list[str] = []

    def close_to(depth: int) -> None:
        while len(stack) > depth:
            out.append("</li>")
            out.append(f"</{stack.pop()}>")

    for line in text.split("\n"):
        prefix = _list_prefix(line)
        if not prefix:
            close_to(0)
            out.append(line)
            continue

        tags = [_LIST_TAGS[c] for c in prefix]
        keep = 0
        while keep < min(len(stack), len(tags)) and stack[keep] == tags[keep]:
            keep += 1
        close_to(keep)
        if stack and len(stack) == len(tags):
            out.append("</li>")
        opened = False
        while len(stack) < len(tags):
            if opened:
                out.append("<li>")
            tag = tags[len(stack)]
            out.append(f"<{tag}>")
            stack.append(tag)
            opened = True
        out.append(f"<li>{line[len(prefix):].strip()}")

    close_to(0)
    return "\n".join(out)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Tables
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_ATTR_RE = re.compile(r"""([\w-]+)\s*=\s*(?:"([^"]*)"|'([^']*)'|([^\s"'>]+))""")
_TABLE_ATTRS = frozenset({"class"})
_CELL_ATTRS = frozenset({"colspan", "rowspan", "scope", "class", "style"})
_CELL_ATTR_SPLIT_RE = re.compile(r"^([^|<\[]+)\|(?!\|)(.*)$")


def _filter_attrs(raw: str, allowed: frozenset[str]) -> str:
    parts: list[str] = []
    for m in _ATTR_RE.finditer(raw):
        key = m.group(1).lower()
        if key in allowed:
            value = next(g for g in m.groups()[1:] if g is not None)
            parts.append(f' {key}="{html.escape(value, quote=True)}"')
    return "".join(parts)


def _take_table(lines: list[str], i: int) -> tuple[list[str], int]:
    """Collect the table opening at ``lines[i]`` including nested tables."""
    block: list[str] = []
    depth = 0
    while i < len(lines):
        stripped = lines[i].strip()
        block.append(stripped)
        i += 1
        if stripped.startswith("{|"):
            depth += 1
        elif stripped.startswith("|}"):
            depth -= 1
            if depth == 0:
                break
    return block, i


def _parse_table(table_lines: list[str]) -> str:
    """
    Convert wikitext table lines (from {| to |} inclusive) into one line of
    HTML.  Cell text has already been through the earlier stages.

      {| class="x"        table open; only the class is kept
      |+ caption          table caption
      |-                  new row
      ! h1 !! h2          header cells
      | c1 || c2          data cells
      | attrs | content   per-cell attributes (colspan, rowspan, ...)
    """
    html_rows: list[str] = []
    caption: Optional[str] = None
    cells: list[str] = []

    def _flush_row() -> None:
        if cells:
            html_rows.append("<tr>" + "".join(cells) + "</tr>")
            cells.clear()

    def _parse_cells(line: str, tag: str) -> None:
        raw = line[1:]
        parts = re.split(r"\|\||!!", raw) if tag == "th" else raw.split("||")
        for part in parts:
            m = _CELL_ATTR_SPLIT_RE.match(part)
            if m and "=" in m.group(1):
                attrs = _filter_attrs(m.group(1), _CELL_ATTRS)
                content = m.group(2)
            else:
                attrs, content = "", part
            cells.append(f"<{tag}{attrs}>{content.strip()}</{tag}>")

    def _append(fragment: str) -> None:
        if cells:
            cells[-1] = cells[-1][:-5] + " " + fragment + cells[-1][-5:]
        else:
            cells.append(f"<td>{fragment}</td>")

    table_attrs = _filter_attrs(table_lines[0][2:], _TABLE_ATTRS)
    body = table_lines[1:]
    if body and body[-1].startswith("|}"):
        body = body[:-1]

    i = 0
    while i < len(body):
        line = body[i]
        if line.startswith("{|"):
            nested, i = _take_table(body, i)
            _append(_parse_table(nested))
            continue
        i += 1
        if line.startswith("|+"):
            caption = line[2:].strip()
        elif line.startswith("|-"):
            _flush_row()
        elif line.startswith("!"):
            _parse_cells(line, "th")
        elif line.startswith("|"):
            _parse_cells(line, "td")
        elif line:
            _append(line)
    _flush_row()

    cap = f"<caption>{caption}</caption>" if caption else ""
    return f"<table{table_attrs}>{cap}{''.join(html_rows)}</table>"


def _tables(text: str) -> str:
    if "{|" not in text:
        return text
    lines = text.split("\n")
    out: list[str] = []
    i = 0
    while i < len(lines):
        if lines[i].lstrip().startswith("{|"):
            block, i = _take_table(lines, i)
            out.append(_parse_table(block))
        else:
            out.append(lines[i])
            i += 1
    return "\n".join(out)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Paragraphs
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_BLOCK_START_RE = re.compile(
    r"^(?:\x00b\d+\x00|\s*</?(?:h[1-6]|p|div|table|caption|tr|td|th|ul|ol|li|dl|dt|dd|"
    r"blockquote|pre|hr|center|figure|gallery)\b)",
    re.IGNORECASE,
)
_HR_RE = re.compile(r"^-{4,}\s*$")


def _split_term(body: str) -> tuple[str, str]:
    """Split ``term : definition`` on the first colon outside an HTML tag."""
    depth = 0
    for i, ch in enumerate(body):
        if ch == "<":
            depth += 1
        elif ch == ">":
            depth -= 1
        elif ch == ":" and depth <= 0:
            return body[:i], body[i + 1:]
    return body, ""


def _paragraphs(text: str) -> str:
    out: list[str] = []
    para: list[str] = []
    defs: list[str] = []
    pre: list[str] = []

    def flush() -> None:
        if para:
            out.append("<p>" + "\n".join(para) + "</p>")
            para.clear()
        if defs:
            out.append("<dl>" + "".join(defs) + "</dl>")
            defs.clear()
        if pre:
            out.append("<pre>" + "\n".join(pre) + "</pre>")
            pre.clear()

    for line in text.split("\n"):
        line = line.rstrip()
        if not line.strip():
            flush()
        elif _HR_RE.match(line):
            flush()
            out.append("<hr>")
        elif _BLOCK_START_RE.match(line):
            flush()
            out.append(line)
        elif line[0] in ";:":
            if para or pre:
                flush()
            body = line.lstrip(";:")
            if line[0] == ";":
                term, definition = _split_term(body)
                defs.append(f"<dt>{term.strip()}</dt>")
                if definition.strip():
                    defs.append(f"<dd>{definition.strip()}</dd>")
            else:
                defs.append(f"<dd>{body.strip()}</dd>")
        elif line[0] == " ":
            if para or defs:
                flush()
            pre.append(line[1:])
        else:
            if defs or pre:
                flush()
            para.append(line)
    flush()
    return "\n".join(out)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Table of contents
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_FIRST_HEADING_RE = re.compile(r"^<h[1-6][ >]", re.MULTILINE)


def _toc_html(headings: list[tuple[int, str, str]]) -> str:
    """Nested contents list.  The shallowest heading level present is the top."""
    base_level = min(level for level, _, _ in headings)
    toc_lines = ['<div class="toc">', '<div class="toc-title">Contents</div>', '<ol class="toc-list">']
    depth_stack: list[int] = []
    for level, anchor, plain in headings:
        rel = level - base_level
        while len(depth_stack) < rel:
            toc_lines.append("<ol>")
            depth_stack.append(rel)
        while depth_stack and depth_stack[-1] > rel:
            toc_lines.append("</ol>")
            depth_stack.pop()
        toc_lines.append(f'<li><a href="#{anchor}">{html.escape(plain)}</a></li>')
    while depth_stack:
        toc_lines.append("</ol>")
        depth_stack.pop()
    toc_lines.extend(["</ol>", "</div>"])
    return "".join(toc_lines)


def _place_toc(text: str, ctx: RenderContext) -> str:
    wanted = ctx.headings and not ctx.no_toc and (
        ctx.toc_slot is not None or ctx.force_toc or len(ctx.headings) >= TOC_MIN_HEADINGS
    )
    if not wanted:
        if ctx.toc_slot is not None:
            ctx.fill(ctx.toc_slot, "")
        return text
    toc = _toc_html(ctx.headings)
    if ctx.toc_slot is not None:
        ctx.fill(ctx.toc_slot, toc)
        return text
    m = _FIRST_HEADING_RE.search(text)
    if m is None:
        return text
    return text[:m.start()] + toc + "\n" + text[m.start():]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Engine
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

_EXTERNAL_RE = re.compile(r"\[((?:https?:|ftp:)?//[^\s\]<>\"]+)(?:\s+([^\]\n]*))?\]")
_LINK_TRAIL_RE = re.compile(r"[a-z]+")
_LANGUAGE_LINK_RE = re.compile(r"^[a-z]{2,3}(?:-[a-z]+)*:")
_FILE_OPTIONS = frozenset({
    "thumb", "thumbnail", "frame", "framed", "frameless", "border", "left", "right",
    "center", "centre", "none", "upright", "baseline", "middle", "top", "bottom",
})
_FILE_SIZE_RE = re.compile(r"^(?:\d+)?(?:x\d+)?px$|^(?:upright|alt|link|page|class|lang)\s*=", re.IGNORECASE)


def _match_brackets(text: str, start: int) -> int:
    """Index of the ``]]`` closing the ``[[`` at *start*, or -1 (links never cross lines)."""
    depth = 0
    k = start
    n = len(text)
    while k < n:
        if text.startswith("[[", k):
            depth += 1
            k += 2
        elif text.startswith("]]", k):
            depth -= 1
            k += 2
            if depth == 0:
                return k - 2
        elif text[k] == "\n":
            return -1
        else:
            k += 1
    return -1


class MarkupEngine:
    """Wikitext to HTML converter.

    Holds only read-only configuration: the template registry, the nesting
    limit and the site prefix for article links.  Safe to share.
    """

    def __init__(
        self,
        registry: Optional[TemplateRegistry] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        base_url: str = "",
    ) -> None:
        if registry is None:
            registry = default_registry()
        self.registry = registry
        self.base_url = base_url.rstrip("/")
        self.expander = TemplateExpander(registry, max_depth)

    # ── public ──────────────────────────────────────────────────────────────

    def convert(self, text: str) -> str:
        ctx = RenderContext(self)
        text = _prepass(text, ctx)
        text = _headers(text, ctx)
        text = _emphasis(text)
        text = _lists(text)
        text = self.links(text, ctx)
        text = self.expander.expand(text, ctx)
        text = _tables(text)
        text = _paragraphs(text)
        return self._finish(text, ctx)

    def convert_inline(self, text: str, ctx: RenderContext) -> str:
        """Inline stages only, for footnote text and other fragments."""
        text = _emphasis(text)
        text = self.links(text, ctx)
        return self.expander.expand(text, ctx)

    def href(self, target: str) -> str:
        """URL for an article title, with an optional ``#section`` fragment."""
        title, _, fragment = target.strip().partition("#")
        href = title_href(title, self.base_url) if title else ""
        if fragment:
            href += "#" + _slugify_anchor(fragment)
        return href

    def wikilink(self, target: str, label: Optional[str] = None) -> str:
        target = target.strip()
        return f'<a href="{self.href(target)}" class="wikilink">{label if label is not None else target}</a>'

    # ── links ───────────────────────────────────────────────────────────────

    def links(self, text: str, ctx: RenderContext, depth: int = 0) -> str:
        """Single left-to-right pass over ``[[…]]`` and ``[url label]``."""
        if "[" not in text:
            return text
        out: list[str] = []
        i = 0
        n = len(text)
        while i < n:
            j = text.find("[", i)
            if j == -1:
                out.append(text[i:])
                break
            out.append(text[i:j])
            if text.startswith("[[", j):
                close = _match_brackets(text, j) if depth < MAX_LINK_DEPTH else -1
                if close == -1:
                    out.append("[[")
                    i = j + 2
                    continue
                i = close + 2
                trail = _LINK_TRAIL_RE.match(text, i)
                rendered, used_trail = self._internal_link(
                    text[j + 2:close], trail.group(0) if trail else "", ctx, depth,
                )
                if used_trail and trail:
                    i = trail.end()
                out.append(rendered)
                continue
            m = _EXTERNAL_RE.match(text, j)
            if m:
                out.append(ctx.external_link(m.group(1), (m.group(2) or "").strip() or None))
                i = m.end()
            else:
                out.append("[")
                i = j + 1
        return "".join(out)

    def _internal_link(self, inner: str, trail: str, ctx: RenderContext, depth: int = 0) -> tuple[str, bool]:
        inner = self.links(inner, ctx, depth + 1)
        target, sep, label = inner.partition("|")
        target = target.strip()
        prefix, colon, rest = target.partition(":")
        namespace = prefix.strip().casefold() if colon else ""

        if target.startswith(":"):
            # [[:Category:X]] links to the page instead of categorising
            target = target[1:]
        elif namespace == "category":
            name = rest.strip()
            if name and name not in ctx.categories:
                ctx.categories.append(name)
            return "", False
        elif namespace in ("file", "image"):
            parts = inner.split("|")
            caption = next(
                (p.strip() for p in reversed(parts[1:])
                 if p.strip() and p.strip().lower() not in _FILE_OPTIONS and not _FILE_SIZE_RE.match(p.strip())),
                rest.strip(),
            )
            return f'<span class="wiki-file">{caption}</span>', False
        elif colon and _LANGUAGE_LINK_RE.match(target):
            return "", False

        if not target:
            return f"[[{inner}]]", False
        text = label.strip() if sep and label.strip() else target
        return self.wikilink(target, text + trail), True

    # ── finish ──────────────────────────────────────────────────────────────

    def _finish(self, text: str, ctx: RenderContext) -> str:
        text = _place_toc(text, ctx)
        tail = ctx.close_references()
        if tail:
            text += "\n" + tail
        if ctx.categories:
            names = " · ".join(f'<span class="category">{c}</span>' for c in ctx.categories)
            text += f'\n<div class="wiki-categories"><strong>Categories:</strong> {names}</div>'
        return ctx.restore(text)


# -----------------------------------------------------------------------------
# Module-level helpers
# -----------------------------------------------------------------------------

def convert(text: str, registry: Optional[TemplateRegistry] = None) -> str:
    """Convert *text* with a throwaway engine."""
    return MarkupEngine(registry).convert(text)


_CATEGORY_RE = re.compile(r"\[\[\s*Category\s*:([^\]|]+)(?:\|[^\]]*)?\]\]", re.IGNORECASE)


def extract_categories(content: str) -> list[str]:
    """Return a sorted, deduplicated list of ``[[Category:Name]]`` names in *content*."""
    seen: set[str] = set()
    result: list[str] = []
    for m in _CATEGORY_RE.finditer(_COMMENT_RE.sub("", content)):
        name = m.group(1).strip()
        key = name.lower()
        if name and key not in seen:
            seen.add(key)
            result.append(name)
    return sorted(result, key=str.lower)


_REDIRECT_RE = re.compile(r"^\s*#REDIRECT\s*:?\s*\[\[([^\]|]+)(?:\|[^\]]*)?\]\]", re.IGNORECASE)


def parse_redirect(content: str) -> Optional[str]:
    """Return the redirect target title if content is a redirect page, else None.

    Matches ``#REDIRECT [[Target Title]]`` on the first non-blank line.
    """
    for line in content.splitlines():
        line = line.strip()
        if not line:
            continue
        m = _REDIRECT_RE.match(line)
        if m:
            return m.group(1).strip()
        break
    return None


# -----------------------------------------------------------------------------
