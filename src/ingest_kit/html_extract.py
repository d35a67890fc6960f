from __future__ import annotations

from dataclasses import dataclass, field
from html.parser import HTMLParser
import re
from typing import Optional, Sequence

from .models import NA, CompanyProfile, FounderRef, JobListing


_TEXT = "#text"
_WS_RE = re.compile(r"\s+")
_LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_TOKEN_RE = re.compile(r"^(?P<tag>[a-zA-Z][\w-]*|\*)?(?P<rest>(?:[.#][\w-]+|\[[^\]]+\])*)$")
_PART_RE = re.compile(r"([.#])([\w-]+)|\[\s*([^\]=\s]+)\s*(?:=\s*([^\]]*))?\]")

# never get an end tag, so they must not become parents
_VOID_TAGS = frozenset({
    "area", "base", "br", "col", "embed", "hr", "img", "input",
    "link", "meta", "param", "source", "track", "wbr",
})


@dataclass
class _Node:
    tag: str
    attrs: dict[str, str]
    parent: Optional[int]
    children: list[int] = field(default_factory=list)
    text_parts: list[str] = field(default_factory=list)

    @property
    def classes(self) -> frozenset[str]:
        return frozenset(x for x in _WS_RE.split(self.attrs.get("class", "").strip()) if x)


class _TreeBuilder(HTMLParser):
    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.nodes: list[_Node] = [_Node(tag="#document", attrs={}, parent=None)]
        self.open: list[int] = [0]

    def _add(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]]) -> int:
        parent = self.open[-1]
        idx = len(self.nodes)
        self.nodes.append(
            _Node(
                tag=tag.lower(),
                attrs={k.lower(): (v or "") for k, v in attrs if k},
                parent=parent,
            )
        )
        self.nodes[parent].children.append(idx)
        return idx

    def handle_starttag(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]]) -> None:
        idx = self._add(tag, attrs)
        if tag.lower() not in _VOID_TAGS:
            self.open.append(idx)

    def handle_startendtag(self, tag: str, attrs: Sequence[tuple[str, Optional[str]]]) -> None:
        self._add(tag, attrs)

    def handle_endtag(self, tag: str) -> None:
        t = tag.lower()
        # close up to the nearest matching open element; stray end tags are ignored
        for pos in range(len(self.open) - 1, 0, -1):
            if self.nodes[self.open[pos]].tag == t:
                del self.open[pos:]
                return

    def handle_data(self, data: str) -> None:
        if not data:
            return
        # text is kept as its own child node so mixed content stays in order
        parent = self.open[-1]
        self.nodes.append(_Node(tag=_TEXT, attrs={}, parent=parent, text_parts=[data]))
        self.nodes[parent].children.append(len(self.nodes) - 1)


@dataclass(frozen=True)
class _Step:
    tag: Optional[str]
    id_value: Optional[str]
    classes: frozenset[str]
    attrs: tuple[tuple[str, Optional[str]], ...]

    def matches(self, node: _Node) -> bool:
        if node.tag == _TEXT:
            return False
        if self.tag and self.tag != "*" and node.tag != self.tag:
            return False
        if self.id_value is not None and node.attrs.get("id") != self.id_value:
            return False
        if self.classes and not self.classes <= node.classes:
            return False
        for key, expected in self.attrs:
            if key not in node.attrs:
                return False
            if expected is not None and node.attrs[key] != expected:
                return False
        return True


def _parse_step(token: str) -> _Step:
    m = _TOKEN_RE.match(token)
    if not m:
        raise ValueError(f"unsupported selector token: {token!r}")
    id_value: Optional[str] = None
    classes: set[str] = set()
    attrs: list[tuple[str, Optional[str]]] = []
    for kind, ident, attr, value in _PART_RE.findall(m.group("rest") or ""):
        if kind == "#":
            id_value = ident
        elif kind == ".":
            classes.add(ident)
        else:
            v = value.strip().strip("\"'") if value else None
            attrs.append((attr.lower(), v))
    tag = m.group("tag")
    return _Step(tag=tag.lower() if tag else None, id_value=id_value, classes=frozenset(classes), attrs=tuple(attrs))


def compile_selector(selector: str) -> tuple[_Step, ...]:
    """Descendant chains of simple selectors: `div.jobs div.job`, `a[href]`, `#main`."""
    tokens = str(selector or "").split()
    if not tokens:
        raise ValueError("empty selector")
    return tuple(_parse_step(t) for t in tokens)


class HtmlDocument:
    """Parsed page with just enough CSS to read profile fields."""

    def __init__(self, html: str) -> None:
        builder = _TreeBuilder()
        builder.feed(html)
        builder.close()
        self._nodes = builder.nodes

    def _descendants(self, node_id: int) -> list[int]:
        out: list[int] = []
        stack = list(reversed(self._nodes[node_id].children))
        while stack:
            idx = stack.pop()
            out.append(idx)
            stack.extend(reversed(self._nodes[idx].children))
        return out

    def select(self, selector: str, *, within: Optional[int] = None) -> list[int]:
        """Matching node ids in document order."""
        current = [0 if within is None else within]
        for step in compile_selector(selector):
            found: list[int] = []
            seen: set[int] = set()
            for ctx in current:
                for idx in self._descendants(ctx):
                    if idx not in seen and step.matches(self._nodes[idx]):
                        seen.add(idx)
                        found.append(idx)
            found.sort()
            current = found
            if not current:
                break
        return current

    def text(self, node_id: int) -> str:
        parts: list[str] = []
        stack = [node_id]
        while stack:
            node = self._nodes[stack.pop()]
            parts.extend(node.text_parts)
            stack.extend(reversed(node.children))
        return _WS_RE.sub(" ", "".join(parts)).strip()

    def first_text(self, selector: str, *, within: Optional[int] = None) -> str:
        """
        Text of the first match, "" when nothing matches.

        Later matches are ignored, not concatenated. Whitespace runs (newlines
        included) are collapsed to one space and the result is stripped, so
        multi-line text comes back on a single line.
        """
        hits = self.select(selector, within=within)
        return self.text(hits[0]) if hits else ""


@dataclass(frozen=True)
class ProfileSelectors:
    name: str = "h1.company-name"
    founded: str = "span.founded"
    description: str = "p.description"
    team_size: str = "span.team-size"
    founder_items: str = "div.founders div.founder"
    founder_name: str = "h3"
    job_items: str = "div.jobs div.job"
    job_title: str = "h4"
    job_location: str = "span.location"


def parse_team_size(raw: str) -> int:
    """Leading integer of the text ("12 employees" -> 12); 0 when there is none."""
    m = _LEADING_INT_RE.match(raw or "")
    if not m:
        return 0
    return max(0, int(m.group(1)))


def extract_profile(html: str, selectors: ProfileSelectors = ProfileSelectors()) -> CompanyProfile:
    if not html or not html.strip():
        return CompanyProfile()

    doc = HtmlDocument(html)

    founders: list[FounderRef] = []
    for node_id in doc.select(selectors.founder_items):
        name = doc.first_text(selectors.founder_name, within=node_id)
        if name:
            founders.append(FounderRef(name=name))

    jobs: list[JobListing] = []
    for node_id in doc.select(selectors.job_items):
        title = doc.first_text(selectors.job_title, within=node_id)
        location = doc.first_text(selectors.job_location, within=node_id)
        if title or location:
            jobs.append(JobListing(title=title, location=location))

    return CompanyProfile(
        name=doc.first_text(selectors.name) or NA,
        founded=doc.first_text(selectors.founded) or NA,
        description=doc.first_text(selectors.description) or NA,
        team_size=parse_team_size(doc.first_text(selectors.team_size)),
        jobs=tuple(jobs),
        founders=tuple(founders),
    )
