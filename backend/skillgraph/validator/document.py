"""
Skill document parser.

A skill document is markdown with YAML frontmatter. Content blocks are
either XML-style tags::

    <when-to-use>
    ...
    </when-to-use>

    <pattern name="scoped-state">
    ...
    </pattern>

or markdown headings (``## When to Use``). Block names are normalized to
kebab-case so both forms satisfy the same required section.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..loader import FrontmatterParser


SECTION_ALIASES = {
    "anti-patterns": "antipatterns",
    "anti-pattern": "antipatterns",
    "antipattern-list": "antipatterns",
    "patterns": "pattern",
    "when-to-use-this": "when-to-use",
    "when-to-use-it": "when-to-use",
    "triggers": "when-to-use",
    "standard": "standards",
    "related": "related-skills",
    "see-also": "related-skills",
}

FENCE_PATTERN = re.compile(r"^```[^\n]*\n(.*?)^```[ \t]*$", re.MULTILINE | re.DOTALL)
OPEN_TAG_PATTERN = re.compile(r"<([a-z][a-z0-9-]*)((?:\s+[a-zA-Z_-]+=\"[^\"]*\")*)\s*>")
CLOSE_TAG_PATTERN = re.compile(r"</([a-z][a-z0-9-]*)\s*>")
ATTR_PATTERN = re.compile(r"([a-zA-Z_-]+)=\"([^\"]*)\"")
HEADING_PATTERN = re.compile(r"^(#{1,6})\s+(.+?)\s*#*\s*$", re.MULTILINE)


def normalize_section_name(name: str) -> str:
    """Normalize a tag or heading title to a kebab-case section key."""
    key = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return SECTION_ALIASES.get(key, key)


@dataclass
class Block:
    """
    A named content block.

    Attributes:
        name: Normalized section key.
        title: Tag name or heading text as written.
        content: Text between the opening and closing marker.
        kind: "tag" or "heading".
        attrs: Tag attributes (e.g. pattern name).
        level: Heading level, 0 for tags.
        line: 1-based line number of the opening marker.
    """

    name: str
    title: str
    content: str
    kind: str
    attrs: Dict[str, str] = field(default_factory=dict)
    level: int = 0
    line: int = 0

    @property
    def label(self) -> str:
        label = self.attrs.get("name") or self.title
        return f"{self.name} '{label}'" if label != self.name else self.name


def _code_spans(text: str) -> List[Tuple[int, int]]:
    return [(m.start(), m.end()) for m in FENCE_PATTERN.finditer(text)]


def _inside(pos: int, spans: List[Tuple[int, int]]) -> bool:
    return any(start <= pos < end for start, end in spans)


def strip_code(text: str) -> str:
    """Remove fenced code blocks."""
    return FENCE_PATTERN.sub("", text)


def code_examples(text: str) -> List[str]:
    """Bodies of fenced code blocks in text."""
    return [m.group(1) for m in FENCE_PATTERN.finditer(text)]


def extract_headings(text: str, base_line: int = 1) -> List[Block]:
    """
    Extract heading blocks, each running until the next heading of the
    same or a higher level. Headings inside code fences are ignored.
    """
    spans = _code_spans(text)
    found = [m for m in HEADING_PATTERN.finditer(text) if not _inside(m.start(), spans)]
    blocks = []
    for i, match in enumerate(found):
        level = len(match.group(1))
        end = len(text)
        for later in found[i + 1:]:
            if len(later.group(1)) <= level:
                end = later.start()
                break
        blocks.append(Block(
            name=normalize_section_name(match.group(2)),
            title=match.group(2).strip(),
            content=text[match.end():end].strip("\n"),
            kind="heading",
            level=level,
            line=base_line + text.count("\n", 0, match.start()),
        ))
    return blocks


def extract_tags(text: str) -> Tuple[List[Block], Dict[str, Tuple[int, int]]]:
    """
    Extract XML-style tag blocks.

    Returns:
        (blocks, counts) where counts maps tag name to (opening, closing)
        occurrences outside code fences.
    """
    spans = _code_spans(text)
    opens = [m for m in OPEN_TAG_PATTERN.finditer(text) if not _inside(m.start(), spans)]
    closes = [m for m in CLOSE_TAG_PATTERN.finditer(text) if not _inside(m.start(), spans)]

    counts: Dict[str, Tuple[int, int]] = {}
    for m in opens:
        o, c = counts.get(m.group(1), (0, 0))
        counts[m.group(1)] = (o + 1, c)
    for m in closes:
        o, c = counts.get(m.group(1), (0, 0))
        counts[m.group(1)] = (o, c + 1)

    blocks = []
    for m in opens:
        tag = m.group(1)
        depth = 0
        end_match = None
        events = sorted(
            [(o.start(), 1, o) for o in opens if o.group(1) == tag and o.start() > m.start()]
            + [(c.start(), -1, c) for c in closes if c.group(1) == tag and c.start() > m.start()],
            key=lambda e: e[0],
        )
        for _, delta, event in events:
            if delta < 0 and depth == 0:
                end_match = event
                break
            depth += delta
        if end_match is None:
            continue
        blocks.append(Block(
            name=normalize_section_name(tag),
            title=tag,
            content=text[m.end():end_match.start()].strip("\n"),
            kind="tag",
            attrs=dict(ATTR_PATTERN.findall(m.group(2) or "")),
            line=1 + text.count("\n", 0, m.start()),
        ))
    return blocks, counts


@dataclass
class SkillDocument:
    """Parsed view of a skill document."""

    text: str
    frontmatter: Optional[Dict[str, Any]]
    body: str
    blocks: List[Block] = field(default_factory=list)
    tag_counts: Dict[str, Tuple[int, int]] = field(default_factory=dict)

    @classmethod
    def parse(cls, text: str) -> "SkillDocument":
        frontmatter, body = FrontmatterParser.parse(text)
        tags, counts = extract_tags(body)
        headings = extract_headings(body)
        return cls(
            text=text,
            frontmatter=frontmatter,
            body=body,
            blocks=tags + headings,
            tag_counts=counts,
        )

    def sections(self, name: str) -> List[Block]:
        key = normalize_section_name(name)
        return [b for b in self.blocks if b.name == key]

    def has_section(self, name: str) -> bool:
        return bool(self.sections(name))

    def code_examples(self) -> List[str]:
        return code_examples(self.body)

    def pattern_entries(self) -> List[Block]:
        """
        Individual patterns: every ``<pattern>`` tag, and each subsection of
        a ``## Patterns`` heading (or the heading itself if it has none).
        """
        entries = [b for b in self.blocks if b.kind == "tag" and b.title == "pattern"]
        for block in self.sections("pattern"):
            if block in entries or "<pattern" in block.content:
                continue
            entries.extend(self._children_or_self(block))
        return entries

    def antipattern_entries(self) -> List[Block]:
        """
        Individual antipatterns: ``<antipattern>`` tags if any exist,
        otherwise the subsections of each antipatterns block (or the block
        itself if it has none).
        """
        tagged = [b for b in self.blocks if b.kind == "tag" and b.name == "antipattern"]
        if tagged:
            return tagged
        entries: List[Block] = []
        for block in self.sections("antipatterns"):
            entries.extend(self._children_or_self(block))
        return entries

    @staticmethod
    def _children_or_self(block: Block) -> List[Block]:
        children = extract_headings(block.content, base_line=block.line + 1)
        if block.kind == "heading":
            children = [c for c in children if c.level > block.level]
        if not children:
            return [block]
        top = min(c.level for c in children)
        return [c for c in children if c.level == top]
