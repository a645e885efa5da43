"""
Source document loader.

Reads skill, rule and agent records from YAML files and skill markdown
documents with YAML frontmatter, producing RawDocuments for the registry
build.

Accepted YAML shapes:
- a single record with a ``kind`` field (skill | rule | agent);
- a bundle with ``skills``, ``rules`` and ``agents`` sections, each a list
  of records or a mapping of id to record, plus optional ``metadata``;
- several of the above separated by ``---``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml

from .errors import BuildError
from .logging import get_logger
from .models import DocumentKind, RawDocument, Skill
from .registry import RegistryStore

logger = get_logger(__name__)

YAML_SUFFIXES = {".yaml", ".yml"}
MARKDOWN_SUFFIXES = {".md"}

BUNDLE_SECTIONS = {
    "skills": DocumentKind.SKILL,
    "rules": DocumentKind.RULE,
    "agents": DocumentKind.AGENT,
}

SKILL_FIELDS = set(Skill.model_fields)


@dataclass
class DocumentSet:
    """
    Documents read from a source path.

    Attributes:
        documents: Records in load order.
        metadata: Merged ``metadata`` sections of bundle files.
    """

    documents: List[RawDocument] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def extend(self, other: "DocumentSet") -> None:
        self.documents.extend(other.documents)
        self.metadata.update(other.metadata)


class FrontmatterParser:
    """Parser for YAML frontmatter in skill markdown documents."""

    FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)

    @classmethod
    def parse(cls, content: str) -> Tuple[Optional[Dict[str, Any]], str]:
        """
        Split content into frontmatter data and the remaining body.

        Returns:
            (frontmatter dict or None, remaining content). A block that is
            not valid YAML or not a mapping yields None.
        """
        match = cls.FRONTMATTER_PATTERN.match(content)
        if not match:
            return None, content
        try:
            data = yaml.safe_load(match.group(1))
        except yaml.YAMLError:
            return None, content
        if not isinstance(data, dict):
            return None, content
        return data, content[match.end():]


def _records(section: Any) -> List[Dict[str, Any]]:
    if isinstance(section, list):
        return [item for item in section]
    if isinstance(section, dict):
        records = []
        for key, value in section.items():
            item = dict(value) if isinstance(value, dict) else {"value": value}
            item.setdefault("id", key)
            records.append(item)
        return records
    return []


def parse_yaml_text(text: str, source: str = "<yaml>") -> DocumentSet:
    """
    Parse YAML text into documents.

    Raises:
        BuildError: If the text is not valid YAML or has an unknown shape.
    """
    result = DocumentSet()
    try:
        payloads = [p for p in yaml.safe_load_all(text) if p is not None]
    except yaml.YAMLError as e:
        raise BuildError.single(source, None, f"YAML parse error: {e}")

    for payload in payloads:
        if isinstance(payload, list):
            for item in payload:
                result.documents.append(_single(item, source))
        elif isinstance(payload, dict) and "kind" in payload:
            result.documents.append(_single(payload, source))
        elif isinstance(payload, dict) and (set(payload) & (set(BUNDLE_SECTIONS) | {"metadata"})):
            for section, kind in BUNDLE_SECTIONS.items():
                for item in _records(payload.get(section)):
                    result.documents.append(RawDocument(kind=kind.value, data=item, source=source))
            if isinstance(payload.get("metadata"), dict):
                result.metadata.update(payload["metadata"])
        else:
            raise BuildError.single(
                source,
                None,
                "expected a record with 'kind' or a bundle with skills/rules/agents",
            )
    return result


def _single(item: Any, source: str) -> RawDocument:
    if not isinstance(item, dict):
        return RawDocument(kind="unknown", data=item, source=source)
    data = dict(item)
    kind = str(data.pop("kind", "unknown"))
    return RawDocument(kind=kind, data=data, source=source)


def parse_markdown(text: str, source: str = "<markdown>") -> Optional[RawDocument]:
    """
    Parse a skill markdown document.

    The frontmatter carries the skill fields; ``name`` stands in for ``id``
    when no id is given. Keys that are not skill fields are ignored. The
    full text is kept as the document body for structural validation.

    Returns:
        A RawDocument, or None if the file has no frontmatter.

    Raises:
        BuildError: If the frontmatter block is not a valid YAML mapping.
    """
    match = FrontmatterParser.FRONTMATTER_PATTERN.match(text)
    if not match:
        return None
    try:
        frontmatter = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        raise BuildError.single(source, "frontmatter", f"YAML parse error: {e}")
    if not isinstance(frontmatter, dict):
        raise BuildError.single(source, "frontmatter", "frontmatter must be a mapping")

    kind = str(frontmatter.get("kind", DocumentKind.SKILL.value))
    data = {k: v for k, v in frontmatter.items() if k != "kind"}
    if kind == DocumentKind.SKILL.value:
        if "id" not in data and "name" in data:
            data["id"] = data["name"]
        data = {k: v for k, v in data.items() if k in SKILL_FIELDS}
        return RawDocument(kind=kind, data=data, source=source, body=text)
    return RawDocument(kind=kind, data=data, source=source)


def load_file(path: Path) -> DocumentSet:
    """
    Load documents from one YAML or markdown file.

    Raises:
        BuildError: If the file is not UTF-8 text or cannot be parsed.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise BuildError.single(str(path), None, f"not valid UTF-8: {e}")
    if path.suffix in YAML_SUFFIXES:
        return parse_yaml_text(text, str(path))
    if path.suffix in MARKDOWN_SUFFIXES:
        doc = parse_markdown(text, str(path))
        if doc is None:
            logger.debug("markdown_skipped", path=str(path), reason="no frontmatter")
            return DocumentSet()
        return DocumentSet(documents=[doc])
    return DocumentSet()


def load(path: Union[str, Path]) -> DocumentSet:
    """
    Load every document under a file or directory.

    Directories are searched recursively in sorted order.

    Raises:
        BuildError: If the path does not exist or a file cannot be parsed.
    """
    path = Path(path)
    if not path.exists():
        raise BuildError.single(str(path), None, "path not found")

    result = DocumentSet()
    if path.is_file():
        result.extend(load_file(path))
    else:
        for file_path in sorted(path.rglob("*")):
            if not file_path.is_file():
                continue
            if file_path.suffix not in YAML_SUFFIXES | MARKDOWN_SUFFIXES:
                continue
            result.extend(load_file(file_path))

    logger.info("documents_loaded", path=str(path), documents=len(result.documents))
    return result


def load_documents(path: Union[str, Path]) -> List[RawDocument]:
    return load(path).documents


def load_registry(path: Union[str, Path]) -> RegistryStore:
    """Load documents from a path and build a registry from them."""
    return RegistryStore.build(load_documents(path))
