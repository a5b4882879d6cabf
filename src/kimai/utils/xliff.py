"""Reading, linting and rewriting XLIFF 1.2 translation files.

Files are named ``<domain>.<locale>.xlf`` (or ``.xliff``). Each trans-unit
carries an ``id``, a ``resname`` (the translation key), a ``source`` and a
``target``.
"""

import base64
import hashlib
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

XLIFF_NS = "urn:oasis:names:tc:xliff:document:1.2"
EXTENSIONS = (".xlf", ".xliff")

ET.register_namespace("", XLIFF_NS)


def _tag(name: str) -> str:
    return f"{{{XLIFF_NS}}}{name}"


def generate_id(source: str) -> str:
    """Stable short id derived from the source text."""
    digest = hashlib.sha256(source.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest).decode("ascii")[:7]


@dataclass
class TranslationUnit:
    id: str
    resname: Optional[str]
    source: str
    target: str


class TranslationFile:
    """One XLIFF file loaded into memory."""

    def __init__(self, path: Path, tree: ET.ElementTree):
        self.path = Path(path)
        self.tree = tree
        parts = self.path.name.split(".")
        self.domain = parts[0]
        self.locale = parts[1] if len(parts) > 2 else ""

    @classmethod
    def load(cls, path: Path) -> "TranslationFile":
        """Parse a translation file.

        Raises:
            ValueError: If the file is not well-formed XLIFF
        """
        try:
            tree = ET.parse(path)
        except ET.ParseError as e:
            raise ValueError(f"Invalid XML in {path}: {e}")
        if tree.getroot().find(_tag("file")) is None:
            raise ValueError(f"Missing <file> element in {path}")
        return cls(Path(path), tree)

    @property
    def file_element(self) -> ET.Element:
        element = self.tree.getroot().find(_tag("file"))
        if element is None:
            raise ValueError(f"Missing <file> element in {self.path}")
        return element

    @property
    def body(self) -> ET.Element:
        body = self.file_element.find(_tag("body"))
        if body is None:
            body = ET.SubElement(self.file_element, _tag("body"))
        return body

    def _unit_elements(self) -> list[ET.Element]:
        return list(self.body.findall(_tag("trans-unit")))

    @staticmethod
    def _text(unit: ET.Element, name: str) -> str:
        child = unit.find(_tag(name))
        return (child.text or "") if child is not None else ""

    def units(self) -> list[TranslationUnit]:
        return [
            TranslationUnit(
                id=unit.get("id", ""),
                resname=unit.get("resname"),
                source=self._text(unit, "source"),
                target=self._text(unit, "target"),
            )
            for unit in self._unit_elements()
        ]

    def get_translations(self) -> dict[str, str]:
        """Map resname to target text.

        Raises:
            ValueError: If a unit has no resname
        """
        translations = {}
        for unit in self.units():
            if unit.resname is None:
                raise ValueError(f'Missing "resname" attribute in file: {self.path}')
            translations[unit.resname] = unit.target
        return translations

    def delete_resname(self, resname: str) -> bool:
        removed = False
        for unit in self._unit_elements():
            if unit.get("resname") == resname:
                self.body.remove(unit)
                removed = True
        return removed

    def fix_resnames(self) -> int:
        """Drop the header, default missing resnames to the source and
        regenerate ids from the source text."""
        header = self.file_element.find(_tag("header"))
        if header is not None:
            self.file_element.remove(header)

        changed = 0
        for unit in self._unit_elements():
            source = self._text(unit, "source")
            if unit.get("resname") is None:
                unit.set("resname", source)
                changed += 1
            new_id = generate_id(source)
            if unit.get("id") != new_id:
                unit.set("id", new_id)
                changed += 1
        return changed

    def fill_empty(self, translations: dict[str, str]) -> int:
        """Fill empty targets from another locale's translations.

        Raises:
            KeyError: If a key is missing in ``translations``
        """
        filled = 0
        for unit in self._unit_elements():
            resname = unit.get("resname")
            if resname is None or self._text(unit, "target"):
                continue
            if resname not in translations:
                raise KeyError(f"Missing translation for key: {resname} in file {self.path}")
            target = unit.find(_tag("target"))
            if target is None:
                target = ET.SubElement(unit, _tag("target"))
            target.text = translations[resname]
            filled += 1
        return filled

    def lint(self) -> list[str]:
        errors = []
        target_language = self.file_element.get("target-language")
        if self.locale and target_language and target_language != self.locale:
            errors.append(
                f"{self.path.name}: target-language '{target_language}' does not match "
                f"locale '{self.locale}'"
            )
        seen: set[str] = set()
        for unit in self.units():
            if not unit.id:
                errors.append(f"{self.path.name}: trans-unit without id")
            elif unit.id in seen:
                errors.append(f"{self.path.name}: duplicate id '{unit.id}'")
            seen.add(unit.id)
        return errors

    def save(self) -> None:
        ET.indent(self.tree, space="    ")
        self.tree.write(self.path, encoding="utf-8", xml_declaration=True)
        logger.debug(f"Wrote translation file {self.path}")


def find_translation_files(directory: Path, extensions: tuple[str, ...] = EXTENSIONS) -> list[Path]:
    directory = Path(directory)
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix in extensions)


def find_duplicates(files: list[Path]) -> dict[str, list[str]]:
    """Find translation keys that are defined in more than one domain."""
    domains: dict[str, list[str]] = {}
    for path in files:
        translation = TranslationFile.load(path)
        for unit in translation.units():
            key = unit.resname or unit.id
            names = domains.setdefault(key, [])
            if translation.domain not in names:
                names.append(translation.domain)
    return {key: names for key, names in domains.items() if len(names) > 1}


def lint_translations(directory: Path) -> list[str]:
    """Validate every translation file in a directory."""
    errors = []
    for path in find_translation_files(directory):
        try:
            errors.extend(TranslationFile.load(path).lint())
        except ValueError as e:
            errors.append(str(e))
    return errors
