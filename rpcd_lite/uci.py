"""
Reader for UCI-style configuration packages (``/etc/config/<package>``).

Only the subset needed by the collectors is supported: ``config`` sections
with ``option`` and ``list`` entries. Every lookup re-reads the file.
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

logger = logging.getLogger(__name__)

Value = Union[str, List[str]]


@dataclass
class Section:
    type: str
    name: str
    options: Dict[str, Value] = field(default_factory=dict)

    def get(self, option: str, default: Optional[str] = None) -> Optional[str]:
        """Return a scalar option; list options are not strings and are ignored."""
        value = self.options.get(option)
        if isinstance(value, str):
            return value
        return default


class UciConfig:
    def __init__(self, config_dir: Path):
        self.config_dir = Path(config_dir)

    def load(self, package: str) -> Optional[List[Section]]:
        """Parse a package; ``None`` if it does not exist or cannot be read."""
        if not package or "/" in package or package in (".", ".."):
            return None
        path = self.config_dir / package
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            logger.debug(f"Config package {package!r} unavailable: {e}")
            return None
        return self.parse(text, package)

    @staticmethod
    def parse(text: str, package: str = "") -> List[Section]:
        sections: List[Section] = []
        anonymous: Dict[str, int] = {}
        current: Optional[Section] = None

        for lineno, line in enumerate(text.splitlines(), 1):
            try:
                tokens = shlex.split(line, comments=True)
            except ValueError as e:
                logger.warning(f"{package}:{lineno}: unparsable line skipped ({e})")
                continue
            if not tokens:
                continue

            keyword = tokens[0]
            if keyword == "config" and len(tokens) >= 2:
                stype = tokens[1]
                if len(tokens) >= 3:
                    name = tokens[2]
                else:
                    index = anonymous.get(stype, 0)
                    anonymous[stype] = index + 1
                    name = f"@{stype}[{index}]"
                current = Section(type=stype, name=name)
                sections.append(current)
            elif keyword == "option" and len(tokens) >= 3 and current is not None:
                current.options[tokens[1]] = tokens[2]
            elif keyword == "list" and len(tokens) >= 3 and current is not None:
                existing = current.options.get(tokens[1])
                if not isinstance(existing, list):
                    existing = []
                    current.options[tokens[1]] = existing
                existing.append(tokens[2])
            elif keyword != "package":
                logger.debug(f"{package}:{lineno}: ignoring {keyword!r}")

        return sections

    def first(self, package: str, section_type: str) -> Optional[Section]:
        for section in self.load(package) or ():
            if section.type == section_type:
                return section
        return None

    def get(self, package: str, section_type: str, option: str) -> Optional[str]:
        """Option of the first section of ``section_type`` in ``package``."""
        section = self.first(package, section_type)
        return section.get(option) if section else None
