"""Rule-based rewriting of known defects in generated Dart sources."""

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Iterator, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FixRule:
    """A named rewrite.

    The rule fires when ``pattern`` matches either the analyzer diagnostics or
    the file itself. ``transform`` must be idempotent.
    """
    name: str
    pattern: "re.Pattern[str]"
    transform: Callable[[str], str]

    def applies_to(self, diagnostics: str, content: str) -> bool:
        return bool(self.pattern.search(diagnostics) or self.pattern.search(content))


def rename_rule(name: str, renames: Dict[str, str], prefix: str = "") -> FixRule:
    """Build a rule replacing whole identifiers, e.g. ``.headline4`` -> ``.headlineMedium``.

    ``prefix`` is a regex that must precede the identifier in source text; it is
    not required in diagnostics, which mention the bare identifier.
    """
    alternatives = "|".join(re.escape(old) for old in renames)
    detect = re.compile(rf"\b(?:{alternatives})\b")
    rewrite = re.compile(rf"(?P<prefix>{prefix})\b(?P<name>{alternatives})\b")

    def transform(content: str) -> str:
        return rewrite.sub(lambda m: m.group("prefix") + renames[m.group("name")], content)

    return FixRule(name=name, pattern=detect, transform=transform)


# Receiver must name a theme (textTheme, theme, primaryTextTheme?); TextDecoration.overline
# or photo.caption are not TextTheme getters.
TEXT_THEME_RECEIVER = r"\b\w*[Tt]heme\w*[?!]?\s*\.\s*"

DEFAULT_RULES: List[FixRule] = [
    rename_rule(
        "Deprecated TextTheme properties",
        {
            "headline1": "displayLarge",
            "headline2": "displayMedium",
            "headline3": "displaySmall",
            "headline4": "headlineMedium",
            "headline5": "headlineSmall",
            "headline6": "titleLarge",
            "subtitle1": "titleMedium",
            "subtitle2": "titleSmall",
            "bodyText1": "bodyLarge",
            "bodyText2": "bodyMedium",
            "caption": "bodySmall",
            "overline": "labelSmall",
        },
        prefix=TEXT_THEME_RECEIVER,
    ),
    rename_rule(
        "Removed Material button widgets",
        {
            "RaisedButton": "ElevatedButton",
            "FlatButton": "TextButton",
            "OutlineButton": "OutlinedButton",
        },
    ),
]


class RepairEngine:
    """Applies a catalogue of ``FixRule`` objects to every source file of a project."""

    def __init__(
        self,
        rules: Optional[Iterable[FixRule]] = None,
        extensions: Iterable[str] = (".dart",),
        excluded_dirs: Iterable[str] = ("build",),
    ):
        self.rules: List[FixRule] = list(DEFAULT_RULES if rules is None else rules)
        self.extensions = tuple(extensions)
        self.excluded_dirs = set(excluded_dirs)

    def register(self, rule: FixRule) -> None:
        self.rules.append(rule)

    def source_files(self, project_dir: Union[str, Path]) -> Iterator[Path]:
        """Yield source files, skipping build output and hidden directories."""
        for dirpath, dirnames, filenames in os.walk(project_dir):
            dirnames[:] = sorted(
                d for d in dirnames if not d.startswith(".") and d not in self.excluded_dirs
            )
            for filename in sorted(filenames):
                if filename.endswith(self.extensions):
                    yield Path(dirpath) / filename

    def fix_content(self, content: str, diagnostics: str = "") -> Tuple[str, List[str]]:
        applied = []
        for rule in self.rules:
            if not rule.applies_to(diagnostics, content):
                continue
            fixed = rule.transform(content)
            if fixed != content:
                content = fixed
                applied.append(rule.name)
        return content, applied

    def repair(self, project_dir: Union[str, Path], diagnostics: str = "") -> int:
        """Rewrite files in place. Returns the number of files changed."""
        files = list(self.source_files(project_dir))
        logger.info("Checking %d source files for known issues", len(files))

        changed = 0
        for path in files:
            try:
                original = path.read_text(encoding="utf-8")
                fixed, applied = self.fix_content(original, diagnostics)
                if fixed == original:
                    continue
                path.write_text(fixed, encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                logger.error("Error fixing file %s: %s", path, e)
                continue
            changed += 1
            for name in applied:
                logger.info("Applied fix %r to %s", name, path.relative_to(project_dir))

        logger.info("Auto-fix complete: %d files modified", changed)
        return changed
