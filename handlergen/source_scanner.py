"""Input folder scanning: find and read the C# sources to ingest."""

from __future__ import annotations

import os
from dataclasses import dataclass
from fnmatch import fnmatchcase
from pathlib import Path
from typing import Iterable, Iterator, List, Sequence

from .logging import get_logger
from .models import SourceFile

logger = get_logger("source_scanner")

# Build output, IDE state and Unity caches never hold handler sources.
DEFAULT_EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".vs",
        ".idea",
        "bin",
        "obj",
        "Library",
        "Temp",
        "node_modules",
    }
)


@dataclass(frozen=True)
class ExcludePattern:
    """One ``exclude_paths`` glob from .handlergen.yml.

    ``Plugins/`` drops a directory anywhere in the tree, ``/Plugins/`` only at
    the input root, ``*.g.cs`` any matching file name, and ``Assets/Old/*.cs``
    (containing a slash) is matched against the whole relative path.
    """

    glob: str
    directories_only: bool
    rooted: bool

    @classmethod
    def parse(cls, raw: str) -> "ExcludePattern | None":
        glob = raw.strip().replace("\\", "/")
        if not glob:
            return None
        directories_only = glob.endswith("/")
        rooted = glob.startswith("/")
        glob = glob.strip("/")
        if not glob:
            return None
        return cls(glob=glob, directories_only=directories_only, rooted=rooted or "/" in glob)

    def excludes(self, rel_path: str, is_dir: bool) -> bool:
        if self.directories_only and not is_dir:
            return False
        if self.rooted:
            return fnmatchcase(rel_path, self.glob)
        return fnmatchcase(rel_path.rsplit("/", 1)[-1], self.glob)


def _walk(root: Path, patterns: Sequence[ExcludePattern]) -> Iterator[Path]:
    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        prefix = "" if current == root else current.relative_to(root).as_posix() + "/"
        dirnames[:] = sorted(
            name
            for name in dirnames
            if name not in DEFAULT_EXCLUDED_DIRS
            and not any(pattern.excludes(prefix + name, True) for pattern in patterns)
        )
        for filename in filenames:
            if any(pattern.excludes(prefix + filename, False) for pattern in patterns):
                continue
            yield current / filename


class SourceScanner:
    """Walks the input folder and reads matching source files in a stable order."""

    def __init__(self, extensions: Iterable[str] = (".cs",), exclude_paths: Iterable[str] = ()) -> None:
        self.extensions = tuple(extension.lower() for extension in extensions)
        self.exclude_paths = list(exclude_paths)

    def scan(self, root: str | Path, *, skip: Iterable[Path] = ()) -> List[SourceFile]:
        """Return every matching file under ``root``, sorted by relative path."""
        root_path = Path(root).expanduser().resolve()
        if not root_path.exists():
            raise FileNotFoundError(f"Input folder not found: {root}")
        if not root_path.is_dir():
            raise NotADirectoryError(f"Input path is not a directory: {root}")

        patterns = [pattern for pattern in map(ExcludePattern.parse, self.exclude_paths) if pattern]
        skipped = {Path(path).expanduser().resolve() for path in skip}

        matched: List[tuple[str, Path]] = []
        for path in _walk(root_path, patterns):
            if path.suffix.lower() not in self.extensions or path.resolve() in skipped:
                continue
            matched.append((path.relative_to(root_path).as_posix(), path))
        matched.sort(key=lambda item: item[0])

        files: List[SourceFile] = []
        for rel_path, path in matched:
            try:
                text = path.read_text(encoding="utf-8-sig")
            except UnicodeDecodeError as exc:
                logger.warning("Skipping %s: not valid UTF-8 (%s)", rel_path, exc)
                continue
            files.append(SourceFile(path=rel_path, text=text))
        logger.debug("Scanner found %d source files under %s", len(files), root_path)
        return files


__all__ = ["DEFAULT_EXCLUDED_DIRS", "ExcludePattern", "SourceScanner"]
