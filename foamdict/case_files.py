#!/usr/bin/env python3
"""
Case Files — guarded text access to one OpenFOAM case directory.

Every editor goes through a CaseContext, so the case root is an explicit
argument instead of ambient state.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import List, Optional, Union

logger = logging.getLogger("case_files")

PathLike = Union[str, Path]


class CaseFileError(OSError):
    """A case file could not be read or written."""

    def __init__(self, rel_path: str, message: str):
        super().__init__(f"{rel_path}: {message}")
        self.rel_path = rel_path


def is_subpath(root: Path, candidate: Path) -> bool:
    """True if ``candidate`` resolves to ``root`` or somewhere inside it."""
    try:
        candidate.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


class CaseFiles:
    """Reads and writes text files relative to a case root."""

    def __init__(self, case_root: PathLike):
        self.case_root = Path(case_root)

    def resolve(self, rel_path: str) -> Path:
        rel = PurePosixPath(str(rel_path).replace("\\", "/"))
        if rel.is_absolute() or ".." in rel.parts:
            raise CaseFileError(rel_path, "path escapes the case directory")
        target = self.case_root / Path(*rel.parts)
        if not is_subpath(self.case_root, target):
            raise CaseFileError(rel_path, "path escapes the case directory")
        return target

    def exists(self, rel_path: str) -> bool:
        try:
            return self.resolve(rel_path).is_file()
        except CaseFileError:
            return False

    def read_text(self, rel_path: str) -> str:
        target = self.resolve(rel_path)
        if not target.is_file():
            raise CaseFileError(rel_path, "file not found")
        try:
            return target.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise CaseFileError(rel_path, f"not valid UTF-8 text (byte {e.start})") from e
        except OSError as e:
            raise CaseFileError(rel_path, str(e)) from e

    def write_text(self, rel_path: str, text: str) -> None:
        """Write the whole text or nothing: a temp sibling is renamed over the target."""
        target = self.resolve(rel_path)
        tmp = target.with_name(target.name + ".tmp")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(text, encoding="utf-8")
            os.replace(tmp, target)
        except OSError as e:
            raise CaseFileError(rel_path, str(e)) from e
        finally:
            if tmp.exists():
                tmp.unlink()
        logger.info(f"Wrote {rel_path}")

    def list_dir(self, rel_path: str) -> List[str]:
        """File names in a case sub-directory, empty if it does not exist."""
        target = self.resolve(rel_path)
        if not target.is_dir():
            return []
        return sorted(p.name for p in target.iterdir() if p.is_file())


@dataclass
class CaseContext:
    case_root: Path
    files: Optional[CaseFiles] = None

    def __post_init__(self):
        self.case_root = Path(self.case_root)
        if self.files is None:
            self.files = CaseFiles(self.case_root)


@dataclass
class ApplyResult:
    """Outcome of one save cycle: files written in order, files skipped, first error."""
    written: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    error: str = ""

    @property
    def ok(self) -> bool:
        return not self.error
