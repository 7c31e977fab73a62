"""Path normalization utilities.

- Use absolute paths when interacting with the filesystem.
- Remembered directories are stored as absolute directory paths.

Keep this module free of Qt dependencies.
"""

from __future__ import annotations

from pathlib import Path

_DRIVE_PREFIX_LEN = 2


def _normalize_drive_letter(path_str: str) -> str:
    # Normalize drive letter casing on Windows ("c:\\" -> "C:\\").
    if len(path_str) >= _DRIVE_PREFIX_LEN and path_str[1] == ":":
        return path_str[0].upper() + path_str[1:]
    return path_str


def abs_path(path: str | Path) -> Path:
    """Return an absolute path without requiring that it exists."""
    p = Path(path).expanduser()
    try:
        return p.resolve(strict=False)
    except OSError:
        return p.absolute()


def abs_dir(path: str | Path) -> Path:
    """Absolute directory path. An existing file maps to its parent."""
    p = abs_path(path)
    try:
        if p.exists() and not p.is_dir():
            return p.parent
    except OSError:
        pass
    return p


def abs_dir_str(path: str | Path) -> str:
    return _normalize_drive_letter(str(abs_dir(path)))
