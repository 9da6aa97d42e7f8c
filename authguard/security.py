"""
security.py — Path and token helpers for request handlers
==========================================================
Small guards used wherever user input reaches the filesystem or a shell.
"""
from __future__ import annotations

import logging
import re
import secrets
import string
from pathlib import Path
from typing import Iterable, Union

logger = logging.getLogger("authguard.security")

_SHELL_METACHARACTERS = re.compile(r"[;&|`$(){}\[\]<>]")
_TOKEN_ALPHABET = string.ascii_letters + string.digits


def is_path_within_project(file_path: Union[str, Path], project_root: Union[str, Path]) -> bool:
    """
    True if ``file_path`` resolves to ``project_root`` or somewhere below it.

    Both paths are resolved first, so ``..`` segments and symlinks cannot
    escape the root. Any error resolving them counts as outside.
    """
    try:
        resolved = Path(file_path).resolve()
        root = Path(project_root).resolve()
    except (OSError, RuntimeError, ValueError) as exc:
        logger.warning("Error validating path %r: %s", file_path, exc)
        return False
    return resolved == root or root in resolved.parents


def sanitize_shell_input(text: str) -> str:
    """Strip shell metacharacters, then escape backslashes and quotes."""
    cleaned = _SHELL_METACHARACTERS.sub("", text)
    return (
        cleaned.replace("\\", "\\\\")
        .replace("'", "\\'")
        .replace('"', '\\"')
    )


def is_allowed_file_extension(filename: str, allowed_extensions: Iterable[str]) -> bool:
    # allowed_extensions carry the leading dot: [".py", ".md"]
    return Path(filename).suffix.lower() in set(allowed_extensions)


def generate_secure_token(length: int = 32) -> str:
    return "".join(secrets.choice(_TOKEN_ALPHABET) for _ in range(length))
