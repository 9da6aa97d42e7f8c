"""
tests/test_security.py — Path and token helpers
================================================
"""
import os
import string

import pytest

from authguard.security import (
    generate_secure_token,
    is_allowed_file_extension,
    is_path_within_project,
    sanitize_shell_input,
)


class TestPathWithinProject:
    def test_nested_file(self, tmp_path):
        assert is_path_within_project(tmp_path / "src" / "main.py", tmp_path)

    def test_root_itself(self, tmp_path):
        assert is_path_within_project(tmp_path, tmp_path)

    def test_traversal_escapes(self, tmp_path):
        assert not is_path_within_project(tmp_path / "src" / ".." / ".." / "etc", tmp_path)

    def test_sibling_with_common_prefix(self, tmp_path):
        project = tmp_path / "app"
        project.mkdir()
        assert not is_path_within_project(tmp_path / "app-secrets" / "key", project)

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unsupported")
    def test_symlink_out_of_project(self, tmp_path):
        project = tmp_path / "project"
        outside = tmp_path / "outside"
        project.mkdir()
        outside.mkdir()
        (project / "link").symlink_to(outside, target_is_directory=True)
        assert not is_path_within_project(project / "link" / "file.txt", project)


def test_sanitize_strips_metacharacters():
    assert sanitize_shell_input("ls; rm -rf / && echo $(whoami) | cat > x") == (
        "ls rm -rf /  echo whoami  cat  x"
    )


def test_sanitize_escapes_quotes_and_backslashes():
    assert sanitize_shell_input("it's a \"test\" \\n") == "it\\'s a \\\"test\\\" \\\\n"


def test_allowed_extension_is_case_insensitive():
    assert is_allowed_file_extension("README.MD", [".md", ".txt"])
    assert not is_allowed_file_extension("payload.exe", [".md", ".txt"])
    assert not is_allowed_file_extension("Makefile", [".md"])


def test_token_length_and_alphabet():
    token = generate_secure_token(48)
    assert len(token) == 48
    assert set(token) <= set(string.ascii_letters + string.digits)
    assert generate_secure_token() != generate_secure_token()
    assert len(generate_secure_token()) == 32
