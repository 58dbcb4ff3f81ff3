"""Tests for naming consistency across the package."""

import ast
from pathlib import Path

import pytest

PACKAGE_DIR = Path(__file__).resolve().parents[2] / "src" / "photo_migrator"


def iter_trees():
    for py_file in sorted(PACKAGE_DIR.rglob("*.py")):
        if py_file.name.startswith("__"):
            continue
        yield py_file, ast.parse(py_file.read_text(encoding="utf-8"))


class TestNamingConsistency:
    """Tests for consistent naming patterns."""

    def test_package_found(self):
        assert PACKAGE_DIR.is_dir()

    def test_function_names_snake_case(self):
        """Test that all function names use snake_case."""
        violations = []
        for py_file, tree in iter_trees():
            for node in ast.walk(tree):
                if isinstance(node, ast.FunctionDef) and any(c.isupper() for c in node.name[1:]):
                    violations.append(f"{py_file}:{node.lineno}: {node.name}")

        if violations:
            pytest.fail(f"Found {len(violations)} naming violations:\n" + "\n".join(violations))

    def test_variable_names_not_camel_case(self):
        """Lower-case variable names must not contain capitals."""
        violations = []
        for py_file, tree in iter_trees():
            for node in ast.walk(tree):
                if not isinstance(node, ast.Assign):
                    continue
                for target in node.targets:
                    if not isinstance(target, ast.Name):
                        continue
                    name = target.id
                    if name[0].islower() and any(c.isupper() for c in name):
                        violations.append(f"{py_file}:{node.lineno}: {name}")

        if violations:
            pytest.fail(f"Found {len(violations)} variable naming violations:\n" + "\n".join(violations))

    def test_class_names_pascal_case(self):
        """Test that class names use PascalCase."""
        violations = []
        for py_file, tree in iter_trees():
            for node in ast.walk(tree):
                if isinstance(node, ast.ClassDef) and '_' in node.name:
                    violations.append(f"{py_file}:{node.lineno}: {node.name}")

        if violations:
            pytest.fail(f"Found {len(violations)} class naming violations:\n" + "\n".join(violations))
