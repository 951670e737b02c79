"""
Layer boundaries of the recurrence packages.

1. recurrence_kernel/** may NOT import recurrence_engines,
   recurrence_services or recurrence_config.
2. recurrence_engines/** may NOT import recurrence_services or
   recurrence_config, nor the kernel's persistence layers (db, models,
   selectors, services).  Engines stay pure.
3. recurrence_config/** may NOT import recurrence_services or
   recurrence_engines.
4. No bare ``except:`` anywhere in package code.

These tests read source code via AST.
"""

import ast
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(filepath: Path) -> list[tuple[int, str]]:
    tree = ast.parse(filepath.read_text(), filename=str(filepath))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(package):
        for lineno, module in _extract_imports(filepath):
            for prefix in forbidden:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath.relative_to(ROOT)}:{lineno} imports '{module}'")
    return found


class TestKernelNoUpwardDependencies:

    FORBIDDEN_PREFIXES = (
        "recurrence_engines",
        "recurrence_services",
        "recurrence_config",
    )

    def test_kernel_does_not_import_outer_packages(self):
        violations = _violations("recurrence_kernel", self.FORBIDDEN_PREFIXES)

        assert not violations, (
            "recurrence_kernel/** must not import upward packages:\n" + "\n".join(violations)
        )


class TestEnginePurity:

    FORBIDDEN_PREFIXES = (
        "recurrence_services",
        "recurrence_config",
        "recurrence_kernel.db",
        "recurrence_kernel.models",
        "recurrence_kernel.selectors",
        "recurrence_kernel.services",
        "sqlalchemy",
    )

    def test_engines_import_only_domain(self):
        violations = _violations("recurrence_engines", self.FORBIDDEN_PREFIXES)

        assert not violations, (
            "recurrence_engines/** must stay free of persistence:\n" + "\n".join(violations)
        )


class TestConfigBoundary:

    def test_config_does_not_import_services_or_engines(self):
        violations = _violations("recurrence_config", ("recurrence_services", "recurrence_engines"))

        assert not violations, "\n".join(violations)


class TestNoBareExcept:

    PACKAGES = (
        "recurrence_kernel",
        "recurrence_engines",
        "recurrence_config",
        "recurrence_services",
    )

    def test_no_bare_except(self):
        offenders: list[str] = []
        for package in self.PACKAGES:
            for filepath in _python_files(package):
                tree = ast.parse(filepath.read_text(), filename=str(filepath))
                for node in ast.walk(tree):
                    if isinstance(node, ast.ExceptHandler) and node.type is None:
                        offenders.append(f"  {filepath.relative_to(ROOT)}:{node.lineno}")

        assert not offenders, "Bare except found:\n" + "\n".join(offenders)
