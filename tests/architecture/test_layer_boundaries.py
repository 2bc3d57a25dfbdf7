"""
Import-boundary enforcement for procurement_kernel.

1. Domain purity   -- procurement_kernel/domain/** may not import the DB,
                      ORM, models, services, selectors or config layers.
2. Domain no-clock -- domain code may not read the wall clock except
                      through clock.py.
3. Selectors       -- read-only layer; may not import services.
4. Models          -- may not import services or selectors.

All scanning is done via AST -- these tests are read-only.
"""

import ast
import glob
from pathlib import Path

PACKAGE_ROOT = Path(__file__).resolve().parents[2] / "procurement_kernel"


def _python_files(subdir: str) -> list[str]:
    return sorted(glob.glob(f"{PACKAGE_ROOT / subdir}/**/*.py", recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Return (line_number, module_string) for every import in *filepath*."""
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _matches_any(module: str, prefixes: tuple[str, ...]) -> bool:
    return any(module == p or module.startswith(f"{p}.") for p in prefixes)


def _violations(subdir: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(subdir):
        for lineno, module in _extract_imports(path):
            if _matches_any(module, forbidden):
                found.append(f"{Path(path).relative_to(PACKAGE_ROOT)}:{lineno} imports {module}")
    return found


class TestDomainPurity:
    FORBIDDEN = (
        "sqlalchemy",
        "yaml",
        "procurement_kernel.db",
        "procurement_kernel.models",
        "procurement_kernel.services",
        "procurement_kernel.selectors",
        "procurement_kernel.config",
    )

    def test_domain_has_no_io_imports(self):
        assert _violations("domain", self.FORBIDDEN) == []

    def test_domain_reads_time_only_through_clock(self):
        offenders = []
        for path in _python_files("domain"):
            if path.endswith("clock.py"):
                continue
            tree = ast.parse(Path(path).read_text(), filename=path)
            for node in ast.walk(tree):
                if (
                    isinstance(node, ast.Attribute)
                    and node.attr in ("now", "utcnow", "today")
                    and isinstance(node.value, ast.Name)
                    and node.value.id in ("datetime", "date")
                ):
                    offenders.append(f"{path}:{node.lineno}")
        assert offenders == []


class TestLayerDirection:
    def test_selectors_do_not_import_services(self):
        assert _violations("selectors", ("procurement_kernel.services",)) == []

    def test_models_do_not_import_services_or_selectors(self):
        forbidden = ("procurement_kernel.services", "procurement_kernel.selectors")
        assert _violations("models", forbidden) == []
