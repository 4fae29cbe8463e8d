# tests/architecture/test_architecture.py
# Architecture tests enforcing layering rules.
# - routers must not contain SQL or talk to the database driver directly
# - models must not depend on services, routers or the web framework
# - services must not depend on routers
# - seeders only see their connection and the demo tables

import ast
import pathlib
import re
import pytest  # type: ignore[import-not-found]

REPO_ROOT = pathlib.Path(__file__).resolve().parents[2]
PACKAGE = REPO_ROOT / "studio"


def _pkg_path(*parts: str) -> pathlib.Path | None:
    p = PACKAGE.joinpath(*parts)
    return p if p.exists() and p.is_dir() else None


def _iter_py_files(root: pathlib.Path):
    for path in root.rglob("*.py"):
        # skip virtualenv & build outputs
        parts = {"venv", ".venv", "node_modules", "__pycache__"}
        if any(part in parts for part in path.parts):
            continue
        yield path


def _parse(py_path: pathlib.Path) -> ast.AST | None:
    try:
        return ast.parse(py_path.read_text(encoding="utf-8"), filename=str(py_path))
    except (OSError, SyntaxError):
        return None


def _collect_imports(py_path: pathlib.Path) -> set[str]:
    """Return the set of fully qualified modules imported by a file."""
    tree = _parse(py_path)
    if tree is None:
        return set()
    imports: set[str] = set()
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            imports.update(alias.name for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module:
            imports.add(node.module)
    return imports


def _imports_any(py_path: pathlib.Path, prefixes: set[str]) -> set[str]:
    return {
        imp for imp in _collect_imports(py_path)
        if any(imp == p or imp.startswith(p + ".") for p in prefixes)
    }


_SQL_RE = re.compile(r"\b(SELECT|INSERT\s+INTO|UPDATE\s+\w+\s+SET|DELETE\s+FROM|JOIN|CREATE\s+SCHEMA|DROP\s+SCHEMA)\b")


def _file_contains_sql(py_path: pathlib.Path) -> bool:
    """Heuristic: raw SQL in string literals, or direct use of DB libraries."""
    tree = _parse(py_path)
    if tree is None:
        return False
    for node in ast.walk(tree):
        if isinstance(node, ast.Constant) and isinstance(node.value, str) and _SQL_RE.search(node.value):
            return True
    # Direct DB libs in controllers are not allowed
    return bool(_imports_any(py_path, {"sqlalchemy", "asyncpg", "psycopg2"}))


# ---------- Tests ----------

@pytest.mark.architecture
def test_routers_do_not_contain_sql():
    routers = _pkg_path("routers")
    if not routers:
        pytest.skip("No routers package; skipping")

    offenders = [f for f in _iter_py_files(routers) if _file_contains_sql(f)]
    assert not offenders, "Routers must not contain SQL; offending files:\n" + "\n".join(map(str, offenders))


@pytest.mark.architecture
def test_models_do_not_depend_on_upper_layers():
    models = _pkg_path("models")
    if not models:
        pytest.skip("No models package; skipping")
    forbidden = {"studio.services", "studio.routers", "studio.repositories", "fastapi", "starlette"}
    for f in _iter_py_files(models):
        bad = _imports_any(f, forbidden)
        assert not bad, f"models must not import {sorted(bad)}: {f}"


@pytest.mark.architecture
def test_services_do_not_depend_on_routers():
    services = _pkg_path("services")
    if not services:
        pytest.skip("No services package; skipping")
    for f in _iter_py_files(services):
        bad = _imports_any(f, {"studio.routers", "studio.main", "studio.jobs"})
        assert not bad, f"services must not import {sorted(bad)}: {f}"


@pytest.mark.architecture
def test_seeders_only_touch_demo_tables():
    seeds = _pkg_path("seeding", "seeds")
    if not seeds:
        pytest.skip("No seeders; skipping")
    forbidden = {
        "studio.db",
        "studio.services",
        "studio.repositories",
        "studio.provisioning",
        "studio.models.preview_session",
        "studio.models.preview_session_table",
    }
    for f in _iter_py_files(seeds):
        bad = _imports_any(f, forbidden)
        assert not bad, f"seeders must not import {sorted(bad)}: {f}"
