from __future__ import annotations

import ast
from pathlib import Path


def shipyard_root() -> Path:
    return Path(__file__).resolve().parents[2]


def iter_python_files(base: Path) -> list[Path]:
    files: list[Path] = []
    for path in sorted(base.rglob("*.py")):
        rel = path.relative_to(base)
        if any(part.startswith(".") or part == "__pycache__" for part in rel.parts):
            continue
        if rel.parts and rel.parts[0] == "test":
            continue
        files.append(path)
    return files


def _read_tree(path: Path) -> ast.AST:
    return ast.parse(path.read_text(encoding="utf-8"), filename=str(path))


def _direct_subprocess_calls(tree: ast.AST) -> list[int]:
    lines: list[int] = []
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call):
            continue
        func = node.func
        if not isinstance(func, ast.Attribute):
            continue
        if func.attr not in {"run", "check_output", "Popen", "call", "check_call"}:
            continue
        if isinstance(func.value, ast.Name) and func.value.id == "subprocess":
            lines.append(node.lineno)
    return lines


def _imported_modules(tree: ast.AST) -> list[tuple[str, int]]:
    out: list[tuple[str, int]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            out.extend((alias.name, node.lineno) for alias in node.names)
        elif isinstance(node, ast.ImportFrom) and node.module and not node.level:
            out.append((node.module, node.lineno))
    return out


def test_direct_subprocess_usage_is_constrained_to_allowlist() -> None:
    root = shipyard_root()
    allowlist = {"platform/process.py"}

    offenders: list[str] = []
    for file_path in iter_python_files(root):
        rel = file_path.relative_to(root).as_posix()
        if rel in allowlist:
            continue
        for line in _direct_subprocess_calls(_read_tree(file_path)):
            offenders.append(f"{rel}:{line}: direct subprocess call outside allowlist")

    assert not offenders, "Subprocess policy violations:\n" + "\n".join(offenders)


def test_direct_rich_imports_are_limited_to_console() -> None:
    root = shipyard_root()
    allowlist = {"output/console.py"}

    offenders: list[str] = []
    for file_path in iter_python_files(root):
        rel = file_path.relative_to(root).as_posix()
        if rel in allowlist:
            continue
        for module, line in _imported_modules(_read_tree(file_path)):
            if module == "rich" or module.startswith("rich."):
                offenders.append(f"{rel}:{line}: direct rich import '{module}'")

    assert not offenders, "Direct rich usage policy violations:\n" + "\n".join(offenders)


def test_release_services_do_not_import_cli() -> None:
    root = shipyard_root()

    offenders: list[str] = []
    for file_path in iter_python_files(root / "services"):
        rel = file_path.relative_to(root).as_posix()
        for module, line in _imported_modules(_read_tree(file_path)):
            if module == "shipyard.cli" or module.startswith("shipyard.cli.") or module == "typer":
                offenders.append(f"{rel}:{line}: services must not import '{module}'")

    assert not offenders, "Layering violations:\n" + "\n".join(offenders)
