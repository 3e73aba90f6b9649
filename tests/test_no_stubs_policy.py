from __future__ import annotations

from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]

_EXCLUDED_DIRS = {"tests", "docs", "__pycache__", ".venv", "build", "dist"}


def _is_excluded(path: Path) -> bool:
    return bool(_EXCLUDED_DIRS.intersection(path.relative_to(REPO_ROOT).parts))


def test_no_stubs_or_todos_in_runtime_code() -> None:
    """
    Runtime code ships without placeholders:
    - no TODO/FIXME/XXX markers
    - no fake ("simulated") transaction or order paths
    """
    forbidden_substrings = [
        "TODO",
        "FIXME",
        "XXX",
        "simulated tx",
        "fake order",
        "not yet implemented",
    ]

    hits: list[str] = []
    for p in REPO_ROOT.rglob("*.py"):
        if _is_excluded(p):
            continue
        text = p.read_text(encoding="utf-8", errors="replace")
        for i, line in enumerate(text.splitlines(), start=1):
            for s in forbidden_substrings:
                if s in line:
                    hits.append(f"{p.relative_to(REPO_ROOT)}:{i}:{line.strip()}")

    assert not hits, "Found stub/TODO markers in runtime code:\n" + "\n".join(hits)
