"""Run all demos serially."""

from __future__ import annotations

from pathlib import Path

import sys


_REPO_ROOT = Path(__file__).resolve().parents[2]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

import importlib


DEMO_MODULES = [
    "monogamygame.demos.bb84",
    "monogamygame.demos.bb84_parallel_repetition",
]


def main() -> None:
    for module_name in DEMO_MODULES:
        module = importlib.import_module(module_name)
        print(f"\nRunning {module_name} ...")
        module.main()


if __name__ == "__main__":
    main()
