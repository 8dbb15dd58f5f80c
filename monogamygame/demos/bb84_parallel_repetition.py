"""BB84 monogamy game repeated twice in parallel; the value is (1/2 + 1/(2 sqrt 2))^2."""

from __future__ import annotations

from pathlib import Path

import sys


_REPO_ROOT = Path(__file__).resolve().parents[2]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

import sympy as sp

from monogamygame.game import MonogamyGame
from monogamygame.measurement import ReferenceMeasurement


REPS = 2
J_MAX = 2
WORKERS = 2
SEED = 7


def main() -> None:
    game = MonogamyGame(ReferenceMeasurement.bb84(), reps=REPS)
    print(game)
    result = game.quantum_value_lower_bound(level=1, j_max=J_MAX, workers=WORKERS, seed=SEED)
    single_round = sp.Rational(1, 2) + 1 / (2 * sp.sqrt(2))

    print(f"lower bound                  = {result.lower_bound:.6f}")
    print(f"single-round value ^ {REPS}       = {float(single_round**REPS):.6f}")
    for record in result.restarts:
        win = "n/a" if record.win is None else f"{record.win:.6f}"
        print(f"  restart {record.restart}: {record.status:<14} win={win} iterations={record.iterations}")


if __name__ == "__main__":
    main()
