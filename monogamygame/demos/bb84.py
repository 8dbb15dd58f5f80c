"""BB84 monogamy game: one round, compared with the closed-form value cos^2(pi/8)."""

from __future__ import annotations

from pathlib import Path

import sys


_REPO_ROOT = Path(__file__).resolve().parents[2]
if str(_REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(_REPO_ROOT))

import sympy as sp

from monogamygame.measurement import ReferenceMeasurement
from monogamygame.seesaw import monogamy_game_value_lower_bound


J_MAX = 4
SEED = 2024


def main() -> None:
    reference = ReferenceMeasurement.bb84()
    result = monogamy_game_value_lower_bound(reference, reps=1, level=1, j_max=J_MAX, seed=SEED)
    exact = sp.cos(sp.pi / 8) ** 2

    print(f"BB84 monogamy game, {J_MAX} restarts")
    print(f"lower bound        = {result.lower_bound:.6f}")
    print(f"cos^2(pi/8)        = {float(exact):.6f}  ({sp.simplify(exact)})")
    for record in result.restarts:
        win = "n/a" if record.win is None else f"{record.win:.6f}"
        print(f"  restart {record.restart}: {record.status:<14} win={win} iterations={record.iterations}")
    print("Alice completeness residuals:", result.opt_strat_A.completeness_residuals())
    print("Bob completeness residuals:  ", result.opt_strat_B.completeness_residuals())


if __name__ == "__main__":
    main()
