"""Alternating-projection (seesaw) lower bound on the quantum value of a monogamy game.

This module works in three steps:
1. For every restart, sample a random projective measurement for Bob.
2. Alternate the Alice-step and Bob-step SDPs until the Bob-step value stops
   improving by more than ``tol``.
3. Reduce the restarts in order, keeping the best value whose strategy can be
   extracted, and return it with the extracted strategies for both players.

Restarts only read the game tensor, so with ``workers > 1`` they run in a
process pool and are reduced afterwards in the same order as the sequential run.
"""

from __future__ import annotations

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, replace
import logging
from typing import Iterator
import warnings

import numpy as np

from .errors import ConfigError, NumericalDegeneracy, SolverError
from .extraction import complete_measurement, extract_alice_strategy
from .game import MonogamyGame
from .measurement import MeasurementSet
from .sampling import random_projective_measurement
from .sdp import optimize_alice, optimize_bob
from .settings import SeesawSettings

logger = logging.getLogger(__name__)


@dataclass
class SeesawRun:
    """Final state of one alternating-projection loop."""

    rho: np.ndarray
    tau: np.ndarray
    bob: np.ndarray
    win: float
    history: tuple[tuple[float, float], ...]
    converged: bool

    @property
    def iterations(self) -> int:
        return len(self.history)


@dataclass
class RestartRecord:
    """Log entry for one random restart."""

    outer_pass: int
    restart: int
    status: str
    win: float | None
    iterations: int
    history: tuple[tuple[float, float], ...]
    message: str | None = None


@dataclass
class LowerBoundResult:
    """Result bundle for the monogamy-game lower bound."""

    lower_bound: float
    tau: np.ndarray
    rho: np.ndarray
    opt_strat_A: MeasurementSet
    opt_strat_B: MeasurementSet
    level: int
    reps: int
    restarts: tuple[RestartRecord, ...]

    def as_tuple(self) -> tuple[float, np.ndarray, np.ndarray, MeasurementSet, MeasurementSet]:
        """Return ``(lb, tau, rho, opt_strat_A, opt_strat_B)``."""
        return self.lower_bound, self.tau, self.rho, self.opt_strat_A, self.opt_strat_B


class BestResultAccumulator:
    """Best value seen so far together with its extracted strategy.

    The stored result only changes after both strategies were extracted
    successfully; a failing candidate leaves the previous best untouched.
    """

    def __init__(self, dim: int, settings: SeesawSettings) -> None:
        self.dim = int(dim)
        self.settings = settings
        self.lower_bound: float | None = None
        self.run: SeesawRun | None = None
        self.alice: MeasurementSet | None = None
        self.bob: MeasurementSet | None = None

    def improves(self, win: float) -> bool:
        return self.lower_bound is None or self.lower_bound < win

    def offer(self, run: SeesawRun) -> bool:
        """Store ``run`` if it beats the current best; return whether it did.

        Raises ``NumericalDegeneracy`` if ``run`` would improve the bound but its
        strategy cannot be extracted.
        """
        if not self.improves(run.win):
            return False
        alice = extract_alice_strategy(
            run.rho,
            run.tau,
            self.dim,
            degeneracy_atol=self.settings.degeneracy_atol,
            completeness_atol=self.settings.completeness_atol,
        )
        try:
            completed = complete_measurement(
                run.bob,
                atol=self.settings.completeness_atol,
                degeneracy_atol=self.settings.degeneracy_atol,
            )
            bob = MeasurementSet(completed, atol=self.settings.completeness_atol)
        except (ConfigError, NumericalDegeneracy) as exc:
            raise NumericalDegeneracy(f"Bob's strategy is not a valid measurement: {exc}") from exc
        self.lower_bound = run.win
        self.run = run
        self.alice = alice
        self.bob = bob
        return True


def alternating_projection(
    K: np.ndarray,
    bob: np.ndarray,
    settings: SeesawSettings,
) -> SeesawRun:
    """Alternate the two SDPs from Bob's measurement ``bob`` until convergence.

    The loop stops once ``win_B - previous win_B <= tol`` (signed, starting from
    ``-1``) or after ``settings.max_iterations`` full iterations; the latter
    returns with ``converged=False``. Nothing is logged or warned here;
    ``run_seesaw`` reports every restart from the calling process.
    """
    history: list[tuple[float, float]] = []
    prev_win = -1.0
    converged = False
    for _ in range(settings.max_iterations):
        alice_step = optimize_alice(K, bob, settings)
        bob_step = optimize_bob(K, alice_step.rho, settings)
        bob = bob_step.bob
        history.append((alice_step.win, bob_step.win))

        it_diff = bob_step.win - prev_win
        prev_win = bob_step.win
        if it_diff <= settings.tol:
            converged = True
            break

    return SeesawRun(
        rho=alice_step.rho,
        tau=alice_step.tau,
        bob=bob_step.bob,
        win=bob_step.win,
        history=tuple(history),
        converged=converged,
    )


def _run_restart(
    K: np.ndarray,
    settings: SeesawSettings,
    outer_pass: int,
    restart: int,
    seed: np.random.SeedSequence,
) -> tuple[RestartRecord, SeesawRun | None]:
    """Run one random restart; solver failures are recorded, not raised."""
    X, _, A, _, d, _ = K.shape
    rng = np.random.default_rng(seed)
    bob = random_projective_measurement(X, A, d, rng=rng)
    try:
        run = alternating_projection(K, bob, settings)
    except SolverError as exc:
        record = RestartRecord(
            outer_pass=outer_pass,
            restart=restart,
            status="solver_error",
            win=None,
            iterations=0,
            history=(),
            message=str(exc),
        )
        return record, None

    record = RestartRecord(
        outer_pass=outer_pass,
        restart=restart,
        status="converged" if run.converged else "max_iterations",
        win=run.win,
        iterations=run.iterations,
        history=run.history,
    )
    return record, run


def _run_restart_task(
    task: tuple[np.ndarray, SeesawSettings, int, int, np.random.SeedSequence],
) -> tuple[RestartRecord, SeesawRun | None]:
    return _run_restart(*task)


def _iter_restart_outcomes(
    K: np.ndarray,
    settings: SeesawSettings,
) -> Iterator[tuple[RestartRecord, SeesawRun | None]]:
    seeds = settings.restart_seeds()
    tasks = [
        (K, settings, outer_pass, restart, seeds[outer_pass * settings.j_max + restart])
        for outer_pass in range(settings.i_max + 1)
        for restart in range(settings.j_max)
    ]
    if settings.workers == 1 or len(tasks) == 1:
        for task in tasks:
            yield _run_restart_task(task)
        return

    with ProcessPoolExecutor(max_workers=min(settings.workers, len(tasks))) as executor:
        futures = [executor.submit(_run_restart_task, task) for task in tasks]
        for future in futures:
            yield future.result()


def _report_restart(record: RestartRecord, settings: SeesawSettings) -> None:
    """Log one finished restart and warn if it hit the iteration cap."""
    prev_win = None
    for iteration, (win_a, win_b) in enumerate(record.history, start=1):
        logger.debug(
            "Restart %d (pass %d) iteration %d: win_A=%.9f win_B=%.9f",
            record.restart,
            record.outer_pass,
            iteration,
            win_a,
            win_b,
        )
        if prev_win is not None and win_a < prev_win - settings.tol:
            logger.debug("Alice step decreased the value by %.3e", prev_win - win_a)
        prev_win = win_b

    if record.status == "solver_error":
        logger.warning(
            "Restart %d (pass %d) aborted: %s", record.restart, record.outer_pass, record.message
        )
        return
    logger.info(
        "Restart %d (pass %d): win=%.9f after %d iteration(s)",
        record.restart,
        record.outer_pass,
        record.win,
        record.iterations,
    )
    if record.status == "max_iterations":
        warnings.warn(
            f"Restart {record.restart} (pass {record.outer_pass}) stopped after "
            f"max_iterations={settings.max_iterations} without reaching tol={settings.tol:g}.",
            RuntimeWarning,
            stacklevel=3,
        )


def run_seesaw(
    game: MonogamyGame,
    level: int = 1,
    settings: SeesawSettings | None = None,
    **overrides: object,
) -> LowerBoundResult:
    """Lower-bound the quantum value of ``game`` by alternating projections.

    ``level`` is the NPA hierarchy level; it is validated and reported but the
    alternating procedure does not depend on it.
    """
    if isinstance(level, bool) or not isinstance(level, (int, np.integer)) or int(level) < 1:
        raise ConfigError("level must be an integer >= 1.")
    if settings is None:
        cfg = SeesawSettings.from_kwargs(**overrides)
    else:
        cfg = settings.updated(**overrides)

    K = game.game_tensor
    best = BestResultAccumulator(game.dim, cfg)
    records: list[RestartRecord] = []
    for record, run in _iter_restart_outcomes(K, cfg):
        _report_restart(record, cfg)
        if run is not None:
            try:
                improved = best.offer(run)
            except NumericalDegeneracy as exc:
                warnings.warn(
                    f"Discarding restart {record.restart} (pass {record.outer_pass}) "
                    f"with win={run.win:.9f}: {exc}",
                    RuntimeWarning,
                    stacklevel=2,
                )
                record = replace(record, status="degenerate", message=str(exc))
            else:
                if improved:
                    logger.info("New best lower bound %.9f", run.win)
        records.append(record)

    if best.lower_bound is None:
        failures = "; ".join(
            f"restart {r.restart} (pass {r.outer_pass}): {r.message}" for r in records
        )
        if any(r.status == "degenerate" for r in records):
            raise NumericalDegeneracy(f"No restart produced an extractable strategy. {failures}")
        raise SolverError(f"Every restart failed. {failures}")

    return LowerBoundResult(
        lower_bound=best.lower_bound,
        tau=best.run.tau,
        rho=best.run.rho,
        opt_strat_A=best.alice,
        opt_strat_B=best.bob,
        level=int(level),
        reps=game.reps,
        restarts=tuple(records),
    )


def monogamy_game_value_lower_bound(
    reference: object,
    reps: int = 1,
    level: int = 1,
    i_max: int = 0,
    j_max: int = 4,
    **settings: object,
) -> LowerBoundResult:
    """Compute a lower bound on the quantum value of a monogamy-of-entanglement game.

    Motivation
    ----------
    A referee measures its share of a tripartite state with ``R[x][a]`` and two
    non-communicating players both try to guess the outcome ``a`` given ``x``.
    Any explicit strategy gives a lower bound on the optimal winning
    probability; this routine searches for a good one.

    Input/output structure
    ----------------------
    ``reference`` is a ``ReferenceMeasurement`` or a nested sequence ``R[x][a]``
    of square matrices (or an array of shape ``(X, A, d, d)``); ``reps`` is the
    number of parallel repetitions. ``i_max + 1`` outer passes of ``j_max``
    random restarts are run. Remaining keyword arguments are
    ``SeesawSettings`` fields (``tol``, ``solver``, ``workers``, ``seed``, ...).
    Returns a ``LowerBoundResult``; ``result.as_tuple()`` gives
    ``(lb, tau, rho, opt_strat_A, opt_strat_B)``.

    High-level implementation
    -------------------------
    Builds the ``reps``-fold game tensor, then for every restart alternates an
    SDP over the joint operators (Bob fixed) with an SDP over Bob's measurement
    (joint operators fixed). Each half-step is a global maximization over a
    convex set, so the value never decreases within a restart. The best value
    across restarts whose strategy can be extracted is returned.
    """
    cfg = SeesawSettings.from_kwargs(i_max=i_max, j_max=j_max, **settings)
    game = MonogamyGame(reference, reps=reps)
    return run_seesaw(game, level=level, settings=cfg)
