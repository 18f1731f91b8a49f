"""External backends for weighted kernel optimization: CBC, CP-SAT, and MaxSAT.

Every session answers one question: given a set of fixed literals, return an
assignment that satisfies the model and maximizes the weight, or None if the
fixed literals make the model unsatisfiable. The optimizer calls it
repeatedly to canonicalize the optimum (see optimizer.canonicalize).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from errors import BackendNotAvailable
from model import Clause

try:
    from ortools.linear_solver import pywraplp
except ImportError as exc:  # pragma: no cover - import guard
    pywraplp = None  # type: ignore[assignment]
    _ORTOOLS_LINEAR_ERROR = exc
else:  # pragma: no cover - import guard
    _ORTOOLS_LINEAR_ERROR = None

try:
    from ortools.sat.python import cp_model
except ImportError as exc:  # pragma: no cover - import guard
    cp_model = None  # type: ignore[assignment]
    _ORTOOLS_CP_ERROR = exc
else:  # pragma: no cover - import guard
    _ORTOOLS_CP_ERROR = None

try:
    from pysat.examples.rc2 import RC2
    from pysat.formula import WCNF
except ImportError as exc:  # pragma: no cover - import guard
    RC2 = None  # type: ignore[assignment]
    WCNF = None  # type: ignore[assignment]
    _PYSAT_ERROR = exc
else:  # pragma: no cover - import guard
    _PYSAT_ERROR = None


ORTOOLS_LINEAR_AVAILABLE = pywraplp is not None
CPSAT_AVAILABLE = cp_model is not None
MAXSAT_AVAILABLE = RC2 is not None and WCNF is not None

EXTERNAL_BACKENDS = ("cbc", "cpsat", "maxsat")


@dataclass
class BackendSpec:
    """Model ingredients shared across backends."""

    num_variables: int
    clauses: Sequence[Clause]
    weights: Sequence[int]


class BackendSession(Protocol):
    def solve(self, fixed: Sequence[int]) -> Optional[List[bool]]:
        """Return a maximum-weight satisfying assignment under `fixed`, or None."""

    def close(self) -> None:
        """Release resources (optional)."""


def _require_ortools_linear() -> None:
    if pywraplp is None:
        raise BackendNotAvailable(
            "CBC backend requires ortools; install with `pip install ortools`."
        ) from _ORTOOLS_LINEAR_ERROR


def _require_ortools_cp() -> None:
    if cp_model is None:
        raise BackendNotAvailable(
            "CP-SAT backend requires ortools; install with `pip install ortools`."
        ) from _ORTOOLS_CP_ERROR


def _require_pysat() -> None:
    if not MAXSAT_AVAILABLE:
        raise BackendNotAvailable(
            "MaxSAT backend requires python-sat; install with `pip install python-sat`."
        ) from _PYSAT_ERROR


class CBCBackendSession:
    def __init__(self, spec: BackendSpec, threads: int):
        _require_ortools_linear()
        if pywraplp.Solver.CreateSolver("CBC") is None:
            raise BackendNotAvailable("CBC solver unavailable")
        self._spec = spec
        self._threads = threads

    def solve(self, fixed: Sequence[int]) -> Optional[List[bool]]:
        spec = self._spec
        solver = pywraplp.Solver.CreateSolver("CBC")
        solver.SetNumThreads(self._threads)
        x = [solver.BoolVar(f"x_{k}") for k in range(1, spec.num_variables + 1)]

        # (l1 | ... | lm) as sum(pos) - sum(neg) >= 1 - |neg|
        for clause in spec.clauses:
            negatives = sum(1 for lit in clause if lit < 0)
            cons = solver.Constraint(1 - negatives, solver.infinity())
            for lit in clause:
                cons.SetCoefficient(x[abs(lit) - 1], 1 if lit > 0 else -1)
        for lit in fixed:
            solver.Add(x[abs(lit) - 1] == (1 if lit > 0 else 0))

        objective = solver.Objective()
        for var, w in zip(x, spec.weights):
            objective.SetCoefficient(var, w)
        objective.SetMaximization()

        status = solver.Solve()
        if status == pywraplp.Solver.INFEASIBLE:
            return None
        if status != pywraplp.Solver.OPTIMAL:
            raise RuntimeError(f"CBC failed with status {status}")
        return [var.solution_value() > 0.5 for var in x]

    def close(self) -> None:
        return


class CPSATBackendSession:
    def __init__(self, spec: BackendSpec, threads: int):
        _require_ortools_cp()
        self._spec = spec
        self._threads = threads

    def _build_model(self, fixed: Sequence[int]):
        spec = self._spec
        model = cp_model.CpModel()
        x = [model.NewBoolVar(f"x_{k}") for k in range(1, spec.num_variables + 1)]
        for clause in spec.clauses:
            model.AddBoolOr(
                [x[lit - 1] if lit > 0 else x[-lit - 1].Not() for lit in clause]
            )
        for lit in fixed:
            model.Add(x[abs(lit) - 1] == (1 if lit > 0 else 0))
        model.Maximize(sum(w * var for var, w in zip(x, spec.weights)))
        return model, x

    def solve(self, fixed: Sequence[int]) -> Optional[List[bool]]:
        model, x = self._build_model(fixed)
        solver = cp_model.CpSolver()
        solver.parameters.num_workers = self._threads
        status = solver.Solve(model)
        if status == cp_model.INFEASIBLE:
            return None
        if status != cp_model.OPTIMAL:
            raise RuntimeError(f"CP-SAT failed with status {status}")
        return [solver.Value(var) == 1 for var in x]

    def close(self) -> None:
        return


class MaxSATBackendSession:
    def __init__(self, spec: BackendSpec, threads: int):
        _require_pysat()
        self._spec = spec
        self._threads = threads

    def _build_wcnf(self, fixed: Sequence[int]) -> WCNF:
        spec = self._spec
        wcnf = WCNF()
        for clause in spec.clauses:
            wcnf.append(list(clause))
        for lit in fixed:
            wcnf.append([lit])
        # Soft objective: reward positive-weight vars being true, negative-weight vars being false.
        for k, w in enumerate(spec.weights, start=1):
            if w > 0:
                wcnf.append([k], weight=w)
            elif w < 0:
                wcnf.append([-k], weight=-w)
        return wcnf

    def solve(self, fixed: Sequence[int]) -> Optional[List[bool]]:
        solver = RC2(self._build_wcnf(fixed))
        try:
            model = solver.compute()
        finally:
            solver.delete()
        if model is None:
            return None
        bits = [False] * self._spec.num_variables
        for lit in model:
            if 0 < lit <= self._spec.num_variables:
                bits[lit - 1] = True
        return bits

    def close(self) -> None:
        return


def create_backend_session(
    name: str, spec: BackendSpec, threads: int
) -> BackendSession:
    name = name.lower()
    if name == "cbc":
        return CBCBackendSession(spec, threads)
    if name in ("cpsat", "cp-sat", "cp_sat"):
        return CPSATBackendSession(spec, threads)
    if name == "maxsat":
        return MaxSATBackendSession(spec, threads)
    raise ValueError(f"Unknown backend {name}")
