"""DIMACS export and SAT/DRAT optimality proofs for weighted kernels."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from model import Model


def weighted_counter_at_most(
    lits: Sequence[int], weights: Sequence[int], k: int, start_var: int
) -> Tuple[List[List[int]], int]:
    """CNF for sum(weights[i] for true lits[i]) <= k, as a sequential weight counter.

    Hölldobler, Manthey and Steinke, "A Compact Encoding of Pseudo-Boolean
    Constraints into SAT", KI 2012. Row i holds k registers; register s[i][j]
    is forced true when the weight of the true literals among lits[0..i] is
    at least j+1. The last row is never needed and is not allocated.

    Returns (clauses, next_free_var).
    """
    if len(lits) != len(weights):
        raise ValueError("lits and weights must have the same length")
    if k < 0:
        return [[]], start_var
    items = [(lit, w) for lit, w in zip(lits, weights) if w > 0]
    if sum(w for _, w in items) <= k:
        return [], start_var

    rows = len(items) - 1
    s = [[start_var + i * k + j for j in range(k)] for i in range(rows)]
    clauses: List[List[int]] = []
    for i, (lit, w) in enumerate(items):
        if w > k:
            clauses.append([-lit])
        elif i > 0:
            # prefix weight above k - w leaves no room for lit
            clauses.append([-lit, -s[i - 1][k - w]])
        if i == rows:
            break
        clauses.extend([-lit, s[i][j]] for j in range(min(w, k)))
        if i > 0:
            clauses.extend([-s[i - 1][j], s[i][j]] for j in range(k))
            clauses.extend([-lit, -s[i - 1][j], s[i][j + w]] for j in range(k - w))
    return clauses, start_var + rows * k


def to_dimacs(num_vars: int, clauses: Sequence[Sequence[int]], comments: Sequence[str] = ()) -> str:
    lines = [f"c {c}" for c in comments]
    lines.append(f"p cnf {num_vars} {len(clauses)}")
    for cl in clauses:
        lines.append(" ".join(str(lit) for lit in list(cl) + [0]))
    return "\n".join(lines) + "\n"


def model_to_dimacs(model: Model) -> str:
    """DIMACS text of the model; variable k is vertex model.variables[k-1]."""
    comments = [f"{model.kind} model"] + [
        f"var {k} = vertex {v!r}" for k, v in enumerate(model.variables, start=1)
    ]
    return to_dimacs(model.num_variables, model.clauses, comments)


def build_cnf_for_min_weight(
    model: Model, weights: Sequence[int], min_weight: int
) -> Tuple[str, int, int]:
    """DIMACS CNF for: the model holds and sum(w_k * x_k) >= min_weight.

    The weight is rewritten as a loss: a positive-weight variable left false
    loses w, a negative-weight variable set true loses |w|. Then
        sum(w_k * x_k) = sum(positive w) - loss
    and the bound becomes loss <= sum(positive w) - min_weight, a weighted
    at-most constraint over the loss literals.

    Returns (cnf_str, num_vars, num_clauses).
    """
    clauses: List[List[int]] = [list(c) for c in model.clauses]
    loss_lits: List[int] = []
    loss_weights: List[int] = []
    for k, w in enumerate(weights, start=1):
        if w:
            loss_lits.append(-k if w > 0 else k)
            loss_weights.append(abs(w))
    budget = sum(w for w in weights if w > 0) - min_weight

    num_vars = model.num_variables
    card_clauses, next_var = weighted_counter_at_most(
        loss_lits, loss_weights, budget, start_var=num_vars + 1
    )
    clauses.extend(card_clauses)
    num_vars = max(num_vars, next_var - 1, 1)
    return to_dimacs(num_vars, clauses), num_vars, len(clauses)


def run_kissat_proof(cnf_path: Path, proof_path: Path) -> bool:
    """Run kissat with DRAT proof; returns True if UNSAT, False if SAT."""
    cmd = ["kissat", str(cnf_path), str(proof_path)]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode == 10:
        return False  # SAT
    if result.returncode == 20:
        return True  # UNSAT
    raise RuntimeError(f"kissat failed: {result.stdout}\n{result.stderr}")


def prove_optimality(
    model: Model,
    weights: Sequence[int],
    value: int,
    cnf_dir: Path,
    kissat_runner: Callable[[Path, Path], bool] = run_kissat_proof,
    fallback_feasible: Optional[Callable[[], bool]] = None,
) -> Tuple[Optional[bool], Optional[Path], Optional[Path]]:
    """Attempt to prove that no satisfying assignment has weight > value.

    Returns (optimality, cnf_path, proof_path) where optimality is:
      True  -> UNSAT proof for weight >= value + 1
      False -> a better assignment exists
      None  -> proof unavailable and no fallback provided
    fallback_feasible, when kissat is missing, must return the optimality verdict itself.
    """
    target = value + 1
    cnf_dir.mkdir(parents=True, exist_ok=True)
    cnf_path = cnf_dir / f"cnf_{model.kind}_n{model.num_variables}_ge_{target}.cnf"
    proof_path = cnf_path.with_suffix(".drat")
    cnf_text, _, _ = build_cnf_for_min_weight(model, weights, target)
    cnf_path.write_text(cnf_text)
    try:
        unsat = kissat_runner(cnf_path, proof_path)
    except FileNotFoundError:
        unsat = None

    if unsat is None:
        optimality = fallback_feasible() if fallback_feasible else None
    elif unsat is False:
        optimality = False
    else:
        optimality = True
    return optimality, cnf_path, proof_path
