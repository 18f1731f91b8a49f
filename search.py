"""Residual-formula search shared by the search counter and the branch-and-bound optimizer.

Variables are decided in model order 1..N. After each decision the clause set
is simplified (satisfied clauses dropped, false literals removed) and unit
clauses are propagated, which may force variables further ahead in the order.
A search state is therefore

    (next variable, literals forced ahead of it, residual clauses)

and two paths reaching the same state have the same set of completions, so
subtree results can be memoized on it. For cycle- and path-like graphs only a
handful of distinct residual sets exist per level.
"""

from __future__ import annotations

import sys
import threading
from typing import Dict, FrozenSet, Iterable, Optional, Tuple

from errors import ResourceExhausted
from model import Clause, Model

DEFAULT_CACHE_LIMIT = 1_000_000

State = Tuple[int, FrozenSet[int], FrozenSet[Clause]]


class MemoTable(dict):
    """Dict that refuses to grow past `limit` entries."""

    def __init__(self, limit: int = DEFAULT_CACHE_LIMIT):
        super().__init__()
        self.limit = limit

    def __setitem__(self, key, value) -> None:
        if key not in self and len(self) >= self.limit:
            raise ResourceExhausted(f"search memo exceeded cache_limit={self.limit}")
        super().__setitem__(key, value)


def assign(
    clauses: FrozenSet[Clause], forced: FrozenSet[int], lits: Iterable[int]
) -> Optional[Tuple[FrozenSet[Clause], FrozenSet[int]]]:
    """Set `lits` true and unit-propagate. Returns None on conflict."""
    assigned = set(forced)
    current = set(clauses)
    pending = list(lits)
    while pending:
        lit = pending.pop()
        if lit in assigned:
            continue
        if -lit in assigned:
            return None
        assigned.add(lit)
        simplified = set()
        for clause in current:
            if lit in clause:
                continue
            if -lit in clause:
                clause = tuple(x for x in clause if x != -lit)
                if not clause:
                    return None
                if len(clause) == 1:
                    pending.append(clause[0])
            simplified.add(clause)
        current = simplified
    return frozenset(current), frozenset(assigned)


def initial_state(model: Model) -> Optional[State]:
    """Root state after propagating the model's unit clauses; None if they conflict."""
    if any(not clause for clause in model.clauses):
        return None
    units = [clause[0] for clause in model.clauses if len(clause) == 1]
    res = assign(frozenset(model.clauses), frozenset(), units)
    if res is None:
        return None
    clauses, forced = res
    return 1, forced, clauses


def decide(state: State, value: bool) -> Optional[State]:
    """Assign the state's next variable and advance past it."""
    var, forced, clauses = state
    lit = var if value else -var
    if lit in forced:
        return var + 1, forced - {lit}, clauses
    if -lit in forced:
        return None
    res = assign(clauses, forced, [lit])
    if res is None:
        return None
    new_clauses, new_forced = res
    return var + 1, new_forced - {lit}, new_clauses


def forced_value(state: State) -> Optional[bool]:
    var, forced, _ = state
    if var in forced:
        return True
    if -var in forced:
        return False
    return None


_recursion_lock = threading.Lock()


def ensure_recursion_headroom(depth: int) -> None:
    """Raise the interpreter recursion limit enough for a search of `depth` levels.

    The limit is process-wide and only ever raised, so a concurrent search in
    another thread never sees it drop under its feet.
    """
    needed = 4 * depth + 1000
    with _recursion_lock:
        if needed > sys.getrecursionlimit():
            sys.setrecursionlimit(needed)


def count_models(model: Model, cache_limit: int = DEFAULT_CACHE_LIMIT) -> int:
    """Exact model count by memoized DPLL over residual states."""
    n = model.num_variables
    root = initial_state(model)
    if root is None:
        return 0
    memo: Dict[State, int] = MemoTable(cache_limit)

    def below(state: State) -> int:
        if state[0] > n:
            return 1
        hit = memo.get(state)
        if hit is not None:
            return hit
        fixed = forced_value(state)
        values = (False, True) if fixed is None else (fixed,)
        total = 0
        for value in values:
            child = decide(state, value)
            if child is not None:
                total += below(child)
        memo[state] = total
        return total

    ensure_recursion_headroom(n)
    return below(root)
