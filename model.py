"""CNF models of independent sets and kernels (maximal independent sets).

Variables are numbered 1..N in the graph's vertex order, DIMACS style: literal
`k` means "vertex k-1 of the order is selected" and `-k` its negation.

    IND(G)    = AND_{(u,v) in E} (~x_u | ~x_v)
    KERNEL(G) = IND(G) & AND_{v in V} (x_v | OR_{u in N(v)} x_u)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Hashable, List, Mapping, Optional, Sequence, Tuple, Union

from errors import ModelError
from graphs import Graph

Clause = Tuple[int, ...]
Assignment = Tuple[bool, ...]
Weights = Union[Mapping[Hashable, int], Sequence[int]]

INDEPENDENT_SET = "independent_set"
KERNEL = "kernel"


@dataclass(frozen=True)
class Model:
    """Immutable conjunction of clauses plus the vertex <-> variable table."""

    variables: Tuple[Hashable, ...]
    clauses: Tuple[Clause, ...]
    kind: str = "cnf"
    _index: Dict[Hashable, int] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", tuple(self.variables))
        object.__setattr__(self, "clauses", tuple(tuple(c) for c in self.clauses))
        self._index.update({v: k for k, v in enumerate(self.variables, start=1)})
        if len(self._index) != len(self.variables):
            raise ModelError("variable table is not a bijection (duplicate vertex)")

    @property
    def num_variables(self) -> int:
        return len(self.variables)

    def variable_of(self, vertex: Hashable) -> int:
        try:
            return self._index[vertex]
        except KeyError:
            raise ModelError(f"vertex {vertex!r} has no variable in this model") from None

    def vertex_of(self, var: int) -> Hashable:
        if not 1 <= var <= self.num_variables:
            raise ModelError(f"variable {var} outside 1..{self.num_variables}")
        return self.variables[var - 1]

    def validate(self) -> None:
        """Raise ModelError if a clause references an undeclared variable."""
        n = self.num_variables
        for idx, clause in enumerate(self.clauses):
            for lit in clause:
                if not isinstance(lit, int) or lit == 0 or abs(lit) > n:
                    raise ModelError(
                        f"clause #{idx} {clause} references literal {lit!r} outside 1..{n}"
                    )

    def violated_clause(self, assignment: Sequence[bool]) -> Optional[Clause]:
        """Return the first clause with no true literal, or None if all hold."""
        if len(assignment) != self.num_variables:
            raise ModelError(
                f"assignment has {len(assignment)} values, model has {self.num_variables} variables"
            )
        for clause in self.clauses:
            if not any(assignment[abs(lit) - 1] == (lit > 0) for lit in clause):
                return clause
        return None

    def is_satisfied_by(self, assignment: Sequence[bool]) -> bool:
        return self.violated_clause(assignment) is None

    def weight_vector(self, weights: Weights) -> List[int]:
        """Align `weights` (mapping by vertex, or sequence in variable order) with the variables."""
        if isinstance(weights, Mapping):
            missing = [v for v in self.variables if v not in weights]
            if missing:
                raise ModelError(f"no weight for vertices {missing[:5]}")
            vec = [weights[v] for v in self.variables]
        else:
            vec = list(weights)
            if len(vec) != self.num_variables:
                raise ModelError(
                    f"{len(vec)} weights for {self.num_variables} variables"
                )
        for w in vec:
            if isinstance(w, bool) or not isinstance(w, int):
                raise ModelError(f"weight {w!r} is not an integer")
        return vec


def _not_both(model_index: Dict[Hashable, int], u: Hashable, v: Hashable) -> Clause:
    return (-model_index[u], -model_index[v])


def build_independent_set_model(graph: Graph) -> Model:
    """One clause (~x_u | ~x_v) per edge, in edge order."""
    graph.validate()
    index = {v: k for k, v in enumerate(graph.vertices, start=1)}
    clauses = [_not_both(index, u, v) for u, v in graph.edges]
    return Model(variables=graph.vertices, clauses=tuple(clauses), kind=INDEPENDENT_SET)


def build_kernel_model(graph: Graph) -> Model:
    """Independent-set clauses followed by one maximality clause per vertex.

    An isolated vertex gets the unit clause (x_v): leaving it out can never be
    maximal.
    """
    ind = build_independent_set_model(graph)
    adj = graph.neighbours()
    ors: List[Clause] = []
    for v in graph.vertices:
        lits = [ind.variable_of(v)] + [ind.variable_of(u) for u in adj[v]]
        ors.append(tuple(lits))
    return Model(variables=ind.variables, clauses=ind.clauses + tuple(ors), kind=KERNEL)


def selected_vertices(model: Model, assignment: Sequence[bool]) -> List[Hashable]:
    """Vertices set true by `assignment`, in variable order."""
    return [v for v, bit in zip(model.variables, assignment) if bit]
