"""Independent sets, kernels, and maximum-weight kernels of a graph.

Problem: for a graph G (by default the cycle C_N) compute
- the number of independent sets of G,
- the number of kernels (maximal independent sets) of G,
- a kernel maximizing sum(w_v), with w_v = (-1)^popcount(v) (Thue-Morse signs).

Method:
- Each vertex v gets a Boolean x_v. Independence: (~x_u | ~x_v) per edge.
  Maximality: (x_v | OR_{u in N(v)} x_u) per vertex.
- Counting: exact BDD compilation (default) or memoized DPLL search; counts
  are exact Python ints (C_100 has 792070839848372253127 independent sets).
- Optimization: native branch-and-bound with unit propagation and residual
  state memoization; CP-SAT, CBC, MaxSAT (RC2) or a race of backends as
  alternatives. All backends return the lexicographically smallest optimal
  kernel, so results do not depend on the backend.

Capabilities:
- Single solve with optional verification, DIMACS export and JSON certificate.
- `--prove-optimal` writes a CNF for "a kernel of weight >= max+1 exists" and
  asks `kissat` for a DRAT proof of UNSAT (falls back to re-solving natively).
- Sequential run over C_3..C_N writing `C_{n}.json` certificates, skipping
  existing ones to allow resume.

Example commands:
  # Reproduce the C_100 numbers
  python solver.py 100 --verify
  # Cross-check the optimum with CP-SAT and prove it with kissat
  python solver.py 100 --backend cpsat --prove-optimal --cert certificates/C_100.json
  # Sequential run with certificates
  python solver.py --seq 60 --cert-dir certificates
"""

from __future__ import annotations

import sys
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Hashable, List, Mapping, Optional, Sequence, Tuple

from bdd import DEFAULT_NODE_LIMIT
from certificates import existing_certificates, save_certificate
from counter import COUNT_METHODS, count
from errors import KernelSolverError
from graphs import Graph, cycle_graph, thue_morse_weights
from model import build_independent_set_model, build_kernel_model, selected_vertices
from optimizer import OPTIMIZE_BACKENDS, RACE_BACKENDS, OptimizeResult, optimize
from proofs import model_to_dimacs, prove_optimality
from search import DEFAULT_CACHE_LIMIT

WeightFunction = Callable[[Sequence[Hashable]], Mapping[Hashable, int]]


@dataclass
class KernelReport:
    graph: Graph
    independent_sets: Optional[int]
    kernels: Optional[int]
    optimum: OptimizeResult
    selected: List[Hashable]
    negatives: List[Hashable]
    weights: Dict[Hashable, int]
    runtime: float


def negative_vertices(
    selected: Sequence[Hashable], weights: Mapping[Hashable, int]
) -> List[Hashable]:
    """Selected vertices whose own weight is negative."""
    return [v for v in selected if weights[v] < 0]


def verify_kernel(graph: Graph, selected: Sequence[Hashable]) -> bool:
    """Check directly on the graph that `selected` is independent and maximal."""
    chosen = set(selected)
    if not chosen.issubset(graph.vertices):
        return False
    for u, v in graph.edges:
        if u in chosen and v in chosen:
            return False
    adj = graph.neighbours()
    return all(v in chosen or any(u in chosen for u in adj[v]) for v in graph.vertices)


def solve_graph(
    graph: Graph,
    weight_fn: WeightFunction = thue_morse_weights,
    count_independent: bool = True,
    count_kernels: bool = True,
    count_method: str = "bdd",
    backend: str = "bnb",
    race_backends: Optional[Sequence[str]] = None,
    threads: int = 1,
    node_limit: int = DEFAULT_NODE_LIMIT,
    cache_limit: int = DEFAULT_CACHE_LIMIT,
    verbose: bool = False,
) -> KernelReport:
    """Count independent sets and kernels of `graph` and find a maximum-weight kernel."""
    t0 = time.perf_counter()
    kernel_model = build_kernel_model(graph)
    ind_count = None
    if count_independent:
        ind_count = count(
            build_independent_set_model(graph),
            method=count_method,
            node_limit=node_limit,
            cache_limit=cache_limit,
            verbose=verbose,
        )
    ker_count = None
    if count_kernels:
        ker_count = count(
            kernel_model,
            method=count_method,
            node_limit=node_limit,
            cache_limit=cache_limit,
            verbose=verbose,
        )
    weights = dict(weight_fn(graph.vertices))
    res = optimize(
        kernel_model,
        weights,
        backend=backend,
        race_backends=race_backends,
        threads=threads,
        cache_limit=cache_limit,
        verbose=verbose,
    )
    selected = selected_vertices(kernel_model, res.assignment)
    return KernelReport(
        graph=graph,
        independent_sets=ind_count,
        kernels=ker_count,
        optimum=res,
        selected=selected,
        negatives=negative_vertices(selected, weights),
        weights=weights,
        runtime=time.perf_counter() - t0,
    )


def _maybe_prove_optimal(
    report: KernelReport,
    prove_optimal: bool,
    out_dir: Path,
    cache_limit: int,
) -> Tuple[Optional[bool], Optional[Path], Optional[Path]]:
    if not prove_optimal:
        return None, None, None
    model = build_kernel_model(report.graph)
    vec = model.weight_vector(report.weights)
    best = report.optimum.value

    # Re-solve with the native engine; the claim holds iff nothing beats `best`.
    def fallback() -> bool:
        return optimize(model, vec, cache_limit=cache_limit).value <= best

    return prove_optimality(model, vec, best, cnf_dir=out_dir, fallback_feasible=fallback)


def format_report(report: KernelReport) -> str:
    """Human-friendly one-line summary of a solve."""
    parts = [
        f"{report.graph.name}",
        f"independent_sets={report.independent_sets}",
        f"kernels={report.kernels}",
        f"max_weight={report.optimum.value}",
        f"negatives={report.negatives}",
        f"backend={report.optimum.backend}",
        f"time {report.runtime:.3f}s",
    ]
    return " | ".join(parts)


def sequential_cert_run(
    target_n: int,
    out_dir: Path,
    verbose: bool,
    prove_optimal: bool,
    count_method: str = "bdd",
    backend: str = "bnb",
    race_backends: Optional[Sequence[str]] = None,
    threads: int = 1,
    node_limit: int = DEFAULT_NODE_LIMIT,
    cache_limit: int = DEFAULT_CACHE_LIMIT,
    solve_func: Callable[..., KernelReport] = solve_graph,
) -> None:
    """Solve C_n for n=3..target_n, writing certificates and skipping existing ones.

    solve_func: injectable solver (for testing or alternative pipelines).
    """
    out_dir.mkdir(parents=True, exist_ok=True)
    done = set(existing_certificates(out_dir, prefix="C"))
    for n in range(3, target_n + 1):
        if n in done:
            continue
        graph = cycle_graph(n)
        report = solve_func(
            graph,
            count_method=count_method,
            backend=backend,
            race_backends=race_backends,
            threads=threads,
            node_limit=node_limit,
            cache_limit=cache_limit,
            verbose=verbose,
        )
        optimality, cnf_path, proof_path = _maybe_prove_optimal(
            report, prove_optimal, out_dir, cache_limit
        )
        cert_path = out_dir / f"C_{n}.json"
        save_certificate(
            graph.name,
            n,
            cert_path,
            independent_sets=report.independent_sets,
            kernels=report.kernels,
            max_weight=report.optimum.value,
            selected=report.selected,
            negatives=report.negatives,
            verify_fn=lambda sel, g=graph: verify_kernel(g, sel),
            runtime=report.runtime,
            optimality_proved=optimality,
            cnf_path=cnf_path,
            proof_path=proof_path,
        )
        print(f"{format_report(report)} | optimality_proved={optimality} | saved {cert_path}")


def main(argv: Optional[Sequence[str]] = None) -> int:
    import argparse

    parser = argparse.ArgumentParser(
        description="Count independent sets and kernels of C_N and find a maximum Thue-Morse kernel."
    )
    parser.add_argument("N", type=int, nargs="?", help="Number of vertices of the cycle C_N")
    parser.add_argument(
        "--count-method",
        choices=list(COUNT_METHODS),
        default="bdd",
        help="Exact counting method: BDD compilation (default) or memoized search.",
    )
    parser.add_argument(
        "--backend",
        choices=list(OPTIMIZE_BACKENDS),
        default="bnb",
        help="Optimizer: native branch-and-bound (default), CP-SAT, CBC, MaxSAT, or a race.",
    )
    parser.add_argument(
        "--race-backends",
        type=str,
        help="Comma-separated backend names to race when --backend=race (e.g., 'bnb,cpsat').",
    )
    parser.add_argument(
        "--threads", type=int, default=1, help="Threads for external solver backends"
    )
    parser.add_argument(
        "--node-limit",
        type=int,
        default=DEFAULT_NODE_LIMIT,
        help="Abort BDD counting after this many nodes.",
    )
    parser.add_argument(
        "--cache-limit",
        type=int,
        default=DEFAULT_CACHE_LIMIT,
        help="Abort search counting/optimization after this many memo entries.",
    )
    parser.add_argument("--verbose", action="store_true", help="Print solver statistics.")
    parser.add_argument("--cert", type=Path, help="Write JSON certificate to this path.")
    parser.add_argument(
        "--verify", action="store_true", help="Explicitly verify the optimal kernel."
    )
    parser.add_argument("--dimacs", type=Path, help="Write the kernel model as DIMACS CNF.")
    parser.add_argument(
        "--seq",
        type=int,
        help="Run sequentially over C_3..C_SEQ, writing certificates C_{n}.json in --cert-dir.",
    )
    parser.add_argument(
        "--cert-dir",
        type=Path,
        default=Path("certificates"),
        help="Directory for certificates in sequential mode.",
    )
    parser.add_argument(
        "--prove-optimal",
        action="store_true",
        help="Attempt to prove no heavier kernel exists (emits CNF/DRAT if kissat is available).",
    )
    args = parser.parse_args(argv)

    race_backends = (
        [b.strip() for b in args.race_backends.split(",") if b.strip()]
        if args.race_backends
        else None
    )
    if race_backends is not None:
        unknown = [b for b in race_backends if b not in RACE_BACKENDS]
        if unknown:
            parser.error(
                f"Unknown --race-backends {', '.join(unknown)} (choose from {','.join(RACE_BACKENDS)})"
            )

    try:
        if args.seq:
            sequential_cert_run(
                args.seq,
                args.cert_dir,
                args.verbose,
                args.prove_optimal,
                count_method=args.count_method,
                backend=args.backend,
                race_backends=race_backends,
                threads=args.threads,
                node_limit=args.node_limit,
                cache_limit=args.cache_limit,
            )
            return 0

        if args.N is None:
            parser.error("Provide N or --seq.")

        graph = cycle_graph(args.N)
        report = solve_graph(
            graph,
            count_method=args.count_method,
            backend=args.backend,
            race_backends=race_backends,
            threads=args.threads,
            node_limit=args.node_limit,
            cache_limit=args.cache_limit,
            verbose=args.verbose,
        )
        optimality, cnf_path, proof_path = _maybe_prove_optimal(
            report, args.prove_optimal, Path("."), args.cache_limit
        )
    except KernelSolverError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    print(f"independent sets of {graph.name}: {report.independent_sets}")
    print(f"kernels of {graph.name}: {report.kernels}")
    print(f"maximum weight kernel: {report.selected}")
    print(f"negative-weight vertices in it: {report.negatives}")
    print(f"max = {report.optimum.value}")
    print(f"time {report.runtime:.3f}s")
    if args.prove_optimal:
        print(f"no heavier kernel exists (proof/solver): {optimality}")
    if args.verify:
        ok = verify_kernel(graph, report.selected)
        print(f"verification: {'passed' if ok else 'FAILED'}")
    if args.dimacs:
        args.dimacs.write_text(model_to_dimacs(build_kernel_model(graph)))
        print(f"wrote DIMACS to {args.dimacs}")
    if args.cert:
        args.cert.parent.mkdir(parents=True, exist_ok=True)
        save_certificate(
            graph.name,
            args.N,
            args.cert,
            independent_sets=report.independent_sets,
            kernels=report.kernels,
            max_weight=report.optimum.value,
            selected=report.selected,
            negatives=report.negatives,
            verify_fn=lambda sel: verify_kernel(graph, sel),
            runtime=report.runtime,
            optimality_proved=optimality,
            cnf_path=cnf_path,
            proof_path=proof_path,
        )
        print(f"wrote certificate to {args.cert}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
