"""Certificate helpers for solver outputs."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Hashable, List, Optional, Sequence


def save_certificate(
    graph_name: str,
    n: int,
    path: Path,
    independent_sets: Optional[int],
    kernels: Optional[int],
    max_weight: Optional[int],
    selected: Sequence[Hashable],
    negatives: Sequence[Hashable],
    verify_fn: Callable[[Sequence[Hashable]], bool],
    runtime: Optional[float],
    optimality_proved: Optional[bool],
    cnf_path: Optional[Path] = None,
    proof_path: Optional[Path] = None,
) -> None:
    """Write a JSON certificate with counts, the optimal kernel, verification, runtime, and proof paths.

    Counts are written as strings: they overflow JSON number precision in most readers.
    """
    data = {
        "graph": graph_name,
        "n": n,
        "independent_sets": str(independent_sets) if independent_sets is not None else None,
        "kernels": str(kernels) if kernels is not None else None,
        "max_weight": max_weight,
        "selected": list(selected),
        "negatives": list(negatives),
        "verified": verify_fn(selected),
        "runtime_seconds": runtime,
        "optimality_proved_no_better": optimality_proved,
        "cnf": str(cnf_path) if cnf_path else None,
        "proof": str(proof_path) if proof_path else None,
    }
    path.write_text(json.dumps(data, indent=2))


def load_certificate(path: Path) -> dict:
    """Read a certificate back, restoring the counts as ints."""
    data = json.loads(path.read_text())
    for key in ("independent_sets", "kernels"):
        if data.get(key) is not None:
            data[key] = int(data[key])
    return data


def existing_certificates(out_dir: Path, prefix: str = "C") -> List[int]:
    """Sorted n values of `{prefix}_{n}.json` files in out_dir."""
    found = []
    for p in out_dir.glob(f"{prefix}_*.json"):
        suffix = p.stem.split("_", 1)[1]
        if suffix.isdigit():
            found.append(int(suffix))
    return sorted(found)
