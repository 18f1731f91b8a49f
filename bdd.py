"""Reduced ordered binary decision diagrams for exact model counting.

Nodes are integers indexing parallel arrays. Levels follow the variable
numbering of the model (variable k lives at level k-1); the two terminals sit
at level `num_vars`. Every node is hash-consed through the unique table, so
equal functions share one node.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence, Tuple

from errors import ResourceExhausted

DEFAULT_NODE_LIMIT = 2_000_000

FALSE = 0
TRUE = 1


class BDD:
    def __init__(self, num_vars: int, node_limit: int = DEFAULT_NODE_LIMIT):
        self.num_vars = num_vars
        self.node_limit = node_limit
        self._level: List[int] = [num_vars, num_vars]
        self._low: List[int] = [FALSE, TRUE]
        self._high: List[int] = [FALSE, TRUE]
        self._unique: Dict[Tuple[int, int, int], int] = {}

    def __len__(self) -> int:
        return len(self._level)

    def level(self, u: int) -> int:
        return self._level[u]

    def mk(self, level: int, low: int, high: int) -> int:
        if low == high:
            return low
        key = (level, low, high)
        node = self._unique.get(key)
        if node is not None:
            return node
        if len(self._level) >= self.node_limit:
            raise ResourceExhausted(
                f"BDD exceeded node_limit={self.node_limit} ({self.num_vars} variables)"
            )
        node = len(self._level)
        self._level.append(level)
        self._low.append(low)
        self._high.append(high)
        self._unique[key] = node
        return node

    def clause(self, lits: Iterable[int]) -> int:
        """BDD of a disjunction of DIMACS literals."""
        by_level: Dict[int, bool] = {}
        for lit in lits:
            lvl = abs(lit) - 1
            positive = lit > 0
            if by_level.get(lvl, positive) != positive:
                return TRUE  # x | ~x
            by_level[lvl] = positive
        node = FALSE
        for lvl in sorted(by_level, reverse=True):
            if by_level[lvl]:
                node = self.mk(lvl, node, TRUE)
            else:
                node = self.mk(lvl, TRUE, node)
        return node

    def conjoin(self, a: int, b: int) -> int:
        memo: Dict[Tuple[int, int], int] = {}
        return self._and(a, b, memo)

    def _and(self, a: int, b: int, memo: Dict[Tuple[int, int], int]) -> int:
        if a == FALSE or b == FALSE:
            return FALSE
        if a == TRUE:
            return b
        if b == TRUE or a == b:
            return a
        if a > b:
            a, b = b, a
        key = (a, b)
        hit = memo.get(key)
        if hit is not None:
            return hit
        la, lb = self._level[a], self._level[b]
        top = min(la, lb)
        a0, a1 = (self._low[a], self._high[a]) if la == top else (a, a)
        b0, b1 = (self._low[b], self._high[b]) if lb == top else (b, b)
        res = self.mk(top, self._and(a0, b0, memo), self._and(a1, b1, memo))
        memo[key] = res
        return res

    def cnf(self, clauses: Sequence[Sequence[int]]) -> int:
        """Conjoin the clause BDDs left to right.

        After each step the table is compacted to the nodes of the running
        conjunction, so `node_limit` bounds the live diagram plus one step's
        worth of new nodes. Node ids held from before the call are invalid.
        """
        root = TRUE
        for clause in clauses:
            root = self.conjoin(root, self.clause(clause))
            if root == FALSE:
                break
            root = self.compact(root)
        return root

    def compact(self, root: int) -> int:
        """Drop every node not reachable from root and renumber; returns the new root."""
        if root in (FALSE, TRUE):
            live: List[int] = []
        else:
            seen = {root}
            stack = [root]
            while stack:
                u = stack.pop()
                for child in (self._low[u], self._high[u]):
                    if child > TRUE and child not in seen:
                        seen.add(child)
                        stack.append(child)
            # children sit on deeper levels, so they are renumbered first
            live = sorted(seen, key=self._level.__getitem__, reverse=True)
        if len(live) + 2 == len(self._level):
            return root

        remap = {FALSE: FALSE, TRUE: TRUE}
        level = [self.num_vars, self.num_vars]
        low = [FALSE, TRUE]
        high = [FALSE, TRUE]
        unique: Dict[Tuple[int, int, int], int] = {}
        for u in live:
            node = len(level)
            remap[u] = node
            key = (self._level[u], remap[self._low[u]], remap[self._high[u]])
            level.append(key[0])
            low.append(key[1])
            high.append(key[2])
            unique[key] = node
        self._level, self._low, self._high, self._unique = level, low, high, unique
        return remap[root]

    def sat_count(self, root: int) -> int:
        """Number of assignments to all `num_vars` variables that reach TRUE."""
        memo: Dict[int, int] = {FALSE: 0, TRUE: 1}

        def below(u: int) -> int:
            hit = memo.get(u)
            if hit is not None:
                return hit
            lvl = self._level[u]
            lo, hi = self._low[u], self._high[u]
            total = (below(lo) << (self._level[lo] - lvl - 1)) + (
                below(hi) << (self._level[hi] - lvl - 1)
            )
            memo[u] = total
            return total

        return below(root) << self._level[root]

    def reachable(self, root: int) -> int:
        """Number of internal nodes reachable from root."""
        seen = set()
        stack = [root]
        while stack:
            u = stack.pop()
            if u in (FALSE, TRUE) or u in seen:
                continue
            seen.add(u)
            stack.append(self._low[u])
            stack.append(self._high[u])
        return len(seen)
