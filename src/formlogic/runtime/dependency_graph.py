"""Field dependency graph.

An edge A -> B means "B's resolved state may change when A's value changes".
Edges come from:
    - `dependent_fields` declared on A
    - fields read by a conditional rule's condition -> the rule's target
    - fields read by a field's visibility condition -> that field
    - fields read by a section's visibility condition -> every field in it
    - dynamic options `dependencies` -> the field owning the options

Cross-field validation membership is indexed separately and adds no edges:
validations only produce errors, never field state.

The graph is built once per schema and is read-only afterwards.
"""

import heapq
import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from formlogic.errors import CycleError
from formlogic.schemas.configuration import ConfigurationSchema, CrossFieldValidation
from formlogic.utils.expression_parser import collect_field_refs

logger = logging.getLogger(__name__)


class DependencyGraph:
    """Directed acyclic graph over field ids with a precomputed topological order."""

    def __init__(
        self,
        field_order: List[str],
        successors: Dict[str, Set[str]],
        validations: Optional[Dict[str, List[CrossFieldValidation]]] = None,
    ):
        self._field_order = list(field_order)
        self._position = {field_id: i for i, field_id in enumerate(self._field_order)}
        self._successors = {f: set(successors.get(f, ())) for f in self._field_order}
        self._predecessors: Dict[str, Set[str]] = {f: set() for f in self._field_order}
        for source, targets in self._successors.items():
            for target in targets:
                self._predecessors[target].add(source)
        self._validations = validations or {}

        cycle = self._find_cycle()
        if cycle:
            raise CycleError(cycle)
        self._topo_order = self._topological_sort()
        self._topo_index = {f: i for i, f in enumerate(self._topo_order)}

    # ── Construction helpers ─────────────────────────────────────────

    def _find_cycle(self) -> Optional[List[str]]:
        """Return one cycle, or None.

        Nodes and successors are visited in sorted order, so the same edge set
        always yields the same cycle whatever the declaration order.
        """
        white, grey, black = 0, 1, 2
        color = {f: white for f in self._field_order}

        for root in sorted(self._field_order):
            if color[root] != white:
                continue
            path: List[str] = [root]
            stack = [iter(sorted(self._successors[root]))]
            color[root] = grey
            while stack:
                nxt = next(stack[-1], None)
                if nxt is None:
                    color[path.pop()] = black
                    stack.pop()
                    continue
                if color[nxt] == grey:
                    cycle = path[path.index(nxt):]
                    start = cycle.index(min(cycle))
                    cycle = cycle[start:] + cycle[:start]
                    return cycle + [cycle[0]]
                if color[nxt] == white:
                    color[nxt] = grey
                    path.append(nxt)
                    stack.append(iter(sorted(self._successors[nxt])))
        return None

    def _topological_sort(self) -> List[str]:
        # Kahn's algorithm; ties broken by declaration order
        in_degree = {f: len(self._predecessors[f]) for f in self._field_order}
        ready = [(self._position[f], f) for f, d in in_degree.items() if d == 0]
        heapq.heapify(ready)
        order: List[str] = []
        while ready:
            _, current = heapq.heappop(ready)
            order.append(current)
            for target in self._successors[current]:
                in_degree[target] -= 1
                if in_degree[target] == 0:
                    heapq.heappush(ready, (self._position[target], target))
        return order

    # ── Queries ──────────────────────────────────────────────────────

    @property
    def topological_order(self) -> List[str]:
        return list(self._topo_order)

    def __contains__(self, field_id: str) -> bool:
        return field_id in self._position

    def successors(self, field_id: str) -> Set[str]:
        return set(self._successors.get(field_id, ()))

    def predecessors(self, field_id: str) -> Set[str]:
        return set(self._predecessors.get(field_id, ()))

    def edges(self) -> List[Tuple[str, str]]:
        """All edges as (source, target), sorted."""
        return sorted(
            (source, target)
            for source, targets in self._successors.items()
            for target in targets
        )

    def affected(self, changed: str) -> Set[str]:
        """Fields transitively reachable from `changed` (excluding itself)."""
        return set(self.affected_ordered(changed))

    def affected_ordered(self, changed: str) -> List[str]:
        """Fields reachable from `changed`, in topological order.

        Single forward walk over the precomputed order: a node is reached
        iff one of its predecessors was.
        """
        start = self._topo_index.get(changed)
        if start is None:
            return []
        reached = {changed}
        result: List[str] = []
        for field_id in self._topo_order[start + 1:]:
            if self._predecessors[field_id] & reached:
                reached.add(field_id)
                result.append(field_id)
        return result

    def validations_for(self, field_id: str) -> List[CrossFieldValidation]:
        """Cross-field validations that read `field_id`, in schema order."""
        return list(self._validations.get(field_id, ()))

    def validation_peers(self, field_id: str) -> Set[str]:
        """Other fields sharing at least one cross-field validation with `field_id`."""
        peers: Set[str] = set()
        for validation in self._validations.get(field_id, ()):
            peers |= validation.involved_fields
        peers.discard(field_id)
        return peers


def _add_edges(successors: Dict[str, Set[str]], sources: Iterable[str], target: str) -> None:
    for source in sources:
        # Self-references never constrain evaluation order
        if source != target:
            successors.setdefault(source, set()).add(target)


def build_graph(schema: ConfigurationSchema) -> DependencyGraph:
    """Derive the dependency graph of a schema.

    Args:
        schema: Validated configuration schema

    Returns:
        DependencyGraph

    Raises:
        CycleError: If a field transitively depends on itself
    """
    successors: Dict[str, Set[str]] = {}

    for section in schema.sections:
        section_refs = (
            collect_field_refs(section.visibility_conditions)
            if section.visibility_conditions is not None else set()
        )
        for field in section.fields:
            for dependent in field.dependent_fields:
                _add_edges(successors, [field.id], dependent)
            _add_edges(successors, section_refs, field.id)
            if field.visibility_conditions is not None:
                _add_edges(successors, collect_field_refs(field.visibility_conditions, field.id), field.id)
            if field.options and field.options.dynamic_options:
                _add_edges(successors, field.options.dynamic_options.dependencies, field.id)

    for rule in schema.conditional_logic:
        _add_edges(successors, collect_field_refs(rule.condition, rule.target), rule.target)

    validations: Dict[str, List[CrossFieldValidation]] = {}
    for validation in schema.global_validations:
        for field_id in sorted(validation.involved_fields):
            validations.setdefault(field_id, []).append(validation)

    graph = DependencyGraph(schema.field_ids(), successors, validations)
    logger.debug(
        f"Built dependency graph for schema '{schema.id}': "
        f"{len(graph.topological_order)} fields, {len(graph.edges())} edges"
    )
    return graph
