"""
Role hierarchy graph.

A hierarchy maps a child role to an ordered list of parent roles. Children inherit every
permission their parents hold, transitively. Parent order is significant: inheritance
lookups walk parents in the declared order and stop at the first grant.

Hierarchies are immutable once built. RoleHierarchy.from_mapping() validates identifiers,
copies the mapping and rejects any cycle (including a role listing itself) before an
instance exists, so a rejected hierarchy can never be partially applied.
"""

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from ..exceptions import CircularHierarchyError, InvalidInputError, RBACErrorCode
from ..utils.validators import validate_identifier, validate_identifier_collection


class RoleHierarchy:
    """
    Validated, acyclic child -> parents mapping.

    Example:
        hierarchy = RoleHierarchy.from_mapping({"EDITOR": ["ADMIN"]})
        hierarchy.parents_of("EDITOR")  # ("ADMIN",)
    """

    def __init__(self, edges: Optional[Dict[str, Tuple[str, ...]]] = None):
        self._edges: Dict[str, Tuple[str, ...]] = dict(edges or {})

    @classmethod
    def from_mapping(cls, mapping: Any) -> 'RoleHierarchy':
        """
        Build a hierarchy from a plain mapping.

        Raises:
            InvalidInputError: If the mapping or any identifier is malformed
            CircularHierarchyError: If the child -> parent edges contain a cycle
        """
        if isinstance(mapping, RoleHierarchy):
            return cls(mapping._edges)

        hierarchy = cls(cls.normalize(mapping))
        hierarchy.check_cycles()
        return hierarchy

    @staticmethod
    def normalize(mapping: Any) -> Dict[str, Tuple[str, ...]]:
        """Copy and validate a child -> parents mapping without checking for cycles."""
        if not isinstance(mapping, Mapping):
            raise InvalidInputError(
                "hierarchy",
                "must be a mapping of role to parent roles",
                error_code=RBACErrorCode.VAL_SCHEMA_VIOLATION
            )

        edges: Dict[str, Tuple[str, ...]] = {}
        for child, parents in mapping.items():
            child = validate_identifier(child, "role")
            if not isinstance(parents, (list, tuple)):
                raise InvalidInputError(
                    "parent roles",
                    "must be a list of role identifiers",
                    error_code=RBACErrorCode.VAL_SCHEMA_VIOLATION
                )
            edges[child] = tuple(validate_identifier_collection(parents, "parent role"))
        return edges

    def check_cycles(self) -> None:
        """
        Depth-first search over every child role, driven by an explicit stack of
        (role, remaining parents) frames so chain depth is not bounded by recursion.

        A node revisited while still on the traversal stack closes a cycle. Nodes whose
        whole ancestry has been explored are skipped on later traversals.

        Raises:
            CircularHierarchyError: Naming the role at which the cycle was detected
        """
        checked: Set[str] = set()

        for root in self._edges:
            if root in checked:
                continue

            on_stack: Set[str] = {root}
            stack: List[Tuple[str, Iterator[str]]] = [(root, iter(self.parents_of(root)))]

            while stack:
                role, parents = stack[-1]
                parent = next(parents, None)

                if parent is None:
                    stack.pop()
                    on_stack.discard(role)
                    checked.add(role)
                    continue

                if parent in on_stack:
                    raise CircularHierarchyError(parent)
                if parent in checked:
                    continue

                on_stack.add(parent)
                stack.append((parent, iter(self.parents_of(parent))))

    def parents_of(self, role: str) -> Tuple[str, ...]:
        return self._edges.get(role, ())

    def children_of(self, role: str) -> List[str]:
        """Roles that list the given role as a direct parent."""
        return [child for child, parents in self._edges.items() if role in parents]

    def dangling_parents(self, known_roles: Iterable[str]) -> List[str]:
        """Parents referenced by the hierarchy that are not in known_roles, in first-seen order."""
        known = set(known_roles)
        dangling: Dict[str, None] = {}
        for parents in self._edges.values():
            for parent in parents:
                if parent not in known:
                    dangling[parent] = None
        return list(dangling)

    def as_dict(self) -> Dict[str, List[str]]:
        """Return a mutable copy of the edges."""
        return {child: list(parents) for child, parents in self._edges.items()}

    def __contains__(self, role: object) -> bool:
        return role in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    def __bool__(self) -> bool:
        return bool(self._edges)

    def __repr__(self) -> str:
        return f"RoleHierarchy({self.as_dict()!r})"


__all__ = ['RoleHierarchy']
