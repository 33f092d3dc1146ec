"""Permission resolution core: hierarchy graph, engine, policy evaluation and facade."""

from .engine import RBACEngine
from .hierarchy import RoleHierarchy
from .manager import RBACManager
from .policy import PolicyEvaluator

__all__ = [
    'RBACEngine',
    'RBACManager',
    'PolicyEvaluator',
    'RoleHierarchy'
]
