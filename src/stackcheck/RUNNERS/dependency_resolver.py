"""
Dependency resolution for services to determine startup and shutdown order.
"""
import logging
from typing import Dict, List, Optional
from ..errors import CircularDependencyError
from ..MODELS.compose_descriptor import ComposeDescriptor

logger = logging.getLogger(__name__)

class DependencyResolver:
    """
    Resolves the order in which an engine would start and stop services.
    Only computes the order; nothing is started.
    """
    def resolve_order(self, descriptor: ComposeDescriptor) -> List[str]:
        """
        Determines the startup order using a depth-first topological sort.
        Dependencies come first; otherwise declaration order is kept.
        Names in ``depends_on`` that are not declared services are skipped here;
        the validator reports them.

        :param descriptor: The parsed descriptor.
        :return: Service names in the order they should be started.
        :raises CircularDependencyError: If ``depends_on`` links form a cycle.
        """
        ordered = self._sort(descriptor, ignore_self=False)
        logger.debug("Resolved startup order: %s", ordered)
        return ordered

    def shutdown_order(self, descriptor: ComposeDescriptor) -> List[str]:
        """
        Stop order is the reverse of the startup order.
        """
        return list(reversed(self.resolve_order(descriptor)))

    def find_cycle(self, descriptor: ComposeDescriptor, ignore_self: bool = False) -> Optional[List[str]]:
        """
        :param ignore_self: Skip services that list themselves in ``depends_on``.
        :return: The first cycle found, e.g. ``['a', 'b', 'a']``, or None.
        """
        try:
            self._sort(descriptor, ignore_self=ignore_self)
        except CircularDependencyError as e:
            return e.cycle
        return None

    def dependents(self, descriptor: ComposeDescriptor) -> Dict[str, List[str]]:
        """
        Reverse dependency map: for each service, the services that depend on it.
        """
        result: Dict[str, List[str]] = {name: [] for name in descriptor.services}
        for name, svc in descriptor.services.items():
            for dep in svc.depends_on:
                if dep in result and name not in result[dep]:
                    result[dep].append(name)
        return result

    def _sort(self, descriptor: ComposeDescriptor, ignore_self: bool) -> List[str]:
        services = descriptor.services
        dependencies = {name: list(svc.depends_on) for name, svc in services.items()}

        ordered: List[str] = []
        visited = set()
        path: List[str] = []

        def visit(name):
            """
            Recursive function for topological sort.
            """
            if name in path:
                raise CircularDependencyError(path[path.index(name):] + [name])
            if name in visited:
                return
            path.append(name)
            for dep in dependencies.get(name, []):
                # Only depend on services defined in the descriptor
                if dep in services and not (ignore_self and dep == name):
                    visit(dep)
            path.pop()
            visited.add(name)
            ordered.append(name)

        for name in services:
            visit(name)
        return ordered
