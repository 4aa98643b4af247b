"""
Dependency graph between questions.

An edge dependent -> dependency means "a condition of `dependent`
(visible_if, hide_if or required_if) reads the answer to `dependency`".
"""

from __future__ import annotations

from collections import deque
from typing import Dict, List, Optional, Set

from .model import Questionnaire


class DependencyGraph:
    """Tracks question dependencies in both directions."""

    def __init__(self) -> None:
        self._dependencies: Dict[str, Set[str]] = {}
        self._dependents: Dict[str, Set[str]] = {}

    @classmethod
    def from_questionnaire(cls, questionnaire: Questionnaire) -> DependencyGraph:
        graph = cls()
        for question in questionnaire.questions:
            for _, condition in question.condition_refs():
                graph.add_dependency(question.id, condition.question_id)
        return graph

    def add_dependency(self, dependent: str, dependency: str) -> None:
        self._dependencies.setdefault(dependent, set()).add(dependency)
        self._dependents.setdefault(dependency, set()).add(dependent)

    def dependencies_of(self, node: str) -> List[str]:
        return sorted(self._dependencies.get(node, ()))

    def dependents_of(self, node: str) -> List[str]:
        return sorted(self._dependents.get(node, ()))

    def nodes(self) -> List[str]:
        return sorted(set(self._dependencies) | set(self._dependents))

    def __len__(self) -> int:
        return len(self._dependencies)

    def has_path(self, source: str, target: str) -> bool:
        """True if `source` depends (transitively) on `target`."""
        if source == target:
            return True
        visited: Set[str] = set()
        queue = deque([source])
        while queue:
            current = queue.popleft()
            if current == target:
                return True
            if current in visited:
                continue
            visited.add(current)
            for dep in self._dependencies.get(current, ()):
                if dep not in visited:
                    queue.append(dep)
        return False

    def find_cycles(self) -> List[List[str]]:
        """One example cycle per strongly tangled region, e.g. [a, b, a]."""
        cycles: List[List[str]] = []
        visited: Set[str] = set()
        for node in sorted(self._dependencies):
            if node not in visited:
                cycle = self._find_cycle_dfs(node, visited, set(), [])
                if cycle:
                    cycles.append(cycle)
        return cycles

    def _find_cycle_dfs(self, start: str, visited: Set[str],
                        rec_stack: Set[str], path: List[str]) -> Optional[List[str]]:
        visited.add(start)
        rec_stack.add(start)
        path.append(start)

        for neighbor in sorted(self._dependencies.get(start, ())):
            if neighbor not in visited:
                cycle = self._find_cycle_dfs(neighbor, visited, rec_stack, path[:])
                if cycle:
                    return cycle
            elif neighbor in rec_stack:
                cycle_start_idx = path.index(neighbor)
                return path[cycle_start_idx:] + [neighbor]

        rec_stack.remove(start)
        return None
