from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

from .logs import get_logger
from .task_models import Task, TaskTreeNode

logger = get_logger("tree")


def build_task_tree(tasks: Iterable[Task]) -> list[TaskTreeNode]:
    """
    Build the WBS forest from a flat task collection and return its roots.

    - A parent_id that does not resolve to a task in the input makes the task a root.
    - A task whose parent chain loops back to itself is also treated as a root.
    - Siblings are ordered by order_index; ties keep input order.
    - Levels are derived top-down, so each child sits one level below its parent.
    """

    task_list = list(tasks)
    nodes: dict[str, TaskTreeNode] = {task.id: TaskTreeNode(task=task) for task in task_list}
    parents = {task.id: task.parent_id for task in task_list if task.parent_id in nodes}

    roots: list[TaskTreeNode] = []
    for task in task_list:
        node = nodes[task.id]
        parent_id = parents.get(task.id)
        if parent_id is None:
            roots.append(node)
        elif _in_cycle(task.id, parents):
            logger.debug("Task %s is part of a parent cycle; treating it as a root", task.id)
            roots.append(node)
        else:
            nodes[parent_id].children.append(node)

    _sort_siblings(roots)
    _assign_levels(roots)
    return roots


def _in_cycle(task_id: str, parents: dict[str, str]) -> bool:
    seen: set[str] = set()
    current = parents.get(task_id)
    while current is not None and current not in seen:
        if current == task_id:
            return True
        seen.add(current)
        current = parents.get(current)
    return False


def _sort_siblings(nodes: list[TaskTreeNode]) -> None:
    # list.sort is stable, so equal order_index values keep input order.
    stack = [nodes]
    while stack:
        siblings = stack.pop()
        siblings.sort(key=lambda node: node.task.order_index)
        stack.extend(node.children for node in siblings if node.children)


def _assign_levels(roots: list[TaskTreeNode]) -> None:
    stack = [(node, 0) for node in roots]
    while stack:
        node, level = stack.pop()
        node.level = level
        stack.extend((child, level + 1) for child in node.children)


def walk_tree(forest: Iterable[TaskTreeNode]) -> Iterator[TaskTreeNode]:
    """Yield every node of the forest in pre-order, ignoring expansion."""
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(node.children))


def find_node(forest: Iterable[TaskTreeNode], task_id: str) -> TaskTreeNode | None:
    return next((node for node in walk_tree(forest) if node.id == task_id), None)


@dataclass(frozen=True)
class ExpansionState:
    """Set of expanded task ids; every operation returns a new state."""

    expanded: frozenset[str] = frozenset()

    @classmethod
    def collapsed(cls) -> "ExpansionState":
        """Default for the WBS outline: everything folded."""
        return cls()

    @classmethod
    def all_expanded(cls, tasks: Iterable[Task]) -> "ExpansionState":
        """Default for the timeline view whenever the task list changes."""
        return cls(frozenset(task.id for task in tasks))

    def is_expanded(self, task_id: str) -> bool:
        return task_id in self.expanded

    def toggle(self, task_id: str) -> "ExpansionState":
        if task_id in self.expanded:
            return ExpansionState(self.expanded - {task_id})
        return ExpansionState(self.expanded | {task_id})

    def expand_all(self, ids: Iterable[str]) -> "ExpansionState":
        return ExpansionState(frozenset(ids))

    def collapse_all(self) -> "ExpansionState":
        return ExpansionState()

    def __contains__(self, task_id: object) -> bool:
        return task_id in self.expanded


def flatten_tree(forest: Iterable[TaskTreeNode], expanded: ExpansionState | Iterable[str]) -> list[TaskTreeNode]:
    """
    Flatten the forest into the rows actually displayed.

    Pre-order traversal; children are visited only when their parent is
    expanded and has at least one child.
    """

    if not isinstance(expanded, ExpansionState):
        expanded = ExpansionState(frozenset(expanded))

    result: list[TaskTreeNode] = []
    # Explicit stack: deep parent chains must not hit the recursion limit.
    stack = list(reversed(list(forest)))
    while stack:
        node = stack.pop()
        result.append(node)
        if node.children and expanded.is_expanded(node.id):
            stack.extend(reversed(node.children))
    return result
