"""
Request-scoped response builder.

Handlers append named fields, arrays and tables in order. Containers must be
closed in LIFO order; ``result()`` refuses to hand out an unbalanced reply.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

Container = Union[Dict[str, Any], List[Any]]


class ResponseError(RuntimeError):
    """Raised when a handler breaks open/close nesting."""


class Response:
    def __init__(self) -> None:
        self._root: Dict[str, Any] = {}
        self._stack: List[Container] = [self._root]

    @property
    def depth(self) -> int:
        return len(self._stack) - 1

    def add(self, name: Optional[str], value: Any) -> None:
        self._put(name, value)

    def open_array(self, name: Optional[str] = None) -> List[Any]:
        array: List[Any] = []
        self._put(name, array)
        self._stack.append(array)
        return array

    def open_table(self, name: Optional[str] = None) -> Dict[str, Any]:
        table: Dict[str, Any] = {}
        self._put(name, table)
        self._stack.append(table)
        return table

    def close(self, container: Container) -> None:
        if len(self._stack) == 1:
            raise ResponseError("close() without an open container")
        if self._stack[-1] is not container:
            raise ResponseError("containers must be closed in reverse order of opening")
        self._stack.pop()

    @contextmanager
    def array(self, name: Optional[str] = None) -> Iterator[List[Any]]:
        container = self.open_array(name)
        try:
            yield container
        finally:
            self.close(container)

    @contextmanager
    def table(self, name: Optional[str] = None) -> Iterator[Dict[str, Any]]:
        container = self.open_table(name)
        try:
            yield container
        finally:
            self.close(container)

    def result(self) -> Dict[str, Any]:
        if len(self._stack) != 1:
            raise ResponseError(f"{self.depth} container(s) left open")
        return self._root

    def _put(self, name: Optional[str], value: Any) -> None:
        current = self._stack[-1]
        if isinstance(current, list):
            current.append(value)
            return
        if name is None:
            raise ResponseError("fields inside a table need a name")
        current[name] = value
