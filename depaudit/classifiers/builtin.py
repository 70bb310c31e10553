"""Built-in classifiers: method calls, type references, catch-all and globals."""

from __future__ import annotations

from ..models import Bucket, UsageEvent
from .base import Classifier

_TYPE_NODES = {"type_identifier", "nested_type_identifier"}


class MethodClassifier(Classifier):
    """The topmost node is the callee of a call expression."""

    name = "method"
    bucket = Bucket.METHOD

    def accepts(self, event: UsageEvent) -> bool:
        node = event.node
        parent = node.parent
        if parent is None or parent.type != "call_expression":
            return False
        callee = parent.child_by_field_name("function")
        return callee is not None and callee.id == node.id


class TypeClassifier(Classifier):
    """The topmost node is a type reference."""

    name = "type"
    bucket = Bucket.TYPE

    def accepts(self, event: UsageEvent) -> bool:
        return event.node.type in _TYPE_NODES


class CatchAllClassifier(Classifier):
    name = "api"
    bucket = Bucket.API

    def accepts(self, event: UsageEvent) -> bool:
        return True


class GlobalClassifier(Classifier):
    name = "global"
    bucket = Bucket.GLOBAL

    def accepts(self, event: UsageEvent) -> bool:
        return True


__all__ = ["CatchAllClassifier", "GlobalClassifier", "MethodClassifier", "TypeClassifier"]
