from typing import Any, List, TypeVar

T = TypeVar('T')


class ModelCollection(list):
    def __init__(self, items: List[T] = ()):
        super().__init__(items)

    def to_list_dict(self) -> List[dict[str, Any]]:
        return [m.to_dict() for m in self]

    def pluck(self, column: str) -> List[Any]:
        """Get a list of values from a specific column"""
        return [model.get(column) for model in self]

    def first(self):
        """Get first item from collection"""
        return self[0] if len(self) > 0 else None
