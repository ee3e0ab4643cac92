from typing import Any, TypedDict

Record = dict[str, Any]


class TreeNode(TypedDict):
    """A node of the editable forest.

    ``key`` is the string form of the record identity once persisted, or a
    temporary key for records that were never saved.
    """

    key: str
    data: Record
    children: list["TreeNode"]


class TreeSelectNode(TypedDict):
    """Option tree used by parent-picker widgets."""

    key: str
    label: Any
    data: Record
    children: list["TreeSelectNode"]
