"""
Centralized validation of engine inputs.
Turns the loosely typed request values (dicts, strings) into the typed records
used by the core and rejects anything malformed with ValidationError.
"""
import os
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Type, TypeVar, Union

from .exceptions import ValidationError
from .interfaces.types import ItemKind, PickedItem, QueueItem

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Enum)

class ErrorMessages:
    """Centralized error message definitions."""

    PATH_NONE = "No path provided"
    PATH_INVALID_TYPE = "Invalid path type"
    PATH_NOT_EXIST = "Path does not exist"
    PATH_NOT_DIRECTORY = "Path is not a directory"
    PATH_NOT_READABLE = "No read permission"
    PATH_NOT_WRITABLE = "No write permission"
    ITEM_INVALID = "Invalid transfer item"
    DEST_NOT_MOUNTED = "Destination not mounted"
    NOT_ENOUGH_SPACE = "Not enough space"


def parse_enum(enum_cls: Type[E], value: Union[str, E], field: str) -> E:
    """
    Accept either an enum member or its wire string.

    Raises:
        ValidationError: If the value names no member of enum_cls
    """
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in enum_cls)
    raise ValidationError(f"Invalid {field} '{value}' (expected one of: {allowed})",
                          field=field, invalid_value=value)


def coerce_picked_item(item: Any) -> PickedItem:
    """Build a PickedItem from a PickedItem, QueueItem or {'kind', 'path'} mapping."""
    if isinstance(item, PickedItem):
        kind, path = item.kind, item.path
    elif isinstance(item, QueueItem):
        kind, path = item.kind, item.path
    elif isinstance(item, dict):
        if "path" not in item:
            raise ValidationError(f"{ErrorMessages.ITEM_INVALID}: missing 'path'", field="path")
        kind, path = item.get("kind", ItemKind.FILE), item["path"]
    else:
        raise ValidationError(f"{ErrorMessages.ITEM_INVALID}: {item!r}", invalid_value=item)

    if not isinstance(path, (str, Path)):
        raise ValidationError(ErrorMessages.PATH_INVALID_TYPE, field="path", invalid_value=path)
    path = str(path)
    if not path.strip():
        raise ValidationError(ErrorMessages.PATH_NONE, field="path", invalid_value=path)

    return PickedItem(kind=parse_enum(ItemKind, kind, "kind"), path=path)


def coerce_picked_items(items: Iterable[Any]) -> List[PickedItem]:
    if items is None:
        raise ValidationError("No items provided", field="items")
    return [coerce_picked_item(item) for item in items]


def validate_destination_mount(dest_mount_point: Union[str, Path, None]) -> Path:
    """
    Check the destination mount point exists, is a directory and is writable.

    Returns:
        Path: the destination as a Path

    Raises:
        ValidationError: If the destination is unusable
    """
    if dest_mount_point is None or not str(dest_mount_point).strip():
        raise ValidationError(ErrorMessages.PATH_NONE, field="dest_mount_point")
    if not isinstance(dest_mount_point, (str, Path)):
        raise ValidationError(ErrorMessages.PATH_INVALID_TYPE, field="dest_mount_point",
                              invalid_value=dest_mount_point)

    dest = Path(dest_mount_point).expanduser()
    if not dest.exists():
        raise ValidationError(f"{ErrorMessages.DEST_NOT_MOUNTED}: {dest}",
                              field="dest_mount_point", invalid_value=str(dest))
    if not dest.is_dir():
        raise ValidationError(f"{ErrorMessages.PATH_NOT_DIRECTORY}: {dest}",
                              field="dest_mount_point", invalid_value=str(dest))
    if not os.access(dest, os.W_OK):
        raise ValidationError(f"{ErrorMessages.PATH_NOT_WRITABLE}: {dest}",
                              field="dest_mount_point", invalid_value=str(dest))
    return dest
