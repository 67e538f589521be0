import os
import pytest
from pathlib import Path

from transferpilot.core.exceptions import ValidationError
from transferpilot.core.interfaces.types import (
    ConflictPolicy, CopyMode, ItemKind, PickedItem, QueueItem, VerifyMode,
)
from transferpilot.core.validation import (
    parse_enum, coerce_picked_item, coerce_picked_items, validate_destination_mount,
)


class TestParseEnum:
    def test_wire_strings(self):
        assert parse_enum(CopyMode, "move", "copy_mode") == CopyMode.MOVE
        assert parse_enum(ConflictPolicy, " Skip ", "conflict_policy") == ConflictPolicy.SKIP
        assert parse_enum(VerifyMode, "XXH64", "verify_mode") == VerifyMode.XXH64

    def test_member_passthrough(self):
        assert parse_enum(VerifyMode, VerifyMode.SHA256, "verify_mode") is VerifyMode.SHA256

    @pytest.mark.parametrize("value", ["teleport", "", None, 3])
    def test_invalid(self, value):
        with pytest.raises(ValidationError) as exc_info:
            parse_enum(CopyMode, value, "copy_mode")
        assert exc_info.value.field == "copy_mode"
        assert "copy, move" in str(exc_info.value)


class TestCoercePickedItem:
    def test_from_dict(self):
        item = coerce_picked_item({"kind": "folder", "path": "/media/card"})
        assert item == PickedItem(ItemKind.FOLDER, "/media/card")

    def test_dict_defaults_to_file(self):
        assert coerce_picked_item({"path": "/a.jpg"}).kind == ItemKind.FILE

    def test_from_queue_item(self):
        queued = QueueItem(id="1", kind=ItemKind.FILE, path="/a.jpg", size_bytes=3)
        assert coerce_picked_item(queued) == PickedItem(ItemKind.FILE, "/a.jpg")

    def test_path_object_accepted(self, tmp_path):
        item = coerce_picked_item({"kind": "file", "path": tmp_path / "a.jpg"})
        assert item.path == str(tmp_path / "a.jpg")

    def test_missing_path(self):
        with pytest.raises(ValidationError):
            coerce_picked_item({"kind": "file"})

    @pytest.mark.parametrize("path", ["", "   "])
    def test_blank_path(self, path):
        with pytest.raises(ValidationError):
            coerce_picked_item({"kind": "file", "path": path})

    def test_bad_kind(self):
        with pytest.raises(ValidationError) as exc_info:
            coerce_picked_item({"kind": "symlink", "path": "/a"})
        assert exc_info.value.field == "kind"

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            coerce_picked_item(42)

    def test_items_none(self):
        with pytest.raises(ValidationError):
            coerce_picked_items(None)

    def test_items_list(self):
        items = coerce_picked_items([{"kind": "file", "path": "/a"}, PickedItem(ItemKind.FOLDER, "/b")])
        assert [item.kind for item in items] == [ItemKind.FILE, ItemKind.FOLDER]


class TestValidateDestinationMount:
    def test_valid(self, dest_mount):
        assert validate_destination_mount(str(dest_mount)) == dest_mount

    def test_missing(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            validate_destination_mount(tmp_path / "unplugged")
        assert "not mounted" in str(exc_info.value)

    def test_not_a_directory(self, tmp_path):
        file_path = tmp_path / "file.txt"
        file_path.write_text("x")
        with pytest.raises(ValidationError):
            validate_destination_mount(file_path)

    @pytest.mark.parametrize("value", [None, "", "  "])
    def test_empty(self, value):
        with pytest.raises(ValidationError):
            validate_destination_mount(value)

    @pytest.mark.skipif(os.name == "nt" or (hasattr(os, "geteuid") and os.geteuid() == 0),
                        reason="permission bits are not enforced")
    def test_read_only(self, tmp_path):
        read_only = tmp_path / "ro"
        read_only.mkdir()
        os.chmod(read_only, 0o500)
        try:
            with pytest.raises(ValidationError) as exc_info:
                validate_destination_mount(read_only)
            assert "write permission" in str(exc_info.value)
        finally:
            os.chmod(read_only, 0o700)
