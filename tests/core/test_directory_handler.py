import pytest
from datetime import datetime
from pathlib import Path

from transferpilot.core.config_manager import TransferConfig
from transferpilot.core.directory_handler import (
    DirectoryHandler, README_FILENAME, LATEST_POINTER_FILENAME,
)
from transferpilot.core.exceptions import FatalSessionError
from transferpilot.core.interfaces.types import FileLeaf, TransferOptions

NOW = datetime(2025, 3, 14, 10, 15, 0)


@pytest.fixture
def handler():
    return DirectoryHandler(TransferConfig())


def photo_leaf(folder_rel=None) -> FileLeaf:
    return FileLeaf(source_path="/cards/DCIM/IMG_0001.jpg", size_bytes=10, category="Images",
                    extension="jpg", folder_rel=folder_rel)


class TestCreateSessionDirectory:
    def test_creates_timestamped_directory(self, handler, dest_mount):
        session = handler.create_session_directory(TransferOptions(str(dest_mount)), NOW)
        assert session == dest_mount / "Transfers" / "2025-03-14_101500"
        assert session.is_dir()

    def test_suffix_when_taken(self, handler, dest_mount):
        options = TransferOptions(str(dest_mount))
        first = handler.create_session_directory(options, NOW)
        second = handler.create_session_directory(options, NOW)
        third = handler.create_session_directory(options, NOW)
        assert first.name == "2025-03-14_101500"
        assert second.name == "2025-03-14_101500_2"
        assert third.name == "2025-03-14_101500_3"

    def test_custom_root_name_is_sanitized(self, handler, dest_mount):
        options = TransferOptions(str(dest_mount), dest_root_dir_name='Card:Dump?')
        session = handler.create_session_directory(options, NOW)
        assert session.parent.name == "CardDump"

    def test_unusable_root_is_fatal(self, handler, dest_mount):
        (dest_mount / "Transfers").write_text("not a directory")
        with pytest.raises(FatalSessionError) as exc_info:
            handler.create_session_directory(TransferOptions(str(dest_mount)), NOW)
        assert exc_info.value.reason == "session_dir"


class TestDestinationFor:
    session = Path("/dest/Transfers/2025-03-14_101500")

    def test_default_layout(self, handler):
        options = TransferOptions("/dest")
        target = handler.destination_for(photo_leaf(), self.session, options, "2025-03-14")
        assert target == self.session / "2025-03-14" / "Images" / "IMG_0001.jpg"

    def test_without_date(self, handler):
        options = TransferOptions("/dest", group_by_date=False)
        target = handler.destination_for(photo_leaf(), self.session, options, "2025-03-14")
        assert target == self.session / "Images" / "IMG_0001.jpg"

    def test_without_type(self, handler):
        options = TransferOptions("/dest", group_by_type=False)
        target = handler.destination_for(photo_leaf(), self.session, options, "2025-03-14")
        assert target == self.session / "2025-03-14" / "IMG_0001.jpg"

    def test_folder_leaf_flattened_by_default(self, handler):
        options = TransferOptions("/dest")
        target = handler.destination_for(photo_leaf("DCIM/100CANON/IMG_0001.jpg"), self.session,
                                         options, "2025-03-14")
        assert target == self.session / "2025-03-14" / "Images" / "IMG_0001.jpg"

    def test_preserve_folder_structure(self, handler):
        options = TransferOptions("/dest", preserve_folder_structure=True)
        target = handler.destination_for(photo_leaf("DCIM/100CANON/IMG_0001.jpg"), self.session,
                                         options, "2025-03-14")
        assert target == self.session / "2025-03-14" / "Folders" / "DCIM" / "100CANON" / "IMG_0001.jpg"

    def test_preserve_without_type_grouping(self, handler):
        options = TransferOptions("/dest", preserve_folder_structure=True, group_by_type=False,
                                  group_by_date=False)
        target = handler.destination_for(photo_leaf("DCIM/IMG_0001.jpg"), self.session, options, "2025-03-14")
        assert target == self.session / "DCIM" / "IMG_0001.jpg"

    def test_preserve_ignores_file_picks(self, handler):
        options = TransferOptions("/dest", preserve_folder_structure=True)
        target = handler.destination_for(photo_leaf(), self.session, options, "2025-03-14")
        assert target == self.session / "2025-03-14" / "Images" / "IMG_0001.jpg"


class TestPointers:
    def test_readme_written_once(self, handler, tmp_path):
        handler.write_layout_readme(tmp_path)
        readme = tmp_path / README_FILENAME
        assert "Folder layout" in readme.read_text(encoding="utf-8")
        readme.write_text("edited", encoding="utf-8")
        handler.write_layout_readme(tmp_path)
        assert readme.read_text(encoding="utf-8") == "edited"

    def test_latest_pointer(self, handler, tmp_path):
        first = tmp_path / "2025-03-14_101500"
        second = tmp_path / "2025-03-14_101500_2"
        handler.update_latest_pointer(tmp_path, first)
        handler.update_latest_pointer(tmp_path, second)
        assert (tmp_path / LATEST_POINTER_FILENAME).read_text(encoding="utf-8").strip() == str(second)
