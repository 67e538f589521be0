import os
import pytest

from transferpilot.core.interfaces.types import ItemKind, PickedItem, TransferOptions
from transferpilot.core.preflight import PreflightScanner, required_bytes_for, snapshot_key_for
from transferpilot.core.transfer_orchestrator import TransferOrchestrator

MB = 1024 * 1024


class TestPreflightScanner:
    def test_sample_fits(self, sample_tree, dest_mount, make_storage):
        scanner = PreflightScanner(make_storage(100 * MB))
        preflight = scanner.scan(sample_tree["items"], str(dest_mount))

        assert preflight.total_files == 5
        assert preflight.total_folders == 1
        assert preflight.total_bytes == 7_340_032
        assert preflight.dest_avail_bytes == 100 * MB
        assert preflight.will_fit is True
        assert preflight.by_category == {"Documents": 2, "Images": 3}
        assert preflight.by_extension == {".jpg": 3, ".pdf": 2}
        assert preflight.unreadable_paths == []

    def test_sample_does_not_fit(self, sample_tree, dest_mount, make_storage):
        preflight = PreflightScanner(make_storage(5 * MB)).scan(sample_tree["items"], str(dest_mount))
        assert preflight.will_fit is False
        assert preflight.required_bytes == 7_340_032

    def test_exact_fit(self, sample_tree, dest_mount, make_storage):
        preflight = PreflightScanner(make_storage(7_340_032)).scan(sample_tree["items"], str(dest_mount))
        assert preflight.will_fit is True

    def test_safety_margin(self, sample_tree, dest_mount, make_storage):
        scanner = PreflightScanner(make_storage(7_340_032), margin_bytes=1)
        preflight = scanner.scan(sample_tree["items"], str(dest_mount))
        assert preflight.required_bytes == 7_340_033
        assert preflight.will_fit is False

    def test_unreadable_paths_excluded(self, sample_tree, dest_mount, fake_storage, tmp_path):
        items = sample_tree["items"] + [PickedItem(ItemKind.FILE, str(tmp_path / "missing.jpg"))]
        preflight = PreflightScanner(fake_storage).scan(items, str(dest_mount))
        assert preflight.total_files == 5
        assert preflight.total_bytes == 7_340_032
        assert preflight.unreadable_paths == [str(tmp_path / "missing.jpg")]

    def test_extensionless_files(self, tmp_path, dest_mount, fake_storage, make_file):
        make_file(tmp_path / "src" / "README", 3)
        make_file(tmp_path / "src" / "notes.TXT", 3)
        preflight = PreflightScanner(fake_storage).scan(
            [PickedItem(ItemKind.FOLDER, str(tmp_path / "src"))], str(dest_mount)
        )
        assert preflight.by_extension == {".txt": 1, "noext": 1}
        assert preflight.by_category == {"Documents": 1, "Other": 1}

    def test_empty_selection(self, dest_mount, fake_storage):
        preflight = PreflightScanner(fake_storage).scan([], str(dest_mount))
        assert preflight.total_files == 0
        assert preflight.total_bytes == 0
        assert preflight.will_fit is True

    def test_free_space_failure_reports_zero(self, sample_tree, dest_mount, make_storage):
        preflight = PreflightScanner(make_storage(fail=True)).scan(sample_tree["items"], str(dest_mount))
        assert preflight.dest_avail_bytes == 0
        assert preflight.will_fit is False

    def test_does_not_write(self, sample_tree, dest_mount, fake_storage):
        before = sorted(os.listdir(sample_tree["root"]))
        PreflightScanner(fake_storage).scan(sample_tree["items"], str(dest_mount))
        assert os.listdir(dest_mount) == []
        assert sorted(os.listdir(sample_tree["root"])) == before

    def test_scan_with_leaves(self, sample_tree, dest_mount, fake_storage):
        preflight, leaves = PreflightScanner(fake_storage).scan_with_leaves(sample_tree["items"], str(dest_mount))
        assert len(leaves) == preflight.total_files


class TestSnapshotKey:
    def test_stable_for_same_input(self, sample_tree, dest_mount):
        assert snapshot_key_for(sample_tree["items"], dest_mount) == snapshot_key_for(sample_tree["items"], dest_mount)

    def test_changes_with_items_and_destination(self, sample_tree, dest_mount, tmp_path):
        key = snapshot_key_for(sample_tree["items"], dest_mount)
        assert snapshot_key_for(sample_tree["items"][:-1], dest_mount) != key
        assert snapshot_key_for(sample_tree["items"], tmp_path / "other") != key


@pytest.mark.parametrize("total,margin_bytes,margin_ratio,expected", [
    (100, 0, 0.0, 100),
    (100, 10, 0.0, 110),
    (100, 0, 0.5, 150),
    (100, 10, 0.5, 160),
    (100, -5, -1.0, 100),
])
def test_required_bytes_for(total, margin_bytes, margin_ratio, expected):
    assert required_bytes_for(total, margin_bytes, margin_ratio) == expected


def test_session_total_includes_unreadable_leaves(sample_tree, dest_mount, fake_storage, transfer_config,
                                                  tmp_path):
    items = sample_tree["items"] + [PickedItem(ItemKind.FILE, str(tmp_path / "missing.jpg"))]
    preflight = PreflightScanner(fake_storage).scan(items, str(dest_mount))

    summary = TransferOrchestrator(transfer_config, fake_storage).run(
        items, TransferOptions(dest_mount_point=str(dest_mount))
    )

    assert summary.total_files == preflight.total_files + len(preflight.unreadable_paths)
    assert summary.error_files == len(preflight.unreadable_paths)
    assert summary.total_bytes == preflight.total_bytes
