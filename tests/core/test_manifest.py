import json
import threading
import pytest

from transferpilot.core.exceptions import TransferIoError
from transferpilot.core.interfaces.types import LeafStatus, ManifestEntry
from transferpilot.core.manifest import ManifestWriter, read_manifest, MANIFEST_FILENAME


def make_entry(n: int, status=LeafStatus.COPIED, source=None) -> ManifestEntry:
    return ManifestEntry(
        source_path=source or f"/src/file_{n}.jpg",
        dest_path=f"/dest/Transfers/s/Images/file_{n}.jpg",
        size_bytes=n * 10,
        started_at="2025-03-14T10:15:00.000+00:00",
        finished_at="2025-03-14T10:15:01.000+00:00",
        status=status,
        error_message="boom" if status == LeafStatus.ERROR else None,
        category="Images",
        extension="jpg",
    )


def load(path):
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class TestManifestWriter:
    def test_starts_as_empty_array(self, tmp_path):
        with ManifestWriter(tmp_path) as writer:
            assert writer.path == tmp_path / MANIFEST_FILENAME
            assert load(writer.path) == []

    def test_valid_after_every_append(self, tmp_path):
        with ManifestWriter(tmp_path) as writer:
            for n in range(1, 6):
                writer.record(make_entry(n))
                data = load(writer.path)
                assert len(data) == n
                assert data[-1]["source_path"] == f"/src/file_{n}.jpg"
                assert data[-1]["status"] == "copied"
            assert writer.count == 5

    def test_round_trip(self, tmp_path):
        with ManifestWriter(tmp_path) as writer:
            writer.record(make_entry(1))
            writer.record(make_entry(2, LeafStatus.ERROR))
            writer.record(make_entry(3, LeafStatus.SKIPPED))
        entries = read_manifest(tmp_path / MANIFEST_FILENAME)
        assert [entry.status for entry in entries] == [LeafStatus.COPIED, LeafStatus.ERROR, LeafStatus.SKIPPED]
        assert entries[1].error_message == "boom"
        assert entries[0] == make_entry(1)

    def test_unicode_paths(self, tmp_path):
        with ManifestWriter(tmp_path) as writer:
            writer.record(make_entry(1, source="/src/Fotos/Überraschung 日本.jpg"))
        assert read_manifest(writer.path)[0].source_path == "/src/Fotos/Überraschung 日本.jpg"

    def test_concurrent_records(self, tmp_path):
        writer = ManifestWriter(tmp_path)

        def worker(offset):
            for n in range(25):
                writer.record(make_entry(offset * 100 + n))

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        writer.close()

        data = load(writer.path)
        assert len(data) == 200
        assert len({item["source_path"] for item in data}) == 200

    def test_record_after_close(self, tmp_path):
        writer = ManifestWriter(tmp_path)
        writer.close()
        writer.close()
        with pytest.raises(TransferIoError):
            writer.record(make_entry(1))

    def test_unwritable_location(self, tmp_path):
        with pytest.raises(TransferIoError):
            ManifestWriter(tmp_path / "missing" / "dir")
