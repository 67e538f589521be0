import json
import logging
import signal
import types
import pytest
from unittest import mock

import main
from transferpilot import __version__
from transferpilot.cli.application_factory import (
    EXIT_CANCELLED, EXIT_FAILURE, EXIT_OK,
    create_engine, run_application, run_preflight, run_transfer, run_volumes, validate_arguments,
)
from transferpilot.cli.argument_parser import parse_arguments
from transferpilot.core.config_manager import TransferConfig
from transferpilot.core.exceptions import StorageError, ValidationError
from transferpilot.core.interfaces.types import VolumeInfo
from transferpilot.core.transfer_engine import TransferEngine

MB = 1024 * 1024


def transfer_argv(sample_tree, dest, *extra, extra_paths=()):
    paths = [str(p) for p in sample_tree["photos"]] + [str(sample_tree["docs"])] + list(extra_paths)
    return ["transfer", *paths, "--dest", str(dest), *extra]


@pytest.fixture
def display(mock_display_interface, mocker):
    mock_display_interface.console = mocker.Mock()
    return mock_display_interface


@pytest.fixture
def engine(transfer_config, fake_storage):
    return TransferEngine(transfer_config, fake_storage)


def test_parse_arguments_transfer_defaults():
    args = parse_arguments(["transfer", "/src/a.jpg", "--dest", "/media/CARD"])
    assert args.command == "transfer"
    assert args.paths == ["/src/a.jpg"]
    assert args.mode is None
    assert args.conflict is None
    assert args.verify is None
    assert args.group_by_date is None
    assert args.group_by_type is None
    assert args.preserve_folder_structure is None
    assert args.workers is None
    assert not args.json


def test_parse_arguments_transfer_options():
    args = parse_arguments([
        "--debug", "transfer", "/src", "--dest", "/media/CARD", "--mode", "move", "--conflict", "skip",
        "--verify", "xxh64", "--root-dir", "Offload", "--no-group-by-date", "--no-group-by-type",
        "--preserve-folder-structure", "--workers", "3", "--json",
    ])
    assert args.debug
    assert args.mode == "move"
    assert args.conflict == "skip"
    assert args.verify == "xxh64"
    assert args.root_dir == "Offload"
    assert args.group_by_date is False
    assert args.group_by_type is False
    assert args.preserve_folder_structure is True
    assert args.workers == 3
    assert args.json


@pytest.mark.parametrize("argv", [
    [],
    ["transfer", "--dest", "/media/CARD"],
    ["preflight", "/src"],
    ["transfer", "/src", "--dest", "/media/CARD", "--mode", "teleport"],
])
def test_parse_arguments_rejects(argv):
    with pytest.raises(SystemExit):
        parse_arguments(argv)


def test_version_flag(capsys):
    with pytest.raises(SystemExit):
        parse_arguments(["--version"])
    assert __version__ in capsys.readouterr().out


@pytest.mark.parametrize("argv,valid", [
    (["volumes"], True),
    (["preflight", "/src", "--dest", "/media/CARD"], True),
    (["preflight", "/src", "--dest", "  "], False),
    (["transfer", "/src", " ", "--dest", "/media/CARD"], False),
    (["transfer", "/src", "--dest", "/media/CARD", "--workers", "0"], False),
])
def test_validate_arguments(argv, valid):
    is_valid, message = validate_arguments(parse_arguments(argv))
    assert is_valid is valid
    assert bool(message) is not valid


def test_create_engine_applies_workers(mocker, fake_storage):
    mocker.patch("transferpilot.core.transfer_engine.PlatformManager.create_storage", return_value=fake_storage)
    args = types.SimpleNamespace(workers=3)
    engine = create_engine(TransferConfig(), args)
    assert engine.config.max_workers == 3
    assert engine.orchestrator.max_workers == 3


def test_run_volumes(display, transfer_config, make_storage):
    volume = VolumeInfo(name="CARD", mount_point="/media/CARD", total_bytes=64 * MB, avail_bytes=32 * MB,
                        fs_type="exfat", removable=True)
    engine = TransferEngine(transfer_config, make_storage(volumes=[volume]))
    assert run_volumes(engine, display) == EXIT_OK
    display.console.print.assert_called_once()


def test_run_volumes_failure(display, engine, mocker):
    mocker.patch.object(engine.storage, "list_volumes", side_effect=StorageError("df failed"))
    assert run_volumes(engine, display) == EXIT_FAILURE
    display.show_error.assert_called_once_with("df failed")


def test_run_preflight(display, engine, sample_tree, dest_mount):
    args = parse_arguments(["preflight", str(sample_tree["root"]), "--dest", str(dest_mount)])
    assert run_preflight(args, engine, display) == EXIT_OK
    preflight = display.show_preflight.call_args[0][0]
    assert preflight.total_files == 5


def test_run_preflight_not_enough_space(display, transfer_config, make_storage, sample_tree, dest_mount):
    engine = TransferEngine(transfer_config, make_storage(free_bytes=MB))
    args = parse_arguments(["preflight", str(sample_tree["root"]), "--dest", str(dest_mount)])
    assert run_preflight(args, engine, display) == EXIT_FAILURE


class TestRunTransfer:
    def test_success(self, display, engine, sample_tree, dest_mount):
        previous = signal.getsignal(signal.SIGINT)
        args = parse_arguments(transfer_argv(sample_tree, dest_mount))

        assert run_transfer(args, engine, display) == EXIT_OK

        summary = display.show_summary.call_args[0][0]
        assert summary.copied_files == 5
        assert display.show_progress.called
        assert signal.getsignal(signal.SIGINT) is previous

    def test_json_summary(self, display, engine, sample_tree, dest_mount):
        args = parse_arguments(transfer_argv(sample_tree, dest_mount, "--json", "--mode", "move"))

        assert run_transfer(args, engine, display) == EXIT_OK

        payload = json.loads(display.console.print_json.call_args[0][0])
        assert payload["phase"] == "done"
        assert payload["moved_files"] == 5
        display.show_summary.assert_not_called()

    def test_overrides_reach_layout(self, display, engine, sample_tree, dest_mount):
        args = parse_arguments(transfer_argv(sample_tree, dest_mount, "--root-dir", "Offload",
                                             "--no-group-by-date", "--no-group-by-type"))
        run_transfer(args, engine, display)
        sessions = list((dest_mount / "Offload").iterdir())
        session_dir = next(p for p in sessions if p.is_dir())
        assert (session_dir / "IMG_0001.jpg").exists()

    def test_cancelled(self, display, fake_storage, sample_tree, dest_mount):
        engine = TransferEngine(TransferConfig(max_workers=1, progress_interval_ms=0), fake_storage)

        def cancel_after_first(progress):
            if progress.current_file >= 1:
                engine.cancel_transfer()

        display.show_progress.side_effect = cancel_after_first
        args = parse_arguments(transfer_argv(sample_tree, dest_mount))

        assert run_transfer(args, engine, display) == EXIT_CANCELLED

    def test_file_errors(self, display, engine, sample_tree, dest_mount, tmp_path):
        args = parse_arguments(transfer_argv(sample_tree, dest_mount, extra_paths=[str(tmp_path / "missing.mov")]))
        assert run_transfer(args, engine, display) == EXIT_FAILURE
        assert display.show_summary.call_args[0][0].error_files == 1

    def test_not_enough_space(self, display, transfer_config, make_storage, sample_tree, dest_mount):
        engine = TransferEngine(transfer_config, make_storage(free_bytes=MB))
        args = parse_arguments(transfer_argv(sample_tree, dest_mount))

        assert run_transfer(args, engine, display) == EXIT_FAILURE
        display.show_error.assert_called_once()
        assert not (dest_mount / "Transfers").exists()

    def test_fatal_error(self, display, engine, sample_tree, dest_mount, mocker):
        mocker.patch.object(engine.storage, "get_free_space", side_effect=[100 * MB, MB])
        args = parse_arguments(transfer_argv(sample_tree, dest_mount))

        assert run_transfer(args, engine, display) == EXIT_FAILURE
        display.show_error.assert_called_once()
        assert display.show_summary.call_args[0][0].phase.value == "error"


class TestRunApplication:
    @pytest.fixture(autouse=True)
    def patched(self, mocker, display, engine):
        mocker.patch("transferpilot.cli.application_factory.PlatformManager.create_display", return_value=display)
        mocker.patch("transferpilot.cli.application_factory.create_engine", return_value=engine)

    def test_dispatch_volumes(self, mocker):
        run = mocker.patch("transferpilot.cli.application_factory.run_volumes", return_value=EXIT_OK)
        assert run_application(parse_arguments(["volumes"]), TransferConfig()) == EXIT_OK
        run.assert_called_once()

    def test_validation_error(self, mocker, capsys):
        mocker.patch("transferpilot.cli.application_factory.run_transfer",
                     side_effect=ValidationError("Invalid verify_mode 'md5'"))
        args = parse_arguments(["transfer", "/src", "--dest", "/media/CARD"])
        assert run_application(args, TransferConfig()) == EXIT_FAILURE
        assert "Invalid verify_mode" in capsys.readouterr().out

    def test_storage_error(self, mocker):
        mocker.patch("transferpilot.cli.application_factory.run_preflight",
                     side_effect=StorageError("Unable to get free space"))
        args = parse_arguments(["preflight", "/src", "--dest", "/media/CARD"])
        assert run_application(args, TransferConfig()) == EXIT_FAILURE

    def test_keyboard_interrupt(self, mocker):
        mocker.patch("transferpilot.cli.application_factory.run_transfer", side_effect=KeyboardInterrupt)
        args = parse_arguments(["transfer", "/src", "--dest", "/media/CARD"])
        assert run_application(args, TransferConfig()) == EXIT_CANCELLED


class TestMain:
    @pytest.fixture(autouse=True)
    def patched(self, monkeypatch):
        self.setup_logging = mock.Mock()
        self.run_application = mock.Mock(return_value=EXIT_OK)
        monkeypatch.setattr(main, "setup_logging", self.setup_logging)
        monkeypatch.setattr(main, "run_application", self.run_application)

    def test_main_runs_application(self, tmp_path):
        config_file = tmp_path / "config.yml"
        result = main.main(["--config", str(config_file), "volumes"])

        assert result == EXIT_OK
        assert config_file.exists()
        args, config = self.run_application.call_args[0]
        assert args.command == "volumes"
        assert isinstance(config, TransferConfig)
        assert self.setup_logging.call_args[1]["console_level"] == logging.WARNING

    def test_main_debug_console(self, tmp_path):
        main.main(["--config", str(tmp_path / "config.yml"), "--debug", "volumes"])
        assert self.setup_logging.call_args[1]["console_level"] == logging.DEBUG

    def test_main_invalid_arguments(self, tmp_path, capsys):
        result = main.main(["--config", str(tmp_path / "config.yml"), "transfer", "/src", "--dest", " "])
        assert result == EXIT_FAILURE
        assert "Error:" in capsys.readouterr().out
        self.run_application.assert_not_called()
