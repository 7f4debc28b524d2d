"""
Unit tests for the libcamera-still / raspistill backend and its process runner.
"""

import subprocess
from pathlib import Path

import pytest
from PIL import Image

from photobooth.backends.process import CaptureProcess, ExitStatus
from photobooth.backends.subprocess_backend import RpicamBackend, build_still_command
from photobooth.camera import StillCaptureConfig


@pytest.fixture
def camera(test_logger, scheduler, photo_store, pi_probe, process_factory):
    backend = RpicamBackend(test_logger, scheduler, photo_store, probe=pi_probe, process_factory=process_factory)
    yield backend
    backend.cleanup()


@pytest.fixture
def events(camera):
    received = []
    camera.photo_ready.connect(lambda asset: received.append(("photo", asset)))
    camera.capture_error.connect(lambda message: received.append(("error", message)))
    return received


class TestBuildStillCommand:
    def test_libcamera_flags(self):
        assert build_still_command("libcamera-still", "/p/x.jpg", StillCaptureConfig()) == [
            "-o", "/p/x.jpg", "--width", "1920", "--height", "1080", "--quality", "95", "--timeout", "1",
        ]

    def test_raspistill_flags(self):
        assert build_still_command("raspistill", "/p/x.jpg", StillCaptureConfig()) == [
            "-o", "/p/x.jpg", "-w", "1920", "-h", "1080", "-q", "95", "-t", "1",
        ]

    def test_config_values_used(self):
        config = StillCaptureConfig(width=640, height=480, quality=70)
        command = build_still_command("raspistill", "out.jpg", config)
        assert command[command.index("-w") + 1] == "640"
        assert command[command.index("-q") + 1] == "70"


class TestInitialize:
    def test_requires_raspberry_pi(self, test_logger, scheduler, photo_store, fake_probe, process_factory):
        backend = RpicamBackend(test_logger, scheduler, photo_store, probe=fake_probe(), process_factory=process_factory)
        assert not backend.initialize()
        assert backend.preview_surface() is None
        assert process_factory.created == []

    def test_initialize_creates_placeholder_and_directory(self, camera, photos_dir, process_factory):
        assert camera.initialize()
        assert camera.initialize()

        assert len(process_factory.created) == 1
        assert photos_dir.is_dir()
        assert camera.preview_surface().text == "Raspberry Pi Camera\nPreview"
        assert camera.is_available()

    def test_preview_placeholder_text(self, camera):
        camera.initialize()
        camera.start_preview()
        assert camera.preview_surface().text == "Raspberry Pi Camera\nPreview Active"
        camera.stop_preview()
        assert camera.preview_surface().text == "Raspberry Pi Camera\nPreview Stopped"


class TestCapture:
    def test_successful_capture(self, camera, events, process_factory, scheduler):
        camera.initialize()
        camera.capture_photo()
        process = process_factory.process

        assert process.programs == ["libcamera-still"]
        assert Path(process.output_path).name.startswith("pi_photo_")
        assert process.output_path.endswith(".jpg")
        assert events == []

        process.exit(0, image_size=(1920, 1080))

        assert len(events) == 1
        kind, asset = events[0]
        assert kind == "photo"
        assert asset.path == str(Path(process.output_path).resolve())
        assert asset.size == (1920, 1080)

    def test_legacy_program_when_preferred_fails_to_start(self, camera, events, process_factory, scheduler):
        process_factory.start_results = {"libcamera-still": False}
        camera.initialize()
        camera.capture_photo()
        process = process_factory.process

        assert process.programs == ["libcamera-still", "raspistill"]
        assert process.started[1][1][:2] == ["-o", process.output_path]

    def test_both_programs_fail_to_start(self, camera, events, process_factory, scheduler):
        process_factory.start_results = {"libcamera-still": False, "raspistill": False}
        camera.initialize()
        camera.capture_photo()

        assert events == []
        scheduler.run_pending()

        assert events == [("error", "Failed to start camera capture process")]
        assert process_factory.process.programs == ["libcamera-still", "raspistill"]

    def test_nonzero_exit(self, camera, events, process_factory):
        camera.initialize()
        camera.capture_photo()
        process_factory.process.exit(2)

        assert events == [("error", "Capture process failed with exit code: 2")]

    def test_crash(self, camera, events, process_factory):
        camera.initialize()
        camera.capture_photo()
        process_factory.process.exit(-11, ExitStatus.CRASHED)

        assert len(events) == 1
        assert "exit code: -11" in events[0][1]

    def test_missing_file(self, camera, events, process_factory):
        camera.initialize()
        camera.capture_photo()
        process_factory.process.exit(0)

        assert events == [("error", "Captured photo file not found")]

    def test_undecodable_file(self, camera, events, process_factory):
        camera.initialize()
        camera.capture_photo()
        process = process_factory.process
        Path(process.output_path).write_bytes(b"definitely not a jpeg")
        process.exit(0)

        assert events == [("error", "Failed to load captured photo")]

    def test_second_capture_rejected_while_running(self, camera, events, process_factory, scheduler):
        camera.initialize()
        camera.capture_photo()
        camera.capture_photo()
        scheduler.run_pending()

        assert events == [("error", "Capture already in progress")]
        assert process_factory.process.programs == ["libcamera-still"]

        process_factory.process.exit(0, image_size=(64, 48))
        assert [e[0] for e in events] == ["error", "photo"]

    def test_capture_before_initialize(self, camera, events, scheduler):
        camera.capture_photo()
        scheduler.run_pending()
        assert events == [("error", "Camera not initialized")]

    def test_cancel_kills_child_without_event(self, camera, events, process_factory, scheduler):
        camera.initialize()
        camera.capture_photo()
        camera.cancel_capture()
        scheduler.advance(1)

        assert process_factory.process.killed == 1
        assert events == []
        assert not camera.capture_in_progress

    def test_cancel_drops_pending_rejection(self, camera, events, process_factory, scheduler):
        camera.initialize()
        camera.capture_photo()
        camera.capture_photo()
        camera.cancel_capture()
        scheduler.advance(1.0)

        assert events == []
        assert process_factory.process.programs == ["libcamera-still"]

    def test_cleanup_before_initialize_drops_rejection(self, camera, events, scheduler):
        camera.capture_photo()
        assert not camera.capture_in_progress
        camera.cleanup()
        scheduler.advance(1.0)

        assert events == []

    def test_cleanup_kills_and_waits(self, camera, events, process_factory, scheduler):
        camera.initialize()
        camera.start_preview()
        camera.capture_photo()
        process = process_factory.process
        surface = camera.preview_surface()

        camera.cleanup()
        scheduler.advance(1)

        assert process.killed >= 1
        assert surface.released
        assert events == []
        assert not camera.initialize()


class FakePopen:
    """Minimal subprocess.Popen double driven by the test."""

    instances = []

    def __init__(self, command, stdout=None, stderr=None):
        self.command = command
        self.stderr = stderr
        self.pid = 4242
        self.returncode = None
        FakePopen.instances.append(self)

    def poll(self):
        return self.returncode

    def kill(self):
        self.returncode = -9

    def wait(self, timeout=None):
        if self.returncode is None:
            raise subprocess.TimeoutExpired(self.command, timeout)
        return self.returncode


class TestCaptureProcess:
    @pytest.fixture(autouse=True)
    def reset_popen(self):
        FakePopen.instances = []

    def test_finished_emitted_once_after_exit(self, scheduler, test_logger):
        runner = CaptureProcess(scheduler, test_logger, popen=FakePopen)
        results = []
        runner.finished.connect(lambda code, status: results.append((code, status)))

        assert runner.start("libcamera-still", ["-o", "x.jpg"])
        assert runner.is_running
        assert FakePopen.instances[0].command == ["libcamera-still", "-o", "x.jpg"]

        scheduler.advance(0.2)
        assert results == []

        FakePopen.instances[0].returncode = 0
        scheduler.advance(0.2)
        scheduler.advance(1.0)

        assert results == [(0, ExitStatus.NORMAL)]
        assert not runner.is_running

    def test_killed_child_is_a_crash(self, scheduler, test_logger):
        runner = CaptureProcess(scheduler, test_logger, popen=FakePopen)
        results = []
        runner.finished.connect(lambda code, status: results.append((code, status)))
        runner.start("raspistill", [])

        runner.kill()
        scheduler.advance(0.1)

        assert results == [(-9, ExitStatus.CRASHED)]

    def test_missing_program_does_not_start(self, scheduler, test_logger, caplog):
        def missing(*args, **kwargs):
            raise FileNotFoundError("libcamera-still")

        runner = CaptureProcess(scheduler, test_logger, popen=missing)

        assert not runner.start("libcamera-still", [])
        assert not runner.is_running
        assert scheduler.pending == 0
        assert "Failed to start libcamera-still: libcamera-still" in caplog.text
        assert " within " not in caplog.text

    def test_only_one_child_at_a_time(self, scheduler, test_logger):
        runner = CaptureProcess(scheduler, test_logger, popen=FakePopen)
        assert runner.start("libcamera-still", [])
        assert not runner.start("libcamera-still", [])
        assert len(FakePopen.instances) == 1

    def test_wait_times_out(self, scheduler, test_logger):
        runner = CaptureProcess(scheduler, test_logger, popen=FakePopen)
        runner.start("libcamera-still", [])

        assert not runner.wait(0.01)
        FakePopen.instances[0].returncode = 0
        assert runner.wait(0.01)
        assert not runner.is_running
