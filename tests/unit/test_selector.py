"""
Unit tests for host detection and camera selection.
"""

import pytest

from photobooth.backends import OpenCVBackend, RpicamBackend, SimulatorBackend
from photobooth.camera import BackendKind
from photobooth.host import HostProbe, device_tree_model, is_raspberry_pi
from photobooth.selector import CameraSelector


@pytest.fixture
def make_selector(scheduler, photo_store, process_factory, video_capture):
    def _make(probe):
        return CameraSelector(
            scheduler,
            photo_store,
            probe=probe,
            process_factory=process_factory,
            video_capture=video_capture,
        )
    return _make


class TestRaspberryPiDetection:
    def test_device_tree_model_strips_nul(self, pi_probe):
        assert device_tree_model(pi_probe) == "Raspberry Pi 4 Model B Rev 1.4"

    def test_device_tree(self, pi_probe):
        assert is_raspberry_pi(pi_probe)

    def test_hostname(self, fake_probe):
        assert is_raspberry_pi(fake_probe(hostname="raspberrypi"))

    def test_product_type(self, fake_probe):
        assert is_raspberry_pi(fake_probe(product_type="Raspberry Pi OS"))

    def test_raspbian_product_type_alone_is_not_enough(self, fake_probe):
        assert not is_raspberry_pi(fake_probe(product_type="Raspbian"))

    def test_other_board(self, fake_probe):
        assert not is_raspberry_pi(fake_probe(model="Hardkernel ODROID-N2"))

    def test_no_evidence(self, fake_probe):
        assert not is_raspberry_pi(fake_probe())

    def test_real_probe_reads_missing_file_as_none(self, tmp_path):
        assert HostProbe().read_text(tmp_path / "missing") is None


class TestDetectBestBackend:
    def test_raspberry_pi_uses_subprocess(self, make_selector, pi_probe):
        assert make_selector(pi_probe).detect_best_backend() == BackendKind.SUBPROCESS

    def test_native_when_opencv_present(self, make_selector, fake_probe):
        assert make_selector(fake_probe()).detect_best_backend() == BackendKind.NATIVE

    def test_simulator_without_camera_framework(self, make_selector, fake_probe):
        probe = fake_probe(native_multimedia=False)
        assert make_selector(probe).detect_best_backend() == BackendKind.SIMULATOR

    def test_development_host_always_simulator(self, make_selector, fake_probe):
        probe = fake_probe(model="Raspberry Pi 4 Model B", development_host=True)
        assert make_selector(probe).detect_best_backend() == BackendKind.SIMULATOR


class TestCreate:
    @pytest.mark.parametrize("kind,backend_class", [
        (BackendKind.NATIVE, OpenCVBackend),
        (BackendKind.SUBPROCESS, RpicamBackend),
        (BackendKind.SIMULATOR, SimulatorBackend),
    ])
    def test_explicit_kind(self, make_selector, fake_probe, kind, backend_class):
        camera = make_selector(fake_probe()).create(kind)
        assert isinstance(camera, backend_class)
        assert not camera.initialized

    def test_auto_detect(self, make_selector, pi_probe):
        assert isinstance(make_selector(pi_probe).create(BackendKind.AUTO_DETECT), RpicamBackend)

    def test_development_host_overrides_request(self, make_selector, fake_probe):
        selector = make_selector(fake_probe(development_host=True))
        assert isinstance(selector.create(BackendKind.NATIVE), SimulatorBackend)
        assert selector.resolve(BackendKind.SUBPROCESS) == BackendKind.SIMULATOR

    def test_accepts_kind_values(self, make_selector, fake_probe):
        assert isinstance(make_selector(fake_probe()).create("simulator"), SimulatorBackend)

    def test_backends_get_shared_dependencies(self, make_selector, pi_probe, scheduler, photo_store):
        camera = make_selector(pi_probe).create(BackendKind.SUBPROCESS)
        assert camera.scheduler is scheduler
        assert camera.photo_store is photo_store
        assert camera.probe is pi_probe


@pytest.mark.parametrize("kind,text", [
    (BackendKind.NATIVE, "Native Camera (OpenCV)"),
    (BackendKind.SUBPROCESS, "Raspberry Pi Camera"),
    (BackendKind.SIMULATOR, "Simulator Camera"),
    (BackendKind.AUTO_DETECT, "Auto Detect"),
])
def test_describe(kind, text):
    assert CameraSelector.describe(kind) == text
