"""
Pytest configuration and fixtures for Photo Booth tests.

No test touches real camera hardware: the scheduler is a fake clock, the
host is a ``FakeProbe``, child processes are ``FakeProcess`` objects and
OpenCV devices are ``FakeVideoCapture`` objects. Images are real files under
``tmp_path``.
"""

import logging
import sys
from pathlib import Path

import numpy as np
import pytest
from PIL import Image

backend_dir = Path(__file__).parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from photobooth.backends.process import ExitStatus
from photobooth.host import HostProbe, DEVICE_TREE_MODEL
from photobooth.scheduler import ManualScheduler
from photobooth.session import ChoiceCatalog, choice_keys
from photobooth.signals import Signal
from photobooth.storage import PhotoStore


# ----------------------------------------------------------------------
# Fakes
# ----------------------------------------------------------------------

class FakeProbe(HostProbe):
    """Host probe answering from fixed values instead of the real machine."""

    def __init__(self, model=None, hostname="kiosk", product_type="debian", development_host=False, native_multimedia=True):
        self.files = {}
        if model is not None:
            self.files[DEVICE_TREE_MODEL] = model
        self._hostname = hostname
        self._product_type = product_type
        self._development_host = development_host
        self._native_multimedia = native_multimedia

    def read_text(self, path):
        return self.files.get(Path(path))

    def hostname(self):
        return self._hostname

    def product_type(self):
        return self._product_type

    def is_development_host(self):
        return self._development_host

    def has_native_multimedia(self):
        return self._native_multimedia


class FakeProcess:
    """
    Stand-in for ``CaptureProcess``.

    ``start`` succeeds unless ``start_results[program]`` is False. The test
    ends the child with ``exit``; ``kill`` reports a crash on the next
    scheduler pass, like a real killed child.
    """

    def __init__(self, scheduler, logger, start_results=None):
        self.scheduler = scheduler
        self.logger = logger
        self.finished = Signal("finished")
        self.start_results = dict(start_results or {})
        self.started = []
        self.running = False
        self.killed = 0
        self.waited = 0

    @property
    def is_running(self):
        return self.running

    def start(self, program, arguments):
        self.started.append((program, list(arguments)))
        self.running = self.start_results.get(program, True)
        return self.running

    @property
    def programs(self):
        return [program for program, _ in self.started]

    @property
    def output_path(self):
        arguments = self.started[-1][1]
        return arguments[arguments.index("-o") + 1]

    def exit(self, code=0, status=ExitStatus.NORMAL, image_size=None):
        """End the child. With ``image_size``, first write a JPEG where it was told to."""
        if image_size is not None:
            Image.new("RGB", image_size, (200, 120, 40)).save(self.output_path, format="JPEG", quality=95)
        self.running = False
        self.finished.emit(code, status)

    def kill(self):
        self.killed += 1
        if self.running:
            self.running = False
            self.scheduler.call_soon(self.finished.emit, -9, ExitStatus.CRASHED)

    def wait(self, timeout):
        self.waited += 1
        return True


class FakeProcessFactory:
    def __init__(self, start_results=None):
        self.start_results = start_results or {}
        self.created = []

    def __call__(self, scheduler, logger):
        process = FakeProcess(scheduler, logger, self.start_results)
        self.created.append(process)
        return process

    @property
    def process(self):
        return self.created[-1]


class FakeVideoCapture:
    """Stand-in for ``cv2.VideoCapture`` producing synthetic BGR frames."""

    def __init__(self, index, opened=True, frame_size=(640, 480)):
        self.index = index
        self.opened = opened
        self.frame_size = frame_size
        self.props = {}
        self.reads = 0
        self.fail_reads = False
        self.released = False

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def read(self):
        self.reads += 1
        if not self.opened or self.fail_reads:
            return False, None
        width, height = self.frame_size
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        frame[:, :, 0] = np.linspace(0, 255, width, dtype=np.uint8)
        frame[:, :, 2] = (self.reads * 7) % 256
        return True, frame

    def release(self):
        self.opened = False
        self.released = True


class FakeVideoCaptureFactory:
    def __init__(self, available=(0,), frame_size=(640, 480)):
        self.available = set(available)
        self.frame_size = frame_size
        self.devices = []

    def __call__(self, index):
        device = FakeVideoCapture(index, opened=index in self.available, frame_size=self.frame_size)
        self.devices.append(device)
        return device

    @property
    def last(self):
        return self.devices[-1]


# ----------------------------------------------------------------------
# Fixtures
# ----------------------------------------------------------------------

@pytest.fixture(scope="session")
def backend_root():
    """Return the repository root directory."""
    return Path(__file__).parent


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def test_logger():
    return logging.getLogger("photobooth.tests")


@pytest.fixture
def photos_dir(tmp_path):
    return tmp_path / "Pictures" / "PhotoBooth"


@pytest.fixture
def photo_store(photos_dir):
    """PhotoStore writing into a temporary directory."""
    return PhotoStore(photos_dir, fallback_dir=photos_dir.parent / "tmp")


@pytest.fixture
def write_jpeg():
    """Write a solid-colour JPEG. Usage: write_jpeg(path, (w, h))."""
    def _write(path, size=(1920, 1080), color=(30, 90, 160)):
        Image.new("RGB", size, color).save(path, format="JPEG")
        return Path(path)
    return _write


@pytest.fixture
def choices_dir(tmp_path):
    """A directory holding every choice image, 300x200 JPEGs."""
    directory = tmp_path / "choices"
    directory.mkdir()
    for i, key in enumerate(choice_keys()):
        Image.new("RGB", (300, 200), (20 * i, 100, 255 - 20 * i)).save(directory / f"{key}.jpg", format="JPEG")
    return directory


@pytest.fixture
def catalog(choices_dir):
    return ChoiceCatalog.load(choices_dir)


@pytest.fixture
def fake_probe():
    """Factory for FakeProbe. Usage: fake_probe(model="Raspberry Pi 4 Model B")."""
    return FakeProbe


@pytest.fixture
def pi_probe():
    return FakeProbe(model="Raspberry Pi 4 Model B Rev 1.4\x00")


@pytest.fixture
def process_factory():
    return FakeProcessFactory()


@pytest.fixture
def video_capture():
    return FakeVideoCaptureFactory()


# Pytest hooks
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "camera: mark test as exercising a camera backend"
    )
    config.addinivalue_line(
        "markers", "slow: mark test as slow running"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "backend: mark test as camera backend specific"
    )


def pytest_collection_modifyitems(config, items):
    """
    Modify test collection to add markers automatically.

    - Tests under tests/unit get @pytest.mark.unit, tests/integration get @pytest.mark.integration
    - Tests with "camera" in the name get @pytest.mark.camera
    - Tests with "backend" in the name get @pytest.mark.backend
    """
    for item in items:
        nodeid = item.nodeid.lower()
        if "tests/unit" in nodeid:
            item.add_marker(pytest.mark.unit)
        if "tests/integration" in nodeid:
            item.add_marker(pytest.mark.integration)

        # Auto-mark camera tests
        if "camera" in nodeid:
            item.add_marker(pytest.mark.camera)

        # Auto-mark backend tests
        if "backend" in nodeid:
            item.add_marker(pytest.mark.backend)
