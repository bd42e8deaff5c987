"""
hlspresso Test Configuration and Fixtures

Provides:
- Synthetic lavfi test clips rendered once per session
- A local HTTP server for fetcher and streaming tests
- Skip conditions for tests that need ffmpeg/ffprobe
"""

import shutil
import socket
import subprocess
import threading
import time
from dataclasses import dataclass, field
from http.server import SimpleHTTPRequestHandler, ThreadingHTTPServer
from pathlib import Path
from typing import List, Optional

import pytest

from hlspresso.transcoding.models import QualityTier


# =============================================================================
# TEST MEDIA GENERATION
# =============================================================================

class TestMediaGenerator:
    """
    Renders lavfi test-pattern clips (testsrc video plus an optional sine
    tone) with the ffmpeg found on PATH.
    """

    __test__ = False

    def __init__(self, output_dir: Path):
        self.output_dir = output_dir
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self._ffmpeg = shutil.which("ffmpeg")

    @property
    def has_ffmpeg(self) -> bool:
        return self._ffmpeg is not None

    def generate_test_video(
        self,
        name: str = "test_video",
        duration: int = 2,
        width: int = 1280,
        height: int = 720,
        fps: int = 25,
        audio: bool = True
    ) -> Optional[Path]:
        """
        Generate a test video with a test pattern and a sine tone.

        Returns:
            Path to generated video, or None if FFmpeg is not available
        """
        if not self.has_ffmpeg:
            return None

        output_path = self.output_dir / f"{name}.mp4"

        cmd = [
            self._ffmpeg,
            "-y",
            "-f", "lavfi",
            "-i", f"testsrc=duration={duration}:size={width}x{height}:rate={fps}",
        ]
        if audio:
            cmd.extend([
                "-f", "lavfi",
                "-i", f"sine=frequency=440:duration={duration}",
            ])
        cmd.extend([
            "-c:v", "libx264",
            "-preset", "ultrafast",
            "-pix_fmt", "yuv420p",
            "-movflags", "+faststart",
        ])
        if audio:
            cmd.extend(["-c:a", "aac", "-b:a", "128k"])
        cmd.append(str(output_path))

        try:
            result = subprocess.run(cmd, capture_output=True, timeout=60)
            if result.returncode == 0 and output_path.exists():
                return output_path
        except (subprocess.TimeoutExpired, OSError) as e:
            print(f"Could not render {name}: {e}")

        return None

    def generate_test_videos(self) -> dict:
        """
        Render the standard clips: "quick" (640x360), "720p" and "vertical".
        Clips that fail to render are left out.
        """
        videos = {}

        path = self.generate_test_video("test_quick", duration=2, width=640, height=360)
        if path:
            videos["quick"] = path

        path = self.generate_test_video("test_720p", duration=2, width=1280, height=720)
        if path:
            videos["720p"] = path

        path = self.generate_test_video("test_vertical", duration=1, width=360, height=640)
        if path:
            videos["vertical"] = path

        return videos


# =============================================================================
# PYTEST FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def test_media_dir(tmp_path_factory) -> Path:
    """Session-scoped temp directory for test media."""
    return tmp_path_factory.mktemp("hlspresso_test_media")


@pytest.fixture(scope="session")
def media_generator(test_media_dir) -> TestMediaGenerator:
    return TestMediaGenerator(test_media_dir)


@pytest.fixture(scope="session")
def test_videos(media_generator) -> dict:
    """Generate test videos once per session."""
    if not media_generator.has_ffmpeg or not shutil.which("ffprobe"):
        pytest.skip("FFmpeg/ffprobe not available for test media generation")

    videos = media_generator.generate_test_videos()
    if not videos:
        pytest.skip("Failed to generate test videos")

    return videos


@pytest.fixture(scope="session")
def quick_test_video(test_videos) -> Path:
    """2-second 640x360 test video."""
    if "quick" not in test_videos:
        pytest.skip("Quick test video unavailable")
    return test_videos["quick"]


@pytest.fixture(scope="session")
def test_video_720p(test_videos) -> Path:
    if "720p" not in test_videos:
        pytest.skip("720p test video unavailable")
    return test_videos["720p"]


@pytest.fixture(scope="session")
def vertical_test_video(test_videos) -> Path:
    if "vertical" not in test_videos:
        pytest.skip("Vertical test video unavailable")
    return test_videos["vertical"]


@pytest.fixture
def temp_output_dir(tmp_path) -> Path:
    """Per-test temp directory for output files."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir


@pytest.fixture
def fake_video(tmp_path) -> Path:
    """A non-empty file with a supported extension. Not decodable."""
    path = tmp_path / "input.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 64)
    return path


@pytest.fixture
def single_tier() -> List[QualityTier]:
    return [QualityTier(640, 360, "800k", "856k", "1200k", "64k")]


@pytest.fixture
def three_tiers() -> List[QualityTier]:
    return [
        QualityTier(1280, 720, "2800k", "2996k", "4200k", "128k"),
        QualityTier(854, 480, "1400k", "1498k", "2100k", "96k"),
        QualityTier(640, 360, "800k", "856k", "1200k", "64k"),
    ]


# =============================================================================
# HTTP SERVER FOR TEST MEDIA
# =============================================================================

@dataclass
class LocalServer:
    url: str
    root: Path
    requests: List[str] = field(default_factory=list)

    def file_url(self, name: str) -> str:
        return f"{self.url}/{name}"


@pytest.fixture(scope="session")
def http_server_session(tmp_path_factory):
    """
    Threaded HTTP server serving a temp directory.

    Special paths:
        /status/<code>        responds with that status and no body
        /slow/<name>          sends headers, a few bytes, then stalls
    """
    root = tmp_path_factory.mktemp("hlspresso_http_root")
    requests: List[str] = []

    class QuietHandler(SimpleHTTPRequestHandler):
        def __init__(self, *args, **kwargs):
            super().__init__(*args, directory=str(root), **kwargs)

        def log_message(self, format, *args):
            pass

        def _special(self) -> bool:
            requests.append(f"{self.command} {self.path}")
            if self.path.startswith("/status/"):
                self.send_response(int(self.path.rsplit("/", 1)[1]))
                self.send_header("Content-Length", "0")
                self.end_headers()
                return True
            if self.path.startswith("/slow/"):
                self.send_response(200)
                self.send_header("Content-Type", "video/mp4")
                self.send_header("Content-Length", "1048576")
                self.end_headers()
                if self.command == "GET":
                    try:
                        self.wfile.write(b"\x00" * 1024)
                        self.wfile.flush()
                        time.sleep(3)
                    except (BrokenPipeError, ConnectionResetError):
                        pass
                return True
            return False

        def do_GET(self):
            if not self._special():
                super().do_GET()

        def do_HEAD(self):
            if not self._special():
                super().do_HEAD()

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        port = s.getsockname()[1]

    server = ThreadingHTTPServer(("127.0.0.1", port), QuietHandler)
    server.daemon_threads = True
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()

    yield LocalServer(url=f"http://127.0.0.1:{port}", root=root, requests=requests)

    server.shutdown()
    server.server_close()


@pytest.fixture
def http_server(http_server_session) -> LocalServer:
    """Session server with the request log cleared for each test."""
    http_server_session.requests.clear()
    return http_server_session


# =============================================================================
# SKIP CONDITIONS
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "requires_ffmpeg: marks tests that require FFmpeg"
    )


@pytest.fixture
def requires_ffmpeg():
    """Skip test if FFmpeg or ffprobe is not available."""
    if not shutil.which("ffmpeg") or not shutil.which("ffprobe"):
        pytest.skip("FFmpeg not available")
