"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from hlspresso.config import Settings, TranscodeConfig, load_settings
from hlspresso.progress import ProgressFileFormat
from hlspresso.transcoding.constants import DEFAULT_LADDER, MIN_OUTPUT_SPACE
from hlspresso.transcoding.models import OutputType, PlaylistType, QualityTier


class TestTranscodeConfig:
    def test_defaults(self):
        config = TranscodeConfig(input="in.mp4", output="out")
        assert config.output_type == OutputType.HLS
        assert config.segment_duration == 10
        assert config.playlist_type == PlaylistType.VOD
        assert config.resolutions == DEFAULT_LADDER
        assert config.progress_format == ProgressFileFormat.TEXT
        assert config.min_output_space == MIN_OUTPUT_SPACE

    def test_frozen(self):
        config = TranscodeConfig(input="in.mp4", output="out")
        with pytest.raises(ValidationError):
            config.output = "elsewhere"

    def test_copy_with_update(self):
        config = TranscodeConfig(input="in.mp4", output="out")
        ladder = [QualityTier(640, 360, "800k", "856k", "1200k", "64k")]
        updated = config.model_copy(update={"resolutions": ladder})
        assert updated.resolutions == ladder
        assert config.resolutions == DEFAULT_LADDER

    def test_resolutions_from_dicts(self):
        config = TranscodeConfig(
            input="in.mp4",
            output="out",
            resolutions=[{
                "width": 640, "height": 360, "video_bitrate": "800k",
                "max_bitrate": "856k", "buffer_size": "1200k", "audio_bitrate": "64k",
            }],
        )
        assert config.resolutions[0] == QualityTier(640, 360, "800k", "856k", "1200k", "64k")

    def test_enums_from_strings(self):
        config = TranscodeConfig(
            input="in.mp4", output="o.mp4", output_type="mp4",
            playlist_type="event", progress_format="json",
        )
        assert config.output_type == OutputType.MP4
        assert config.playlist_type == PlaylistType.EVENT
        assert config.progress_format == ProgressFileFormat.JSON

    def test_rejects_unknown_output_type(self):
        with pytest.raises(ValidationError):
            TranscodeConfig(input="in.mp4", output="out", output_type="dash")


class TestSettings:
    def test_defaults(self):
        settings = Settings()
        assert settings.tools.ffmpeg_path == "ffmpeg"
        assert settings.logging.format == "json"
        assert settings.download.directory == "downloads"

    def test_load_from_yaml(self, tmp_path):
        config_file = tmp_path / "hlspresso.yaml"
        config_file.write_text(
            "tools:\n"
            "  ffmpeg_path: /opt/ffmpeg/bin/ffmpeg\n"
            "download:\n"
            "  directory: /data/downloads\n"
            "  timeout_seconds: 60\n"
            "hls:\n"
            "  segment_duration: 6\n"
            "  playlist_type: event\n"
            "logging:\n"
            "  level: DEBUG\n"
            "  format: text\n"
        )

        settings = load_settings(str(config_file))

        assert settings.tools.ffmpeg_path == "/opt/ffmpeg/bin/ffmpeg"
        assert settings.hls.playlist_type == PlaylistType.EVENT
        assert settings.logging.level == "DEBUG"

        defaults = settings.transcode_defaults()
        assert defaults["download_dir"] == "/data/downloads"
        assert defaults["download_timeout"] == 60
        assert defaults["segment_duration"] == 6
        assert defaults["ffprobe_path"] == "ffprobe"

    def test_empty_yaml(self, tmp_path):
        config_file = tmp_path / "hlspresso.yaml"
        config_file.write_text("")
        assert load_settings(str(config_file)).hls.segment_duration == 10

    def test_missing_file_uses_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        settings = load_settings(str(tmp_path / "nope.yaml"))
        assert settings.hls.segment_duration == 10

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("HLSPRESSO_TOOLS__FFMPEG_PATH", "/usr/local/bin/ffmpeg")
        monkeypatch.setenv("HLSPRESSO_HLS__SEGMENT_DURATION", "4")
        settings = Settings()
        assert settings.tools.ffmpeg_path == "/usr/local/bin/ffmpeg"
        assert settings.hls.segment_duration == 4

    def test_defaults_build_a_config(self):
        values = Settings().transcode_defaults()
        config = TranscodeConfig(input="in.mp4", output="out", **values)
        assert config.ffmpeg_path == "ffmpeg"
