from pathlib import Path

import pytest
from typer.testing import CliRunner

from bilidown import __version__
from bilidown.cli import app as app_module
from bilidown.exceptions import ApiError
from bilidown.models.media import (
    AudioStream,
    DownloadResult,
    ResolvedStreams,
    VideoMetadata,
    VideoStream,
)

runner = CliRunner()

VIDEO = VideoStream(base_url="https://cdn.example/v.m4s", quality=80, quality_label="1920x1080")
AUDIO = AudioStream(base_url="https://cdn.example/a.m4s", id="30280")


class FakeOrchestrator:
    instances: list["FakeOrchestrator"] = []
    error: Exception | None = None

    def __init__(self, config, on_state_change=None, on_progress=None, **kwargs):
        self.config = config
        self.on_progress = on_progress
        self.requested: list[str] = []
        FakeOrchestrator.instances.append(self)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return None

    async def download(self, text):
        self.requested.append(text)
        if self.error is not None:
            raise self.error
        output = Path(self.config.output_dir) / "clip.mp4"
        return DownloadResult(path=output, merged=True, video_stream=VIDEO, audio_stream=AUDIO)

    async def resolve(self, text):
        self.requested.append(text)
        if self.error is not None:
            raise self.error
        return ResolvedStreams(
            metadata=VideoMetadata(bvid="BV1xx411c7mD", cid="1", aid=1, title="Clip", duration=75),
            video_streams=(VIDEO,),
            audio_streams=(AUDIO,),
        )


@pytest.fixture(autouse=True)
def isolated(monkeypatch, tmp_path):
    FakeOrchestrator.instances = []
    FakeOrchestrator.error = None
    monkeypatch.setattr(app_module, "CONFIG_FILE", tmp_path / "config" / "config.ini")
    monkeypatch.setattr(app_module, "DownloadOrchestrator", FakeOrchestrator)


def test_version():
    result = runner.invoke(app_module.app, ["--version"])

    assert result.exit_code == 0
    assert __version__ in result.stdout


def test_download_without_url_exits_with_error():
    result = runner.invoke(app_module.app, ["download"])

    assert result.exit_code == 1
    assert "No URL provided" in result.stdout
    assert FakeOrchestrator.instances == []


def test_download_passes_url_and_options(tmp_path):
    result = runner.invoke(
        app_module.app,
        [
            "download",
            "https://www.bilibili.com/video/BV1xx411c7mD",
            "-o", str(tmp_path / "videos"),
            "-q", "64",
            "--no-merge",
            "--sign",
            "--no-progress",
        ],
    )  # fmt: skip

    assert result.exit_code == 0, result.stdout
    orchestrator = FakeOrchestrator.instances[0]
    assert orchestrator.requested == ["https://www.bilibili.com/video/BV1xx411c7mD"]
    assert orchestrator.config.quality == 64
    assert orchestrator.config.merge is False
    assert orchestrator.config.sign_requests is True
    assert orchestrator.config.output_dir == str(tmp_path / "videos")
    assert "Download complete" in result.stdout


def test_download_accepts_url_option():
    result = runner.invoke(app_module.app, ["download", "--url", "BV1xx411c7mD", "--no-progress"])

    assert result.exit_code == 0, result.stdout
    assert FakeOrchestrator.instances[0].requested == ["BV1xx411c7mD"]


def test_download_error_exits_with_error():
    FakeOrchestrator.error = ApiError(-404, "啥都木有")

    result = runner.invoke(app_module.app, ["download", "BV1xx411c7mD", "--no-progress"])

    assert result.exit_code == 1
    assert "-404" in result.stdout


def test_invalid_quality_is_rejected_before_download():
    result = runner.invoke(app_module.app, ["download", "BV1xx411c7mD", "-q", "0"])

    assert result.exit_code == 1
    assert FakeOrchestrator.instances == []


def test_unlisted_quality_rank_is_passed_through():
    result = runner.invoke(app_module.app, ["download", "BV1xx411c7mD", "-q", "100", "--no-progress"])

    assert result.exit_code == 0, result.stdout
    assert FakeOrchestrator.instances[0].config.quality == 100


def test_init_writes_config_file():
    result = runner.invoke(app_module.app, ["init", "--force"])

    assert result.exit_code == 0
    assert app_module.CONFIG_FILE.is_file()
    assert "quality = 80" in app_module.CONFIG_FILE.read_text(encoding="utf-8")


def test_config_file_values_are_used():
    app_module.CONFIG_FILE.parent.mkdir(parents=True)
    app_module.CONFIG_FILE.write_text("[DEFAULT]\nquality = 116\n", encoding="utf-8")

    result = runner.invoke(app_module.app, ["download", "BV1xx411c7mD", "--no-progress"])

    assert result.exit_code == 0, result.stdout
    assert FakeOrchestrator.instances[0].config.quality == 116


def test_info_lists_streams():
    result = runner.invoke(app_module.app, ["info", "BV1xx411c7mD"])

    assert result.exit_code == 0, result.stdout
    assert "Clip" in result.stdout
    assert "30280" in result.stdout


def test_quality_help_lists_labels():
    result = runner.invoke(app_module.app, ["--quality-help"])

    assert result.exit_code == 0
    assert "1080P" in result.stdout


def test_show_config_prints_effective_settings():
    app_module.CONFIG_FILE.parent.mkdir(parents=True)
    app_module.CONFIG_FILE.write_text("[DEFAULT]\nquality = 116\n", encoding="utf-8")

    result = runner.invoke(app_module.app, ["--show-config"])

    assert result.exit_code == 0, result.stdout
    assert "116" in result.stdout
    assert "source_url" not in result.stdout


def test_show_config_with_broken_file_exits_with_error():
    app_module.CONFIG_FILE.parent.mkdir(parents=True)
    app_module.CONFIG_FILE.write_text("this is not an ini file", encoding="utf-8")

    result = runner.invoke(app_module.app, ["--show-config"])

    assert result.exit_code == 1
    assert "ConfigurationError" in result.stdout
