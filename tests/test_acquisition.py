"""Tests for process running, downloads, audio extraction and clips (no binaries needed)."""

from __future__ import annotations

import json
import subprocess
import threading
import time
from pathlib import Path
from unittest.mock import MagicMock, patch

import httpx
import pytest

from chapterizer.acquisition import downloader
from chapterizer.acquisition.audio import AudioExtractor, audio_path_for
from chapterizer.acquisition.clips import ClipGenerator
from chapterizer.acquisition.downloader import MediaAcquirer, is_playlist_url, save_upload
from chapterizer.acquisition.models import LocalFile, RemoteUrl, YtDlpInfo
from chapterizer.acquisition.runner import ProcessResult, ProcessRunner
from chapterizer.acquisition.youtube import YouTubeClient
from chapterizer.config import Settings
from chapterizer.errors import AcquisitionError, CancelledError, TranscodeError
from tests.helpers import failed, mock_http, ok

# ---------------------------------------------------------------------------
# ProcessRunner
# ---------------------------------------------------------------------------


def _fake_proc(stdout: str = "out", stderr: str = "", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate.return_value = (stdout, stderr)
    proc.returncode = returncode
    return proc


def _hanging_proc() -> MagicMock:
    """A child that never exits until killed."""
    proc = MagicMock()
    state = {"killed": False}

    def communicate(timeout: float | None = None) -> tuple[str, str]:
        if not state["killed"]:
            raise subprocess.TimeoutExpired(cmd="tool", timeout=timeout or 0)
        return "", "partial output"

    def kill() -> None:
        state["killed"] = True
        proc.returncode = -9

    proc.communicate.side_effect = communicate
    proc.kill.side_effect = kill
    proc.returncode = None
    return proc


class TestProcessRunner:
    def test_success(self) -> None:
        with patch("chapterizer.acquisition.runner.subprocess.Popen", return_value=_fake_proc()) as popen:
            res = ProcessRunner().run("yt-dlp", ["--version"], timeout_ms=1000)
        assert res == ProcessResult(ok=True, stdout="out", stderr="", exit_code=0)
        kwargs = popen.call_args.kwargs
        assert popen.call_args.args[0] == ["yt-dlp", "--version"]
        assert kwargs["stdin"] is subprocess.DEVNULL
        assert kwargs["text"] is True

    def test_non_zero_exit(self) -> None:
        proc = _fake_proc(stdout="", stderr="ERROR: unavailable", returncode=2)
        with patch("chapterizer.acquisition.runner.subprocess.Popen", return_value=proc):
            res = ProcessRunner().run("yt-dlp", ["x"])
        assert not res.ok
        assert res.exit_code == 2
        assert res.stderr == "ERROR: unavailable"

    def test_spawn_failure(self) -> None:
        with patch(
            "chapterizer.acquisition.runner.subprocess.Popen",
            side_effect=FileNotFoundError("No such file or directory: 'ffmpeg'"),
        ):
            res = ProcessRunner().run("ffmpeg", ["-i", "x"])
        assert not res.ok
        assert res.exit_code == 1
        assert "No such file" in res.stderr

    def test_timeout_kills_child(self) -> None:
        proc = _hanging_proc()
        with patch("chapterizer.acquisition.runner.subprocess.Popen", return_value=proc):
            res = ProcessRunner().run("/usr/bin/yt-dlp", ["x"], timeout_ms=1)
        proc.kill.assert_called_once()
        assert not res.ok
        assert "yt-dlp timed out" in res.stderr
        assert "partial output" in res.stderr

    def test_cancel_kills_child(self) -> None:
        proc = _hanging_proc()
        cancel = threading.Event()
        cancel.set()
        with patch("chapterizer.acquisition.runner.subprocess.Popen", return_value=proc):
            res = ProcessRunner().run("ffmpeg", ["x"], timeout_ms=60_000, cancel=cancel)
        proc.kill.assert_called_once()
        assert not res.ok
        assert "ffmpeg cancelled" in res.stderr


# ---------------------------------------------------------------------------
# MediaAcquirer
# ---------------------------------------------------------------------------


def _scripted_downloader(
    info: dict[str, object] | None,
    tier_results: list[ProcessResult],
) -> tuple[MagicMock, list[list[str]]]:
    """Runner whose ``-J`` call returns *info* and whose downloads follow *tier_results*.

    A successful download writes the ``-o`` target, like yt-dlp would.
    """
    downloads: list[list[str]] = []
    results = iter(tier_results)

    def run(executable: str, args: list[str], timeout_ms: int | None = None, cancel=None) -> ProcessResult:
        if "-J" in args:
            return ok(json.dumps(info)) if info is not None else failed("metadata failed")
        downloads.append(args)
        res = next(results)
        if res.ok:
            out = Path(args[args.index("-o") + 1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(b"video")
        return res

    runner = MagicMock(spec=ProcessRunner)
    runner.run.side_effect = run
    return runner, downloads


class TestMediaAcquirer:
    def test_downloads_to_deterministic_path(self, settings: Settings) -> None:
        runner, downloads = _scripted_downloader(
            {"id": "abc123", "title": "Talk", "duration": 321.4}, [ok()]
        )
        res = MediaAcquirer(runner, settings).acquire("https://youtu.be/abc123")
        assert res.ok
        media = res.unwrap()
        assert media.local_path == Path(settings.media_root) / "downloads/videos/abc123/abc123.mp4"
        assert media.public_url == "/downloads/videos/abc123/abc123.mp4"
        assert media.metadata.title == "Talk"
        assert media.metadata.duration_seconds == 321
        assert len(downloads) == 1

    def test_second_call_reuses_file(self, settings: Settings) -> None:
        runner, downloads = _scripted_downloader({"id": "abc123"}, [ok()])
        acquirer = MediaAcquirer(runner, settings)
        first = acquirer.acquire("https://youtu.be/abc123").unwrap()
        second = acquirer.acquire("https://youtu.be/abc123").unwrap()
        assert first.local_path == second.local_path
        assert len(downloads) == 1

    def test_falls_through_tiers(self, settings: Settings) -> None:
        runner, downloads = _scripted_downloader(
            {"id": "vid"}, [failed("403 Forbidden"), failed("merge failed"), ok()]
        )
        assert MediaAcquirer(runner, settings).acquire("https://example.com/v").ok
        assert len(downloads) == 3
        assert "--hls-prefer-ffmpeg" in downloads[2]
        assert downloads[2][downloads[2].index("-N") + 1] == "1"

    def test_all_tiers_fail_with_combined_stderr(self, settings: Settings) -> None:
        runner, _ = _scripted_downloader({"id": "vid"}, [failed("one"), failed("two"), failed("three")])
        res = MediaAcquirer(runner, settings).acquire("https://example.com/v")
        assert isinstance(res.error, AcquisitionError)
        for part in ("[progressive] one", "[merged_streams] two", "[segment_streaming] three"):
            assert part in res.error.message

    def test_metadata_failure_uses_generated_id(self, settings: Settings) -> None:
        runner, _ = _scripted_downloader(None, [ok()])
        media = MediaAcquirer(runner, settings).acquire("https://example.com/v").unwrap()
        assert media.local_path.name.startswith("src_")
        assert media.metadata.title == "Unknown"

    def test_hardening_flags(self, settings: Settings) -> None:
        settings.ytdlp_cookies_from_browser = "firefox"
        args = MediaAcquirer(MagicMock(), settings).common_args()
        for flag in ("--no-playlist", "--force-ipv4", "--geo-bypass", "--fragment-retries"):
            assert flag in args
        assert args[args.index("--cookies-from-browser") + 1] == "firefox"
        assert "youtube:player_client=web" in args

    def test_cancel_before_download(self, settings: Settings) -> None:
        runner, downloads = _scripted_downloader({"id": "vid"}, [ok()])
        cancel = threading.Event()
        cancel.set()
        res = MediaAcquirer(runner, settings).acquire("https://example.com/v", cancel=cancel)
        assert isinstance(res.error, CancelledError)
        assert downloads == []

    def test_local_file(self, settings: Settings, tmp_path: Path) -> None:
        media_file = Path(settings.media_root) / "uploads" / "videos" / "u1" / "clip.mp4"
        media_file.parent.mkdir(parents=True)
        media_file.write_bytes(b"x")
        acquirer = MediaAcquirer(MagicMock(), settings)
        media = acquirer.acquire_source(LocalFile(path=media_file)).unwrap()
        assert media.public_url == "/uploads/videos/u1/clip.mp4"

    def test_missing_local_file(self, settings: Settings, tmp_path: Path) -> None:
        res = MediaAcquirer(MagicMock(), settings).acquire_source(LocalFile(path=tmp_path / "nope.mp4"))
        assert isinstance(res.error, AcquisitionError)
        assert "not found" in res.error.message

    def test_remote_source_dispatch(self, settings: Settings) -> None:
        runner, downloads = _scripted_downloader({"id": "vid"}, [ok()])
        assert MediaAcquirer(runner, settings).acquire_source(RemoteUrl("https://x/v")).ok
        assert len(downloads) == 1

    def test_concurrent_same_id_downloads_once(self, settings: Settings) -> None:
        runner, downloads = _scripted_downloader({"id": "same"}, [ok(), ok()])
        acquirer = MediaAcquirer(runner, settings)
        threads = [threading.Thread(target=acquirer.acquire, args=("https://x/v",)) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(downloads) == 1

    def test_separate_acquirers_share_the_download_lock(self, settings: Settings) -> None:
        runner, downloads = _scripted_downloader({"id": "same"}, [ok(), ok()])
        scripted = runner.run.side_effect

        def slow_run(executable: str, args: list[str], timeout_ms=None, cancel=None) -> ProcessResult:
            if "-J" not in args:
                time.sleep(0.2)
            return scripted(executable, args, timeout_ms, cancel)

        runner.run.side_effect = slow_run
        threads = [
            threading.Thread(target=MediaAcquirer(runner, settings).acquire, args=("https://x/v",))
            for _ in range(2)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert len(downloads) == 1

    def test_download_locks_are_released(self, settings: Settings) -> None:
        runner, _ = _scripted_downloader({"id": "gone"}, [ok()])
        assert MediaAcquirer(runner, settings).acquire("https://x/v").ok
        failing, _ = _scripted_downloader({"id": "fails"}, [failed(), failed(), failed()])
        assert not MediaAcquirer(failing, settings).acquire("https://x/f").ok
        assert downloader._DOWNLOAD_LOCKS == {}


class TestPlaylists:
    def test_is_playlist_url(self) -> None:
        assert is_playlist_url("https://www.youtube.com/playlist?list=PL123")
        assert is_playlist_url("https://www.youtube.com/watch?v=a&list=PL123")
        assert not is_playlist_url("https://www.youtube.com/watch?v=a")

    def test_download_playlist_records_failures(self, settings: Settings) -> None:
        playlist = {
            "id": "PL1",
            "title": "Course",
            "entries": [{"id": "a", "title": "A"}, {"id": "b", "title": "B"}],
        }

        def run(executable: str, args: list[str], timeout_ms=None, cancel=None) -> ProcessResult:
            url = args[-1]
            if "-J" in args:
                if "list=" in url:
                    return ok(json.dumps(playlist))
                return ok(json.dumps({"id": url.rsplit("=", 1)[-1]}))
            if url.endswith("=b"):
                return failed("private video")
            out = Path(args[args.index("-o") + 1])
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(b"v")
            return ok()

        runner = MagicMock(spec=ProcessRunner)
        runner.run.side_effect = run
        res = MediaAcquirer(runner, settings).download_playlist("https://www.youtube.com/playlist?list=PL1")
        info, downloads = res.unwrap()
        assert info.title == "Course"
        assert [e.url for e in info.entries] == [
            "https://www.youtube.com/watch?v=a",
            "https://www.youtube.com/watch?v=b",
        ]
        assert downloads[0].public_url == "/downloads/videos/a/a.mp4"
        assert downloads[1].error is not None and "private video" in downloads[1].error


class TestSaveUpload:
    def test_writes_under_owner_dir(self, tmp_path: Path) -> None:
        saved = save_upload(tmp_path, b"data", "lecture.MOV", "user-1")
        assert saved.abs_path.read_bytes() == b"data"
        assert saved.abs_path.suffix == ".mov"
        assert saved.rel_path == f"/uploads/videos/user-1/{saved.file_name}"

    def test_default_extension_for_audio(self, tmp_path: Path) -> None:
        saved = save_upload(tmp_path, b"a", "recording", "u", kind="audio")
        assert saved.file_name.endswith(".mp3")

    def test_dotted_extension_cannot_leave_owner_dir(self, tmp_path: Path) -> None:
        saved = save_upload(tmp_path, b"x", "clip./evil", "owner")
        assert saved.file_name.endswith(".mp4")
        assert saved.abs_path.parent == tmp_path / "uploads" / "videos" / "owner"
        assert saved.abs_path.read_bytes() == b"x"

    def test_extension_is_stripped_to_safe_characters(self, tmp_path: Path) -> None:
        saved = save_upload(tmp_path, b"x", "lecture.M P4", "owner")
        assert saved.file_name.endswith(".mp4")


# ---------------------------------------------------------------------------
# AudioExtractor
# ---------------------------------------------------------------------------


class TestAudioExtractor:
    def test_extract_args_and_path(self, runner: MagicMock, settings: Settings, tmp_path: Path) -> None:
        media = tmp_path / "talk.mp4"
        track = AudioExtractor(runner, settings).extract_audio(media).unwrap()
        assert track.local_path == tmp_path / "talk.flac"
        args = runner.run.call_args.args[1]
        assert args[args.index("-acodec") + 1] == "flac"
        assert args[args.index("-ar") + 1] == "16000"
        assert args[args.index("-ac") + 1] == "1"
        assert "-vn" in args
        assert args[-1] == str(tmp_path / "talk.flac")

    def test_flac_input_does_not_overwrite_itself(self, runner: MagicMock, settings: Settings, tmp_path: Path) -> None:
        media = tmp_path / "talk.flac"
        track = AudioExtractor(runner, settings).extract_audio(media).unwrap()
        assert track.local_path != media

    def test_failure(self, runner: MagicMock, settings: Settings, tmp_path: Path) -> None:
        runner.run.return_value = failed("Invalid data found")
        res = AudioExtractor(runner, settings).extract_audio(tmp_path / "bad.mp4")
        assert isinstance(res.error, TranscodeError)
        assert res.error.message == "failed to extract audio"

    def test_audio_path_for(self) -> None:
        assert audio_path_for(Path("/a/b/video.mp4")) == Path("/a/b/video.flac")

    def test_probe_duration(self, runner: MagicMock, settings: Settings, tmp_path: Path) -> None:
        runner.run.return_value = ok("123.6\n")
        assert AudioExtractor(runner, settings).probe_duration(tmp_path / "v.mp4") == 124
        runner.run.return_value = ok("N/A\n")
        assert AudioExtractor(runner, settings).probe_duration(tmp_path / "v.mp4") is None


# ---------------------------------------------------------------------------
# ClipGenerator
# ---------------------------------------------------------------------------


class TestClipGenerator:
    def test_zero_duration_rejected(self, runner: MagicMock, settings: Settings, tmp_path: Path) -> None:
        res = ClipGenerator(runner, settings).clip_segment(tmp_path / "v.mp4", 30, 30, tmp_path / "c.mp4")
        assert not res.ok
        assert res.error == "duration is zero"
        runner.run.assert_not_called()

    def test_generate_short(self, runner: MagicMock, settings: Settings, tmp_path: Path) -> None:
        res = ClipGenerator(runner, settings).generate_short("s1", tmp_path / "v.mp4", 10.7, 70.2)
        assert res.ok
        assert res.download_url == "/downloads/shorts/s1/clip.mp4"
        assert res.thumbnail_url == "/downloads/shorts/s1/thumb.jpg"
        assert res.duration_seconds == 60
        clip_args = runner.run.call_args_list[0].args[1]
        assert clip_args[clip_args.index("-ss") + 1] == "10"
        assert clip_args[clip_args.index("-t") + 1] == "60"
        assert clip_args[clip_args.index("-c:v") + 1] == "libx264"
        assert "+faststart" in clip_args
        thumb_args = runner.run.call_args_list[1].args[1]
        assert thumb_args[thumb_args.index("-ss") + 1] == "30"

    def test_clip_failure(self, runner: MagicMock, settings: Settings, tmp_path: Path) -> None:
        runner.run.return_value = failed("encoder missing")
        res = ClipGenerator(runner, settings).generate_short("s2", tmp_path / "v.mp4", 0, 10)
        assert not res.ok
        assert res.download_url is None
        assert "encoder missing" in (res.error or "")


# ---------------------------------------------------------------------------
# YouTubeClient
# ---------------------------------------------------------------------------


class TestYouTubeClient:
    def test_fetch_chapters(self, settings: Settings) -> None:
        settings.youtube_api_key = "yt-key"
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "snippet": {"description": "Intro video\n0:00 Intro\n1:30 Main part\n"},
                            "contentDetails": {"duration": "PT5M"},
                        }
                    ]
                },
            )

        segments = YouTubeClient(mock_http(handler), settings).fetch_chapters(
            "https://www.youtube.com/watch?v=abc"
        )
        assert [(s.title, s.start_seconds, s.end_seconds) for s in segments] == [
            ("Intro", 0, 90),
            ("Main part", 90, 300),
        ]
        assert seen[0].url.params["id"] == "abc"

    def test_no_key_makes_no_request(self, settings: Settings) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        client = YouTubeClient(mock_http(handler), settings)
        assert client.fetch_chapters("https://youtu.be/abc") == []

    @pytest.mark.parametrize("status", [403, 500])
    def test_http_error_gives_empty_list(self, settings: Settings, status: int) -> None:
        settings.youtube_api_key = "yt-key"
        client = YouTubeClient(mock_http(lambda r: httpx.Response(status, text="quota")), settings)
        assert client.fetch_chapters("https://youtu.be/abc") == []

    def test_pick_caption_prefers_manual_vtt(self, settings: Settings) -> None:
        info = YtDlpInfo(
            subtitles={"en": [{"ext": "json3", "url": "j"}, {"ext": "vtt", "url": "manual.vtt"}]},
            automatic_captions={"en": [{"ext": "vtt", "url": "auto.vtt"}]},
        )
        assert YouTubeClient(MagicMock(), settings).pick_caption_url(info) == "manual.vtt"

    def test_transcript_falls_back_to_auto_captions(self, settings: Settings) -> None:
        info = YtDlpInfo(automatic_captions={"en-US": [{"ext": "vtt", "url": "https://c/auto.vtt"}]})
        client = YouTubeClient(mock_http(lambda r: httpx.Response(200, text="WEBVTT\n")), settings)
        assert client.fetch_transcript_vtt(info) == "WEBVTT\n"

    def test_timestamped_transcript_flattens_captions(self, settings: Settings) -> None:
        vtt = (
            "WEBVTT\n\n"
            "1\n00:00:01.000 --> 00:00:03.500\n<c>Welcome</c> back\n\n"
            "2\n00:00:04.000 --> 00:00:06.000\nToday: pricing\n"
        )
        info = YtDlpInfo(subtitles={"en": [{"ext": "vtt", "url": "https://c/en.vtt"}]})
        client = YouTubeClient(mock_http(lambda r: httpx.Response(200, text=vtt)), settings)
        assert client.fetch_timestamped_transcript(info) == (
            "[00:00:01.000-00:00:03.500] Welcome back\n"
            "[00:00:04.000-00:00:06.000] Today: pricing"
        )

    def test_timestamped_transcript_without_captions(self, settings: Settings) -> None:
        client = YouTubeClient(MagicMock(), settings)
        assert client.fetch_timestamped_transcript(YtDlpInfo()) is None
