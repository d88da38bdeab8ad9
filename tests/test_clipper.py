import pytest

from clipcraft.clipper import ClipExtractor
from clipcraft.errors import FilesystemError, NotFoundError, OutputMissingError, ProcessError, ValidationError

from conftest import FakeRunner, exits_with, output_arg, writes_output


def touch(library, name, size=10):
    (library.root / name).write_bytes(b"\0" * size)


def test_selects_latest_download_never_a_previous_clip(library):
    touch(library, "video_1000.mp4")
    touch(library, "clip_999.mp4")
    touch(library, "video_0999.mp4")
    runner = FakeRunner(writes_output(size=4096))
    clip = ClipExtractor(runner, library).extract(10, 40)

    executable, args = runner.calls[0]
    assert executable == "ffmpeg"
    assert args[args.index("-i") + 1].endswith("video_1000.mp4")
    assert args[args.index("-ss") + 1] == "10"
    assert args[args.index("-t") + 1] == "30"
    assert args[args.index("-c") + 1] == "copy"
    assert clip.filename.startswith("clip_") and clip.filename.endswith(".mp4")
    assert clip.size_bytes == 4096
    assert (library.root / clip.filename).exists()


def test_fractional_times_are_passed_through(library):
    touch(library, "video_1.mp4")
    runner = FakeRunner(writes_output())
    ClipExtractor(runner, library).extract(1.25, 3.5)
    _, args = runner.calls[0]
    assert args[args.index("-ss") + 1] == "1.25"
    assert args[args.index("-t") + 1] == "2.25"


def test_only_clips_present_is_not_found(library):
    touch(library, "clip_1.mp4")
    touch(library, "clip_2.mp4")
    runner = FakeRunner(writes_output())
    with pytest.raises(NotFoundError):
        ClipExtractor(runner, library).extract(10, 40)
    assert runner.calls == []


def test_empty_directory_is_not_found(library):
    with pytest.raises(NotFoundError):
        ClipExtractor(FakeRunner(), library).extract(0, 1)


@pytest.mark.parametrize(
    "start,end",
    [(5, 5), (10, 2), (-1, 4), ("1", 4), (0, None), (True, 3), (0, float("inf"))],
)
def test_invalid_range_fails_before_any_subprocess(library, start, end):
    touch(library, "video_1.mp4")
    runner = FakeRunner(writes_output())
    with pytest.raises(ValidationError):
        ClipExtractor(runner, library).extract(start, end)
    assert runner.calls == []


def test_tool_failure_carries_exit_code_and_diagnostics(library):
    touch(library, "video_1.mp4")
    runner = FakeRunner(exits_with(1, "video_1.mp4: Invalid data found when processing input"))
    with pytest.raises(ProcessError) as exc:
        ClipExtractor(runner, library).extract(0, 5)
    assert exc.value.exit_code == 1
    assert "Invalid data found" in exc.value.details


def test_success_without_output_file(library):
    touch(library, "video_1.mp4")
    with pytest.raises(OutputMissingError) as exc:
        ClipExtractor(FakeRunner(), library).extract(0, 5)
    assert isinstance(exc.value, NotFoundError)
    assert isinstance(exc.value, FilesystemError)


def test_merge_audio_strategy_uses_matching_audio_track(library):
    touch(library, "video_2000.mp4")
    touch(library, "video_2000.m4a")
    touch(library, "video_1000.m4a")
    runner = FakeRunner(writes_output())
    ClipExtractor(runner, library, strategy="merge_audio").extract(2, 6)
    _, args = runner.calls[0]
    inputs = [args[i + 1] for i, a in enumerate(args) if a == "-i"]
    assert inputs[0].endswith("video_2000.mp4")
    assert inputs[1].endswith("video_2000.m4a")
    assert args[args.index("-c:a") + 1] == "aac"
    assert "-shortest" in args
    assert output_arg(args).endswith(".mp4")


def test_merge_audio_strategy_falls_back_to_stream_copy(library):
    touch(library, "video_2000.mp4")
    touch(library, "video_1000.m4a")
    runner = FakeRunner(writes_output())
    ClipExtractor(runner, library, strategy="merge_audio").extract(2, 6)
    _, args = runner.calls[0]
    assert args.count("-i") == 1
    assert args[args.index("-c") + 1] == "copy"


def test_unknown_strategy_is_rejected(library):
    with pytest.raises(ValueError):
        ClipExtractor(FakeRunner(), library, strategy="reencode")


def test_consecutive_clips_get_distinct_names(library):
    touch(library, "video_1.mp4")
    extractor = ClipExtractor(FakeRunner(writes_output()), library)
    first = extractor.extract(0, 1)
    second = extractor.extract(1, 2)
    assert first.filename != second.filename
    # clips never become a source for the next clip
    assert library.latest_source().name == "video_1.mp4"
