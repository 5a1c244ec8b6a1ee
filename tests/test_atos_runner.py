import stat
import threading
import time
from pathlib import Path

import pytest

from symbolicate.atos_runner import (
    AtosError,
    AtosRunner,
    SymbolicationRequest,
    build_atos_command,
)
from symbolicate.cancellation import CancellationToken, SymbolicationCancelled


REQUEST = SymbolicationRequest(
    arch="arm64",
    binary=Path("/tmp/MyLib.dSYM/Contents/Resources/DWARF/MyLib"),
    load_address="0x0000",
    call_address="0x1000",
)


def _fake_atos(tmp_path: Path, body: str) -> str:
    script = tmp_path / "atos"
    script.write_text("#!/bin/sh\n" + body + "\n")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return str(script)


def test_build_atos_command() -> None:
    assert build_atos_command("/usr/bin/atos", REQUEST) == [
        "/usr/bin/atos",
        "-arch",
        "arm64",
        "-o",
        "/tmp/MyLib.dSYM/Contents/Resources/DWARF/MyLib",
        "-l",
        "0x0000",
        "0x1000",
    ]


def test_symbolicate_returns_trimmed_stdout(tmp_path: Path) -> None:
    atos = _fake_atos(tmp_path, 'printf "  -[MyLib foo] (in MyLib) (MyLib.m:12)\\n\\n"')

    symbol = AtosRunner(executable=atos).symbolicate(REQUEST)

    assert symbol == "-[MyLib foo] (in MyLib) (MyLib.m:12)"


def test_symbolicate_passes_request_arguments(tmp_path: Path) -> None:
    atos = _fake_atos(tmp_path, 'echo "$@"')

    symbol = AtosRunner(executable=atos).symbolicate(REQUEST)

    assert symbol == "-arch arm64 -o /tmp/MyLib.dSYM/Contents/Resources/DWARF/MyLib -l 0x0000 0x1000"


def test_symbolicate_whitespace_output_is_no_result(tmp_path: Path) -> None:
    atos = _fake_atos(tmp_path, 'printf "   \\n\\t\\n"')

    assert AtosRunner(executable=atos).symbolicate(REQUEST) is None


def test_symbolicate_non_zero_exit_raises(tmp_path: Path) -> None:
    atos = _fake_atos(tmp_path, 'echo "atos cannot load symbols" >&2\nexit 3')

    with pytest.raises(AtosError) as excinfo:
        AtosRunner(executable=atos).symbolicate(REQUEST)

    assert excinfo.value.returncode == 3
    assert excinfo.value.exit_status == 3
    assert excinfo.value.stderr == "atos cannot load symbols"


def test_atos_error_maps_signal_deaths() -> None:
    assert AtosError(-9).exit_status == 137


def test_symbolicate_missing_executable_raises_oserror(tmp_path: Path) -> None:
    with pytest.raises(OSError):
        AtosRunner(executable=str(tmp_path / "missing-atos")).symbolicate(REQUEST)


def test_symbolicate_already_cancelled_does_not_start_atos(tmp_path: Path) -> None:
    marker = tmp_path / "started"
    atos = _fake_atos(tmp_path, f'touch "{marker}"\necho sym')
    token = CancellationToken()
    token.cancel()

    with pytest.raises(SymbolicationCancelled):
        AtosRunner(executable=atos, token=token).symbolicate(REQUEST)

    assert not marker.exists()


def test_symbolicate_cancel_stops_running_atos(tmp_path: Path) -> None:
    atos = _fake_atos(tmp_path, "exec sleep 30")
    token = CancellationToken()
    runner = AtosRunner(executable=atos, token=token, poll_interval=0.05)

    timer = threading.Timer(0.3, token.cancel)
    timer.start()
    started = time.monotonic()
    try:
        with pytest.raises(SymbolicationCancelled):
            runner.symbolicate(REQUEST)
    finally:
        timer.cancel()

    assert time.monotonic() - started < 10
