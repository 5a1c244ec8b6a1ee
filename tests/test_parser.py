from symbolicate.parser import (
    FrameLine,
    collect_library_names,
    match_line,
    split_log_text,
)
from symbolicate.rewriter import frame_prefix, rewrite_line


SAMPLE = "12  MyLib   0x1000   0x0000   + 48"


def test_match_line_extracts_fields_and_whitespace() -> None:
    frame = match_line(SAMPLE)

    assert frame == FrameLine(
        index="12",
        ws1="  ",
        library="MyLib",
        ws2="   ",
        call_address="0x1000",
        ws3="   ",
        load_address="0x0000",
        ws4="   ",
        offset="+ 48",
        eol="",
    )
    assert frame.raw_line == SAMPLE


def test_match_line_keeps_tabs_and_mixed_case_hex() -> None:
    line = "3\tUIKitCore\t0x00000001A2b3C4d5\t0x0000000180000000\t+\t123456"

    frame = match_line(line)

    assert frame is not None
    assert frame.library == "UIKitCore"
    assert frame.call_address == "0x00000001A2b3C4d5"
    assert frame.ws4 == "\t"
    assert frame.offset == "+\t123456"
    assert frame.raw_line == line


def test_match_line_tolerates_crlf_end_marker() -> None:
    frame = match_line(SAMPLE + "\r")

    assert frame is not None
    assert frame.eol == "\r"
    assert frame.raw_line == SAMPLE + "\r"


def test_match_line_rejects_other_shapes() -> None:
    rejected = [
        "",
        "Thread 0 Crashed:",
        "  12  MyLib   0x1000   0x0000   + 48",  # leading whitespace
        "12  MyLib   0x1000   0x0000   + 48 trailing",
        "12  MyLib   0x1000   0x0000   + 48 ",  # trailing whitespace
        "12  MyLib   0x1000   0x0000",
        "12  MyLib   1000   0x0000   + 48",
        "12  MyLib   0x1000   0x0000   - 48",
        "12  MyLib   0x1000   0x0000   +48",
        "12  MyLib   0xZZ   0x0000   + 48",
        "ab  MyLib   0x1000   0x0000   + 48",
        "12  MyLib   0X1000   0x0000   + 48",
    ]

    for line in rejected:
        assert match_line(line) is None, line


def test_rewrite_line_replaces_offset_with_symbol() -> None:
    frame = match_line(SAMPLE)

    assert rewrite_line(frame, "-[MyLib foo]") == "12  MyLib   0x1000   0x0000   -[MyLib foo]"


def test_rewrite_line_keeps_alignment_and_crlf() -> None:
    frame = match_line("7\tMyLib\t0x10\t0x0\t+ 16\r")

    assert frame_prefix(frame) == "7\tMyLib\t0x10\t0x0\t"
    assert rewrite_line(frame, "main (main.m:10)") == "7\tMyLib\t0x10\t0x0\tmain (main.m:10)\r"


def test_split_log_text_is_lossless() -> None:
    text = "header\n\n12  MyLib   0x1000   0x0000   + 48\r\nfooter\n"

    lines = split_log_text(text)

    assert lines == ["header", "", "12  MyLib   0x1000   0x0000   + 48\r", "footer", ""]
    assert "\n".join(lines) == text


def test_collect_library_names_in_first_seen_order() -> None:
    lines = [
        "Thread 0:",
        "0   Foo   0x10   0x0   + 16",
        "1   Bar   0x20   0x0   + 32",
        "2   Foo   0x30   0x0   + 48",
    ]

    assert collect_library_names(lines) == ["Foo", "Bar"]
