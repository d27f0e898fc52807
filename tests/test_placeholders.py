from __future__ import annotations

import allure
import pytest

from pipe_while_read.engine.models import Record
from pipe_while_read.engine.placeholders import PlaceholderExpander, build_rules

pytestmark = [
    allure.epic("Job Expansion"),
    allure.feature("Placeholders"),
]


def _expand(template: str, value: str, **kwargs) -> str:
    expander = PlaceholderExpander(**kwargs)
    return expander.expand(template, value=value, job_number=7, job_slot=2)


def test_rule_order_puts_full_record_last() -> None:
    names = [rule.name for rule in build_rules()]

    assert names == [
        "job_number",
        "job_slot",
        "length",
        "extension",
        "basename_no_extension",
        "dirname",
        "basename",
        "no_extension",
        "field",
        "field_from_end",
        "record",
    ]


@pytest.mark.parametrize(
    ("template", "expected"),
    [
        ("{}", "dir/sub/file.tar.gz"),
        ("{.}", "dir/sub/file.tar"),
        ("{/}", "file.tar.gz"),
        ("{//}", "dir/sub"),
        ("{/.}", "file.tar"),
        ("{ext}", "gz"),
        ("{len}", "19"),
        ("{#}", "7"),
        ("{%}", "2"),
    ],
)
def test_path_and_job_tokens(template: str, expected: str) -> None:
    assert _expand(template, "dir/sub/file.tar.gz") == expected


def test_path_tokens_without_slash_or_dot() -> None:
    assert _expand("{//}|{/}|{.}|{/.}|{ext}", "plain") == ".|plain|plain|plain|"


def test_full_record_token_is_resolved_after_extension() -> None:
    assert _expand("{ext}-{}", "a.txt") == "txt-a.txt"


def test_substituted_text_is_not_expanded_again() -> None:
    assert _expand("{{#}}", "x\ty\tz") == "{7}"
    assert _expand("{}", "{ext}") == "{ext}"


def test_field_extraction_by_position() -> None:
    assert _expand("{1}:{2}", "alice\t100") == "alice:100"
    assert _expand("[{3}]", "alice\t100") == "[]"
    assert _expand("{-1}", "alice\t100") == "100"
    assert _expand("[{-3}]", "alice\t100") == "[]"


def test_consecutive_delimiters_are_not_merged() -> None:
    assert _expand("{2}|{3}", "a,,c", delimiter=",") == "|c"


def test_empty_delimiter_makes_whole_record_field_one() -> None:
    assert _expand("{1}|{2}|{-1}", "a b", delimiter="") == "a b||a b"


def test_custom_replace_token() -> None:
    assert _expand("got:%%", "line", replace_token="%%") == "got:line"
    assert _expand("{}", "line", replace_token="%%") == "{}"


def test_build_argv_appends_record_without_placeholder() -> None:
    expander = PlaceholderExpander()
    template = expander.compile(["echo", "File:"])

    argv = expander.build_argv(template, Record(number=1, raw="a b.txt"), job_slot=1)

    assert template.has_placeholder is False
    assert argv == ["echo", "File:", "a b.txt"]


def test_build_argv_appends_trimmed_record() -> None:
    expander = PlaceholderExpander(trim=True)
    template = expander.compile(["echo"])

    assert expander.build_argv(template, Record(number=1, raw="  x \t"), job_slot=1) == [
        "echo",
        "x",
    ]


def test_build_argv_does_not_append_when_feeding_stdin() -> None:
    expander = PlaceholderExpander(pass_stdin=True)
    template = expander.compile(["wc", "-c"])

    assert expander.build_argv(template, Record(number=1, raw="abc"), job_slot=1) == ["wc", "-c"]


def test_placeholder_anywhere_in_template_disables_append() -> None:
    expander = PlaceholderExpander()
    template = expander.compile(["mv", "{}", "{/.}.jpg"])

    argv = expander.build_argv(template, Record(number=3, raw="img/cat.jpeg"), job_slot=1)

    assert template.has_placeholder is True
    assert argv == ["mv", "img/cat.jpeg", "cat.jpg"]


def test_custom_replace_token_counts_as_placeholder() -> None:
    expander = PlaceholderExpander(replace_token="XX")

    assert expander.compile(["echo", "XX"]).has_placeholder is True
    assert expander.compile(["echo", "{}"]).has_placeholder is False


def test_unrecognised_braces_are_left_alone() -> None:
    assert _expand("{0} {foo} {-0}", "r") == "{0} {foo} {-0}"


def test_empty_replace_token_is_rejected() -> None:
    with pytest.raises(ValueError, match="must not be empty"):
        build_rules("")


def test_compile_requires_a_command() -> None:
    with pytest.raises(ValueError, match="at least the command name"):
        PlaceholderExpander().compile([])
