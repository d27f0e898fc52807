"""Placeholder expansion for command templates.

Tokens are resolved from a fixed, ordered rule table. All rules are compiled
into one alternation in priority order and applied in a single scan, so the
text substituted for one token is never matched again by a later rule. The
full-record token comes last because it is the most general spelling.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from pipe_while_read.engine.models import CommandTemplate, Record

DEFAULT_REPLACE_TOKEN = "{}"
DEFAULT_DELIMITER = "\t"


@dataclass(frozen=True, slots=True)
class ExpansionContext:
    """Values a single template argument is expanded against."""

    value: str
    delimiter: str
    job_number: int
    job_slot: int

    @property
    def fields(self) -> list[str]:
        if not self.delimiter:
            return [self.value]
        return self.value.split(self.delimiter)

    @property
    def basename(self) -> str:
        return self.value.rsplit("/", 1)[-1]


Resolver = Callable[[re.Match[str], ExpansionContext], str]


@dataclass(frozen=True, slots=True)
class PlaceholderRule:
    """One token matcher and the function that resolves it."""

    name: str
    pattern: str
    resolve: Resolver


def _dirname(value: str) -> str:
    if "/" not in value:
        return "."
    return value.rsplit("/", 1)[0]


def _strip_extension(value: str) -> str:
    if "." not in value:
        return value
    return value.rsplit(".", 1)[0]


def _extension(basename: str) -> str:
    if "." not in basename:
        return ""
    return basename.rsplit(".", 1)[1]


def _field(match: re.Match[str], context: ExpansionContext) -> str:
    index = int(match.group("field_index"))
    fields = context.fields
    if index > len(fields):
        return ""
    return fields[index - 1]


def _field_from_end(match: re.Match[str], context: ExpansionContext) -> str:
    index = int(match.group("field_from_end_index"))
    fields = context.fields
    if index > len(fields):
        return ""
    return fields[len(fields) - index]


def build_rules(replace_token: str = DEFAULT_REPLACE_TOKEN) -> tuple[PlaceholderRule, ...]:
    """Return the placeholder rules in resolution priority order."""

    if not replace_token:
        raise ValueError("Full-record placeholder must not be empty.")

    return (
        PlaceholderRule("job_number", r"\{\#\}", lambda _m, ctx: str(ctx.job_number)),
        PlaceholderRule("job_slot", r"\{%\}", lambda _m, ctx: str(ctx.job_slot)),
        PlaceholderRule("length", r"\{len\}", lambda _m, ctx: str(len(ctx.value))),
        PlaceholderRule("extension", r"\{ext\}", lambda _m, ctx: _extension(ctx.basename)),
        PlaceholderRule(
            "basename_no_extension",
            r"\{/\.\}",
            lambda _m, ctx: _strip_extension(ctx.basename),
        ),
        PlaceholderRule("dirname", r"\{//\}", lambda _m, ctx: _dirname(ctx.value)),
        PlaceholderRule("basename", r"\{/\}", lambda _m, ctx: ctx.basename),
        PlaceholderRule("no_extension", r"\{\.\}", lambda _m, ctx: _strip_extension(ctx.value)),
        PlaceholderRule("field", r"\{(?P<field_index>[1-9][0-9]*)\}", _field),
        PlaceholderRule(
            "field_from_end",
            r"\{-(?P<field_from_end_index>[1-9][0-9]*)\}",
            _field_from_end,
        ),
        PlaceholderRule("record", re.escape(replace_token), lambda _m, ctx: ctx.value),
    )


class PlaceholderExpander:
    """Expand template arguments for one record at a time."""

    def __init__(
        self,
        *,
        replace_token: str = DEFAULT_REPLACE_TOKEN,
        delimiter: str = DEFAULT_DELIMITER,
        trim: bool = False,
        pass_stdin: bool = False,
    ) -> None:
        self.rules = build_rules(replace_token)
        self.delimiter = delimiter
        self.trim = trim
        self.pass_stdin = pass_stdin
        self._rules_by_name = {rule.name: rule for rule in self.rules}
        self._pattern = re.compile(
            "|".join(f"(?P<{rule.name}>{rule.pattern})" for rule in self.rules),
        )

    def has_placeholder(self, argument: str) -> bool:
        return self._pattern.search(argument) is not None

    def compile(self, arguments: Sequence[str]) -> CommandTemplate:
        """Freeze the command line and note whether any token appears in it."""

        if not arguments:
            raise ValueError("Command template must contain at least the command name.")
        return CommandTemplate(
            arguments=tuple(arguments),
            has_placeholder=any(self.has_placeholder(argument) for argument in arguments),
        )

    def expand(self, argument: str, *, value: str, job_number: int, job_slot: int) -> str:
        """Expand every token in one argument."""

        context = ExpansionContext(
            value=value,
            delimiter=self.delimiter,
            job_number=job_number,
            job_slot=job_slot,
        )

        def _substitute(match: re.Match[str]) -> str:
            rule = self._rules_by_name[match.lastgroup or ""]
            return rule.resolve(match, context)

        return self._pattern.sub(_substitute, argument)

    def build_argv(self, template: CommandTemplate, record: Record, *, job_slot: int) -> list[str]:
        """Expand the whole template for a record.

        Without any placeholder the record is appended as the final argument,
        unless it is fed to the child's stdin instead.
        """

        value = record.value(self.trim)
        argv = [
            self.expand(argument, value=value, job_number=record.number, job_slot=job_slot)
            for argument in template.arguments
        ]
        if not template.has_placeholder and not self.pass_stdin:
            argv.append(value)
        return argv
