"""
Rule Sets - Line-oriented regex predicate language
==================================================

A rule set decides whether a message is a candidate for a response.
Each non-blank line of rule text is one predicate:

    r <regex>      the pattern must be found in the message
    !r <regex>     the pattern must NOT be found in the message

A message matches the rule set when every predicate holds. An empty
rule set matches everything.

Example:
    ruleset = parse_ruleset("r rust\\n!r crab")
    ruleset.matches("I love rust")   # True
    ruleset.matches("rust crab")     # False
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Pattern, Tuple

from core.exceptions import RuleParseError

NEGATION_MARKER = "!"
REGEX_KIND = "r"


class Polarity(Enum):
    """Whether a predicate's pattern is required or forbidden."""
    REQUIRE = "require"
    FORBID = "forbid"


@dataclass(frozen=True)
class Predicate:
    """
    One atomic test against a line of text.

    Attributes:
        polarity (Polarity): REQUIRE or FORBID
        pattern (str): Regular expression source
        regex (Pattern): Compiled pattern
    """
    polarity: Polarity
    pattern: str
    regex: Pattern = field(compare=False, repr=False)

    @classmethod
    def compile(cls, polarity: Polarity, pattern: str) -> "Predicate":
        """Compile a predicate. Raises re.error for a bad pattern."""
        return cls(polarity=polarity, pattern=pattern, regex=re.compile(pattern))

    def holds(self, text: str) -> bool:
        found = self.regex.search(text) is not None
        return found if self.polarity is Polarity.REQUIRE else not found

    def to_line(self) -> str:
        marker = NEGATION_MARKER if self.polarity is Polarity.FORBID else ""
        return f"{marker}{REGEX_KIND} {self.pattern}"


@dataclass(frozen=True)
class RuleSet:
    """
    A compiled conjunction of predicates.

    Immutable and side-effect free, so any number of threads may call
    matches() on the same instance without locking.
    """
    predicates: Tuple[Predicate, ...] = ()

    @classmethod
    def parse(cls, text: str) -> "RuleSet":
        return parse_ruleset(text)

    def matches(self, text: str) -> bool:
        """
        Check a message against every predicate.

        Stops at the first predicate that does not hold.

        Args:
            text: Raw message text

        Returns:
            True if all REQUIRE patterns are found and no FORBID pattern is
        """
        return all(predicate.holds(text) for predicate in self.predicates)

    def to_text(self) -> str:
        """Render canonical rule text that parses back to an equal rule set."""
        return "\n".join(predicate.to_line() for predicate in self.predicates)

    @property
    def is_empty(self) -> bool:
        return not self.predicates


def parse_ruleset(text: str) -> RuleSet:
    """
    Parse rule text into a RuleSet.

    Blank lines and leading indentation are ignored.

    Args:
        text: Rule text, one predicate per line

    Returns:
        Compiled RuleSet

    Raises:
        RuleParseError: For an unrecognized line or an invalid regex
    """
    predicates = []

    for line_no, line in enumerate(text.splitlines(), start=1):
        body = line.lstrip()
        if not body.strip():
            continue

        column = len(line) - len(body) + 1
        polarity = Polarity.REQUIRE
        if body.startswith(NEGATION_MARKER):
            polarity = Polarity.FORBID
            body = body[len(NEGATION_MARKER):]
            column += len(NEGATION_MARKER)

        kind, sep, pattern = body.partition(" ")
        if kind != REGEX_KIND or not sep:
            raise RuleParseError(
                f"Unrecognized predicate {body!r}, expected '{REGEX_KIND} <pattern>'",
                line=line_no,
                column=column,
            )

        column += len(kind) + len(sep)
        if not pattern:
            raise RuleParseError("Empty pattern", line=line_no, column=column)

        try:
            predicates.append(Predicate.compile(polarity, pattern))
        except re.error as e:
            raise RuleParseError(
                f"Invalid regular expression {pattern!r}: {e.msg}",
                line=line_no,
                column=column + (e.pos or 0),
                details={"pattern": pattern},
            ) from e
        except OverflowError as e:
            # Repeat counts beyond the regex engine limit
            raise RuleParseError(
                f"Invalid regular expression {pattern!r}: {e}",
                line=line_no,
                column=column,
                details={"pattern": pattern},
            ) from e

    return RuleSet(predicates=tuple(predicates))
