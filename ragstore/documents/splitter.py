"""
Splits oversized documents into token-bounded parts on line boundaries.
"""

from typing import List

from ..core.tokens import TokenCounter

DEFAULT_TOKENS_PER_PART = 1000


def part_key(name: str, index: int) -> str:
    """Key of the index-th part of document name (zero-based)."""
    return f"{name} part {index}"


class DocumentSplitter:
    """Greedy line accumulator.

    Lines are moved into the current part one at a time; the part closes as
    soon as its token count reaches ``tokens_per_part``. A part always holds
    at least one line, so a single line over the threshold becomes its own
    part rather than being cut.
    """

    def __init__(self, token_counter: TokenCounter, tokens_per_part: int = DEFAULT_TOKENS_PER_PART):
        if tokens_per_part <= 0:
            raise ValueError("tokens_per_part must be positive")
        self.token_counter = token_counter
        self.tokens_per_part = tokens_per_part

    def split(self, content: str, line_delimiter: str = "\n") -> List[str]:
        """
        Split content into parts. Joining the parts with line_delimiter
        reproduces content exactly.
        """
        if content is None:
            raise ValueError("Content cannot be None")
        if not line_delimiter:
            raise ValueError("Line delimiter cannot be empty")

        lines = content.split(line_delimiter)
        parts = []
        position = 0

        while position < len(lines):
            part_lines = [lines[position]]
            position += 1
            while (
                position < len(lines)
                and self.token_counter.count_tokens(line_delimiter.join(part_lines)) < self.tokens_per_part
            ):
                part_lines.append(lines[position])
                position += 1

            parts.append(line_delimiter.join(part_lines))

        return parts
