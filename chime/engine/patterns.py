"""
Pattern Cache

Compiles rule regex strings lazily and keeps them for reuse across
evaluations. Rules can come from external configuration, so an invalid
pattern is remembered, logged once, and skipped rather than raised.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Pattern

logger = logging.getLogger("chime.engine.patterns")


class PatternCache:
    """
    Cache of compiled, case-insensitive rule patterns.

    Keyed by the raw pattern string; ``None`` marks a pattern that failed to
    compile.
    """

    def __init__(self):
        self._compiled: Dict[str, Optional[Pattern]] = {}

    @property
    def size(self) -> int:
        """Number of distinct pattern strings seen"""
        return len(self._compiled)

    @property
    def invalid_patterns(self) -> List[str]:
        return [p for p, compiled in self._compiled.items() if compiled is None]

    def get(self, pattern: str) -> Optional[Pattern]:
        """Compiled pattern, or None if it does not compile"""
        if pattern in self._compiled:
            return self._compiled[pattern]

        try:
            compiled = re.compile(pattern, re.IGNORECASE)
        except re.error as e:
            logger.error("Invalid regex pattern %r: %s", pattern, e)
            compiled = None

        self._compiled[pattern] = compiled
        return compiled

    def count_hits(
        self,
        content: str,
        patterns: Optional[Iterable[str]] = None,
        keywords: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Count how many patterns and keywords hit one message.

        Unlike the detectors this counts every hit, so a message matching
        two patterns and a keyword scores 3.
        """
        hits = 0
        lowered = content.lower()

        for pattern in patterns or []:
            compiled = self.get(pattern)
            if compiled is not None and compiled.search(content):
                hits += 1

        for keyword in keywords or []:
            if keyword and keyword.lower() in lowered:
                hits += 1

        return hits

    def clear(self) -> None:
        self._compiled = {}
