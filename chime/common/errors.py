"""Exception types shared across Chime components."""


class ChimeError(Exception):
    """Base class for Chime errors"""


class RuleValidationError(ChimeError):
    """A rule definition from external configuration is malformed"""

    def __init__(self, rule_id: str, reason: str):
        self.rule_id = rule_id
        self.reason = reason
        super().__init__(f"Invalid rule {rule_id!r}: {reason}")


class GenerationError(ChimeError):
    """The generation collaborator failed to produce text"""
