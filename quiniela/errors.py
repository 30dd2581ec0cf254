"""
Exceptions raised by the standings and bracket engine.

Ambiguous outcomes (unbreakable ties, cutoff ties, pending placeholders) are
never raised; they are reported through ``needs_manual`` flags.
"""


class EngineError(Exception):
    """Base class for engine errors."""


class InvalidInput(EngineError, ValueError):
    """Inputs are inconsistent; nothing was changed."""


class ManualOverrideRejected(InvalidInput):
    """An administrator submission falls outside the legal candidates."""


class GroupStageIncomplete(InvalidInput):
    """The group stage cannot be closed while groups are still being played."""

    def __init__(self, incomplete):
        self.incomplete = incomplete
        summary = ", ".join(
            f"{g['group_code']}({g['confirmed_matches']}/{g['expected_matches']})"
            for g in incomplete
        )
        super().__init__(f"Cannot close group stage: incomplete groups: {summary}")


class SeasonNotFound(EngineError, LookupError):
    def __init__(self, season_id):
        self.season_id = season_id
        super().__init__(f"Season not found: {season_id}")
