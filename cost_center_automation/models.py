"""
Typed values decoded from loosely-shaped GitHub API fields.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class AssigningTeamKind(Enum):
    ABSENT = "absent"
    TEAM = "team"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AssigningTeam:
    """The ``assigning_team`` of a Copilot seat.

    The API sends either null (seat assigned directly), a team object, or
    occasionally something else; each case gets its own kind so callers cannot
    treat an unrecognized payload as a team.
    """

    kind: AssigningTeamKind
    name: Optional[str] = None
    slug: Optional[str] = None
    raw: Any = None

    @classmethod
    def from_json(cls, value: Any) -> "AssigningTeam":
        if value is None:
            return cls(AssigningTeamKind.ABSENT)
        if isinstance(value, dict) and value.get("name"):
            return cls(AssigningTeamKind.TEAM, name=value["name"], slug=value.get("slug"), raw=value)
        return cls(AssigningTeamKind.UNKNOWN, raw=value)

    @property
    def is_team(self) -> bool:
        return self.kind is AssigningTeamKind.TEAM

    def __str__(self) -> str:
        if self.kind is AssigningTeamKind.TEAM:
            return self.name
        if self.kind is AssigningTeamKind.ABSENT:
            return "-"
        return f"unknown({self.raw!r})"
