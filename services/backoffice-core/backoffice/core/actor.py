"""
Acting staff member and role capabilities

Callers pass an Actor into every core operation. Services ask the actor what it
may do instead of comparing role strings.
"""
from dataclasses import dataclass
from typing import FrozenSet, Optional
import enum

from backoffice.models.lead import LeadStage, CLOSING_STAGES
from backoffice.models.staff import StaffRole


class Capability(str, enum.Enum):
    CLOSE_LEADS = "close_leads"            # set Ganado / Perdido
    DELETE_RECORDS = "delete_records"
    VIEW_ALL_LEADS = "view_all_leads"
    VIEW_TEAM_LEADS = "view_team_leads"
    MANAGE_RECRUITING = "manage_recruiting"
    MANAGE_STAFF = "manage_staff"


ROLE_CAPABILITIES = {
    StaffRole.ADMIN: frozenset(Capability),
    StaffRole.SUPERVISOR: frozenset({
        Capability.CLOSE_LEADS,
        Capability.VIEW_TEAM_LEADS,
        Capability.MANAGE_RECRUITING,
    }),
    StaffRole.BROKER: frozenset(),
}


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: StaffRole

    @classmethod
    def from_staff(cls, staff) -> "Actor":
        return cls(id=staff.id, name=staff.name, role=StaffRole(staff.role))

    @property
    def capabilities(self) -> FrozenSet[Capability]:
        return ROLE_CAPABILITIES.get(self.role, frozenset())

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities

    def can_transition_to(self, stage: Optional[LeadStage]) -> bool:
        if stage is None:
            return True
        if LeadStage(stage) in CLOSING_STAGES:
            return self.has(Capability.CLOSE_LEADS)
        return True

    def can_delete(self) -> bool:
        return self.has(Capability.DELETE_RECORDS)

    def can_manage_recruiting(self) -> bool:
        return self.has(Capability.MANAGE_RECRUITING)

    def can_manage_staff(self) -> bool:
        return self.has(Capability.MANAGE_STAFF)
