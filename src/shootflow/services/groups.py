"""Derived views over requests that share a group id."""

from dataclasses import dataclass

from shootflow.domain.requests import ShootRequest, ShootStatus
from shootflow.services.store import ShootRequestStore


@dataclass(frozen=True)
class RequestGroup:
    """Read-only join of sibling requests; a request without a group id is a
    group of one."""

    group_id: str | None
    members: tuple[ShootRequest, ...]

    @property
    def size(self) -> int:
        return len(self.members)

    @property
    def lead(self) -> ShootRequest:
        """Lowest-index member, used for naming the conversation."""
        return self.members[0]

    @property
    def thread_id(self) -> str | None:
        for member in self.members:
            if member.email_thread_id:
                return member.email_thread_id
        return None

    @property
    def statuses(self) -> set[ShootStatus]:
        return {member.status for member in self.members}

    @property
    def is_uniform(self) -> bool:
        """Return true when every member is in the same status."""
        return len(self.statuses) <= 1

    def quoted_total(self) -> float:
        return sum(
            member.vendor_quote.amount
            for member in self.members
            if member.vendor_quote is not None
        )

    def active_members(self) -> list[ShootRequest]:
        return [member for member in self.members if not member.status.is_terminal]


@dataclass
class RequestGroupResolver:
    """Resolves group membership from the request store."""

    store: ShootRequestStore

    def group_for(self, request_id: str) -> RequestGroup:
        """Return the group a request belongs to."""
        request = self.store.require(request_id)
        if request.group_id is None:
            return RequestGroup(group_id=None, members=(request,))
        members = [
            self.store.require(member_id)
            for member_id in self.store.group_member_ids(request.group_id)
        ]
        members.sort(key=_group_order)
        return RequestGroup(group_id=request.group_id, members=tuple(members))

    def siblings(self, request_id: str) -> list[ShootRequest]:
        """Return the other members of a request's group."""
        group = self.group_for(request_id)
        return [member for member in group.members if member.id != request_id]

    def thread_id_for(self, request_id: str) -> str | None:
        """Return the request's own thread id, else any sibling's."""
        request = self.store.require(request_id)
        if request.email_thread_id:
            return request.email_thread_id
        return self.group_for(request_id).thread_id

    def thread_subject(self, request_id: str) -> str:
        """Return the name shared by every message of the group's thread."""
        return self.group_for(request_id).lead.name


def _group_order(request: ShootRequest) -> tuple[int, str]:
    index = request.group_index if request.group_index is not None else 0
    return index, request.id
