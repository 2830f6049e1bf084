"""Status transition rules for loan applications"""

from typing import Dict, FrozenSet, List

from loan_origination.domain.exceptions import IllegalTransition
from loan_origination.domain.models import ActorType, ApplicationStatus

S = ApplicationStatus

TERMINAL_STATUSES: FrozenSet[ApplicationStatus] = frozenset({S.REJECTED, S.CANCELLED, S.SYNCED})

# APPROVED leaves through the external sync, or is cancelled before disbursement
TRANSITIONS: Dict[ApplicationStatus, FrozenSet[ApplicationStatus]] = {
    S.DRAFT: frozenset({S.SUBMITTED, S.CANCELLED}),
    S.SUBMITTED: frozenset({S.IN_REVIEW, S.DOCS_PENDING, S.CANCELLED}),
    S.IN_REVIEW: frozenset({S.APPROVED, S.REJECTED, S.DOCS_PENDING, S.CORRECTIONS_PENDING, S.CANCELLED}),
    S.DOCS_PENDING: frozenset({S.IN_REVIEW, S.CANCELLED}),
    S.CORRECTIONS_PENDING: frozenset({S.IN_REVIEW, S.CANCELLED}),
    S.APPROVED: frozenset({S.SYNCED, S.CANCELLED}),
    S.REJECTED: frozenset(),
    S.CANCELLED: frozenset(),
    S.SYNCED: frozenset(),
}

_APPLICANT = ActorType.APPLICANT
_STAFF = ActorType.STAFF
_SYSTEM = ActorType.SYSTEM

# Roles allowed to request a specific (from, to) pair; anything else falls back to _DEFAULT_ROLES
_PAIR_ROLES: Dict[tuple, FrozenSet[ActorType]] = {
    (S.CORRECTIONS_PENDING, S.IN_REVIEW): frozenset({_SYSTEM, _STAFF}),
    (S.IN_REVIEW, S.APPROVED): frozenset({_STAFF, _SYSTEM}),
}

_TARGET_ROLES: Dict[ApplicationStatus, FrozenSet[ActorType]] = {
    S.SUBMITTED: frozenset({_APPLICANT}),
    S.CANCELLED: frozenset({_APPLICANT, _STAFF}),
    S.SYNCED: frozenset({_SYSTEM}),
}

_DEFAULT_ROLES: FrozenSet[ActorType] = frozenset({_STAFF})


def is_transition_allowed(current: ApplicationStatus, requested: ApplicationStatus) -> bool:
    """Pure table lookup, independent of who asks"""
    return requested in TRANSITIONS.get(current, frozenset())


def roles_for(current: ApplicationStatus, requested: ApplicationStatus) -> FrozenSet[ActorType]:
    pair = (current, requested)
    if pair in _PAIR_ROLES:
        return _PAIR_ROLES[pair]
    return _TARGET_ROLES.get(requested, _DEFAULT_ROLES)


def validate_transition(
    current: ApplicationStatus,
    requested: ApplicationStatus,
    role: ActorType,
) -> None:
    """
    Gate a status change.

    Raises:
        IllegalTransition: pair not in the table, or role may not request it
    """
    if not is_transition_allowed(current, requested):
        raise IllegalTransition(current.value, requested.value)
    if role not in roles_for(current, requested):
        raise IllegalTransition(current.value, requested.value, role=role.value)


def allowed_next_statuses(current: ApplicationStatus, role: ActorType) -> List[ApplicationStatus]:
    """Statuses the given role may move an application to, in declaration order"""
    return [
        status
        for status in ApplicationStatus
        if is_transition_allowed(current, status) and role in roles_for(current, status)
    ]


def is_terminal(status: ApplicationStatus) -> bool:
    return status in TERMINAL_STATUSES


def is_editable(status: ApplicationStatus) -> bool:
    """Loan terms and purpose may change only while drafting"""
    return status == S.DRAFT


def is_reference_appendable(status: ApplicationStatus) -> bool:
    """Supporting references may still be attached"""
    return status in {S.DRAFT, S.SUBMITTED}


def is_active(status: ApplicationStatus) -> bool:
    """Submitted and not yet decided"""
    return status in {S.SUBMITTED, S.IN_REVIEW, S.DOCS_PENDING, S.CORRECTIONS_PENDING}
