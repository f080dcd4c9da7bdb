"""
Appointment lifecycle

Every status change (doctor actions, patient cancellation, payment
confirmation, webhooks, admin overrides) is checked against these tables.
"""

from ...models import AppointmentStatus, UserRole

TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.AWAITING_ACCEPTANCE: frozenset(
        {
            AppointmentStatus.REJECTED,
            AppointmentStatus.PAYMENT_PENDING,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.PAYMENT_PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED}
    ),
    AppointmentStatus.REJECTED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}

# Targets each role may request directly. CONFIRMED is reached through payment.
ROLE_ALLOWED_TARGETS: dict[UserRole, frozenset[AppointmentStatus]] = {
    UserRole.PATIENT: frozenset({AppointmentStatus.CANCELLED}),
    UserRole.DOCTOR: frozenset(
        {
            AppointmentStatus.REJECTED,
            AppointmentStatus.PAYMENT_PENDING,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        }
    ),
    UserRole.ADMIN: frozenset(AppointmentStatus),
}

ACTIVE_STATUSES = frozenset(
    {
        AppointmentStatus.AWAITING_ACCEPTANCE,
        AppointmentStatus.PAYMENT_PENDING,
        AppointmentStatus.CONFIRMED,
    }
)

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


class InvalidTransitionError(Exception):
    """The lifecycle does not allow moving between these two statuses"""

    def __init__(self, current: AppointmentStatus, target: AppointmentStatus):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition appointment from {current.value} to {target.value}")


class TransitionNotPermittedError(Exception):
    """The role may not request this status"""

    def __init__(self, role: UserRole, target: AppointmentStatus):
        self.role = role
        self.target = target
        super().__init__(f"{role.value.capitalize()} cannot set appointment status to {target.value}")


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return AppointmentStatus(target) in TRANSITIONS[AppointmentStatus(current)]


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus, role: UserRole = None) -> None:
    """
    Raise unless `role` may move an appointment from `current` to `target`.

    Without a role only the lifecycle table is checked; this is the path used
    by system actors such as payment confirmation.
    """
    current = AppointmentStatus(current)
    target = AppointmentStatus(target)

    if role is not None and target not in ROLE_ALLOWED_TARGETS[UserRole(role)]:
        raise TransitionNotPermittedError(UserRole(role), target)
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)


def allowed_targets(current: AppointmentStatus, role: UserRole) -> list[AppointmentStatus]:
    """Statuses `role` could move an appointment in `current` to, for UI hints"""
    return sorted(
        TRANSITIONS[AppointmentStatus(current)] & ROLE_ALLOWED_TARGETS[UserRole(role)],
        key=lambda s: s.value,
    )
