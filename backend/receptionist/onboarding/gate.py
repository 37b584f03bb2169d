"""Validation gate: is the accumulated savedData enough to provision?

Pure function of the snapshot: no I/O, so the review screen can re-run
it on every render and tests need no mocks. Rules only check that
things exist; field shapes were already enforced when each step was
submitted. savedData comes back from the remote store, so list entries
that are not objects are treated as malformed rather than trusted.
"""

from typing import Any, Callable

Rule = Callable[[dict[str, Any]], str | None]


def records(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    """The object entries of a saved list; anything else is dropped."""
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _present(key: str, message: str) -> Rule:
    def rule(data: dict[str, Any]) -> str | None:
        value = data.get(key)
        if value is None or (isinstance(value, str) and not value.strip()):
            return message
        return None
    return rule


def _non_empty(key: str, message: str) -> Rule:
    def rule(data: dict[str, Any]) -> str | None:
        return None if data.get(key) else message
    return rule


def _calendar_connected(data: dict[str, Any]) -> str | None:
    if data.get("calendarConnected") is not True:
        return "Calendar connection is required"
    return None


def _staff_have_services(data: dict[str, Any]) -> str | None:
    members = data.get("staffMembers") or []
    if not isinstance(members, list) or len(records(data, "staffMembers")) != len(members):
        return "Staff member list is malformed; please re-save the staff step"

    offered = {str(s["id"]) for s in records(data, "services") if s.get("id") is not None}
    for member in members:
        assigned = member.get("services") or []
        name = member.get("name") or member.get("id") or "?"
        if not assigned:
            return f"Staff member {name} has no assigned services"
        if not isinstance(assigned, list):
            return f"Staff member {name} has malformed service assignments"
        unknown = [str(sid) for sid in assigned if str(sid) not in offered]
        if unknown:
            return f"Staff member {name} is assigned to unknown services: {', '.join(unknown)}"
    return None


RULES: tuple[Rule, ...] = (
    _present("name", "Business name is required"),
    _present("email", "Email is required"),
    _present("phoneAreaCode", "Phone area code is required"),
    _present("timezone", "Timezone is required"),
    _non_empty("services", "At least one service is required"),
    _non_empty("staffMembers", "At least one staff member is required"),
    _staff_have_services,
    _calendar_connected,
    _present("voiceChoice", "Voice selection is required"),
    _present("greetingMessage", "Greeting message is required"),
)


def check(saved_data: dict[str, Any] | None) -> list[str]:
    """Return violation messages for the bundle. Empty list means eligible."""
    data = saved_data or {}
    violations = []
    for rule in RULES:
        message = rule(data)
        if message:
            violations.append(message)
    return violations
