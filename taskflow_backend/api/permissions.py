from __future__ import annotations

from rest_framework.permissions import SAFE_METHODS, BasePermission

from .policy import Action, can_perform, role_gate


def _policy_action(request, view) -> Action:
    actions = getattr(view, "policy_actions", {})
    action = actions.get(getattr(view, "action", None))
    if action is not None:
        return action
    if request.method in SAFE_METHODS:
        return Action.READ
    return Action.CREATE


class PolicyPermission(BasePermission):
    """Applies the authorization policy to a viewset.

    Views declare ``policy_actions`` mapping their DRF action names to policy
    actions; unmapped safe requests are reads, unmapped unsafe requests are
    creates. The role gate runs before the target is loaded, ownership checks
    run once it is.
    """

    def has_permission(self, request, view) -> bool:
        role_gate(request.user, _policy_action(request, view)).raise_for_denial()
        return True

    def has_object_permission(self, request, view, obj) -> bool:
        can_perform(request.user, _policy_action(request, view), obj).raise_for_denial()
        return True
