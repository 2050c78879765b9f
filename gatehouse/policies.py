"""
Policies - FastAPI dependencies for route authorization.

Just use: `ctx: AuthContext = Depends(require("edit post"))`

Design:
- `require()` returns a FastAPI dependency that resolves to AuthContext
- The Gate comes from `app.state.gate`, the actor from `request.state.actor`
  (set by whatever authentication middleware the host app runs)
- No actor -> 401, denied -> 403
- Domain errors raised inside routes map to HTTP codes through
  `install_exception_handlers`
"""

from __future__ import annotations

from typing import Any, Callable

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from gatehouse.context import AuthContext
from gatehouse.core.models import Actor
from gatehouse.exceptions import (
    CapabilityDenied,
    Conflict,
    GatehouseError,
    GuardConfigurationMissing,
    GuardMismatch,
    MembershipNotFound,
    NotFound,
)
from gatehouse.gate import Gate


# =============================================================================
# Request plumbing (pluggable)
# =============================================================================


def get_gate(request: Request) -> Gate:
    """The Gate installed on the app at startup."""
    gate = getattr(request.app.state, "gate", None)
    if gate is None:
        raise RuntimeError("No Gate installed on app.state.gate")
    return gate


def get_actor(request: Request) -> Actor | None:
    """The authenticated actor, if the auth middleware set one."""
    return getattr(request.state, "actor", None)


# =============================================================================
# Policy - the core authorization type
# =============================================================================


class Policy:
    """
    A policy that can be checked against an AuthContext.

    Policies are composable:
        require("edit post")                      # Single permission
        require_any("edit post", "delete post")   # Any of these
        require("edit post", roles="editor")      # Permission AND role
        require_auth_group("sales|marketing")     # Group membership
    """

    def __init__(
        self,
        permissions: list[Any] | None = None,
        require_all: bool = True,
        roles: Any = None,
        groups: Any = None,
        custom_check: Callable[[AuthContext], bool] | None = None,
    ):
        self.permissions = permissions or []
        self.require_all_permissions = require_all
        self.roles = roles
        self.groups = groups
        self.custom_check = custom_check

    def check(self, ctx: AuthContext) -> tuple[bool, str | None]:
        """
        Check if context satisfies this policy.

        Returns: (allowed, error_message)
        """
        if self.roles is not None and not ctx.has_role(self.roles):
            return False, f"Requires role: {self.roles}"

        if self.groups is not None and not ctx.is_one_of(self.groups):
            return False, f"Requires auth group: {self.groups}"

        if self.permissions:
            if self.require_all_permissions:
                if not ctx.has_permission_to(*self.permissions):
                    missing = [p for p in self.permissions if not ctx.can(p)]
                    return False, f"Missing permissions: {missing}"
            else:
                if not ctx.can_any(*self.permissions):
                    return False, f"Requires one of: {self.permissions}"

        if self.custom_check and not self.custom_check(ctx):
            return False, "Custom policy check failed"

        return True, None


# =============================================================================
# Main Interface - the require() family
# =============================================================================


def require(*permissions: Any, roles: Any = None, groups: Any = None) -> Callable:
    """
    Require permissions to access a route.

    Usage:
        @app.post("/posts/{post_id}")
        async def edit_post(
            post_id: str,
            ctx: AuthContext = Depends(require("edit post")),
        ):
            return {"actor": ctx.actor_id, "can_publish": ctx.can("publish post")}

    Args:
        *permissions: Permission names or entities (all must be held)
        roles: Role name(s) the actor must have one of
        groups: Auth group name(s) the actor must be one of

    Returns:
        FastAPI dependency that resolves to AuthContext
    """
    return _create_dependency(Policy(list(permissions), require_all=True, roles=roles, groups=groups))


def require_any(*permissions: Any, **kwargs) -> Callable:
    """Require ANY of the listed permissions."""
    return _create_dependency(Policy(list(permissions), require_all=False, **kwargs))


def require_role(roles: Any) -> Callable:
    """Require one of the roles ("admin", "admin|editor", [...])."""
    return _create_dependency(Policy(roles=roles))


def require_auth_group(groups: Any) -> Callable:
    """Require ownership or membership of one of the groups."""
    return _create_dependency(Policy(groups=groups))


def require_actor() -> Callable:
    """Just require an authenticated actor."""
    return _create_dependency(Policy())


# =============================================================================
# Internal: Create the FastAPI Dependency
# =============================================================================


def _create_dependency(policy: Policy) -> Callable:
    """Create a FastAPI dependency from a policy."""

    def dependency(request: Request) -> AuthContext:
        actor = get_actor(request)
        if actor is None:
            raise HTTPException(status_code=401, detail="Authentication required")

        ctx = get_gate(request).for_actor(actor)

        allowed, error = policy.check(ctx)
        if not allowed:
            raise HTTPException(status_code=403, detail=error)

        return ctx

    return dependency


# =============================================================================
# Error mapping
# =============================================================================


STATUS_CODES: list[tuple[type[GatehouseError], int]] = [
    (NotFound, 404),
    (MembershipNotFound, 404),
    (Conflict, 409),
    (GuardMismatch, 422),
    (GuardConfigurationMissing, 422),
    (CapabilityDenied, 403),
]


def status_code_for(error: GatehouseError) -> int:
    for error_type, status_code in STATUS_CODES:
        if isinstance(error, error_type):
            return status_code
    return 400


def install_exception_handlers(app: FastAPI) -> None:
    """Map domain errors to HTTP responses."""

    async def handle(request: Request, exc: GatehouseError) -> JSONResponse:
        return JSONResponse(status_code=status_code_for(exc), content={"detail": str(exc)})

    app.add_exception_handler(GatehouseError, handle)
