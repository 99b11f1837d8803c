"""
Authorization gate.

Maps a (permission, action) requirement to an allow/deny decision for a
principal. The superuser bypass is an explicit, configurable rule evaluated
before any permission lookup; everything else is answered by the effective
permission resolver.
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from app.core.exceptions import AuthenticationRequired, AuthorizationDenied, InvalidInput
from app.core.logging import get_logger
from app.core.permissions import ACTION_VALUES, Action, format_requirement
from app.services.permission_resolver import EffectivePermissionResolver

logger = get_logger(__name__)


@dataclass(frozen=True)
class Principal:
    """Who is asking. Unauthenticated principals carry no user id."""
    user_id: Optional[int]
    role: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    @classmethod
    def anonymous(cls) -> "Principal":
        return cls(user_id=None)

    @classmethod
    def from_user(cls, user) -> "Principal":
        if user is None:
            return cls.anonymous()
        return cls(user_id=user.id, role=user.role)


@dataclass(frozen=True)
class Requirement:
    permission: str
    action: Action

    def __str__(self) -> str:
        return format_requirement(self.permission, self.action)

    @classmethod
    def of(cls, permission: str, action: Union[Action, str]) -> "Requirement":
        try:
            action = Action(action)
        except ValueError:
            raise InvalidInput(f"Invalid action: {action}. Allowed: {', '.join(sorted(ACTION_VALUES))}")
        return cls(permission=permission.strip().lower(), action=action)


@dataclass
class AuthorizationDecision:
    allowed: bool
    requirements: List[Requirement]
    reason: Optional[str] = None
    bypassed: bool = False
    granted: List[Requirement] = field(default_factory=list)
    missing: List[Requirement] = field(default_factory=list)

    def metadata(self) -> List[dict]:
        """Requirement metadata attached to the request on success."""
        granted = set(self.granted)
        return [
            {
                "name": requirement.permission,
                "action": requirement.action.value,
                "granted": self.bypassed or requirement in granted,
            }
            for requirement in self.requirements
        ]


class SuperuserBypassRule:
    """
    Principals with the superuser role are allowed unconditionally.

    The rule can be disabled, in which case superusers are resolved like any
    other user.
    """

    def __init__(self, role: str = "super_admin", enabled: bool = True):
        self.role = role
        self.enabled = enabled

    def applies(self, principal: Principal) -> bool:
        return self.enabled and principal.is_authenticated and principal.role == self.role


RequirementLike = Union[Requirement, Tuple[str, Union[Action, str]]]


def _as_requirements(requirements: Iterable[RequirementLike]) -> List[Requirement]:
    result = []
    for requirement in requirements:
        if not isinstance(requirement, Requirement):
            requirement = Requirement.of(*requirement)
        result.append(requirement)
    return result


class AuthorizationGate:
    """
    Decides allow/deny for single, ALL-of and ANY-of requirements.

    `authorize*` return a decision; `enforce*` raise AuthenticationRequired or
    AuthorizationDenied instead of returning a denial.
    """

    def __init__(self, resolver: EffectivePermissionResolver, superuser_rule: Optional[SuperuserBypassRule] = None):
        self.resolver = resolver
        self.superuser_rule = superuser_rule or SuperuserBypassRule(enabled=False)

    async def _has(self, principal: Principal, requirement: Requirement) -> bool:
        actions = await self.resolver.resolve_actions(principal.user_id, requirement.permission)
        return requirement.action.value in actions

    def _bypass(self, principal: Principal, requirements: List[Requirement]) -> Optional[AuthorizationDecision]:
        if self.superuser_rule.applies(principal):
            logger.debug(f"Superuser bypass for user {principal.user_id} on {', '.join(map(str, requirements))}")
            return AuthorizationDecision(allowed=True, requirements=requirements, bypassed=True, granted=list(requirements))
        return None

    @staticmethod
    def _require_authenticated(principal: Optional[Principal]) -> Principal:
        if principal is None or not principal.is_authenticated:
            raise AuthenticationRequired()
        return principal

    async def authorize(self, principal: Principal, permission: str, action: Union[Action, str]) -> AuthorizationDecision:
        principal = self._require_authenticated(principal)
        requirement = Requirement.of(permission, action)

        decision = self._bypass(principal, [requirement])
        if decision:
            return decision

        if await self._has(principal, requirement):
            return AuthorizationDecision(allowed=True, requirements=[requirement], granted=[requirement])

        return AuthorizationDecision(
            allowed=False,
            requirements=[requirement],
            missing=[requirement],
            reason=f"Access denied. Required permission: {requirement}",
        )

    async def authorize_all(self, principal: Principal, requirements: Sequence[RequirementLike]) -> AuthorizationDecision:
        """Every requirement must hold; a denial names each unmet one."""
        principal = self._require_authenticated(principal)
        requirements = _as_requirements(requirements)

        decision = self._bypass(principal, requirements)
        if decision:
            return decision

        granted, missing = [], []
        for requirement in requirements:
            (granted if await self._has(principal, requirement) else missing).append(requirement)

        if missing:
            return AuthorizationDecision(
                allowed=False,
                requirements=requirements,
                granted=granted,
                missing=missing,
                reason=f"Access denied. Missing permissions: {', '.join(map(str, missing))}",
            )
        return AuthorizationDecision(allowed=True, requirements=requirements, granted=granted)

    async def authorize_any(self, principal: Principal, requirements: Sequence[RequirementLike]) -> AuthorizationDecision:
        """First satisfied requirement wins; a denial names every attempted one."""
        principal = self._require_authenticated(principal)
        requirements = _as_requirements(requirements)

        decision = self._bypass(principal, requirements)
        if decision:
            return decision

        for requirement in requirements:
            if await self._has(principal, requirement):
                return AuthorizationDecision(allowed=True, requirements=requirements, granted=[requirement])

        return AuthorizationDecision(
            allowed=False,
            requirements=requirements,
            missing=list(requirements),
            reason=f"Access denied. Required permissions (any): {' OR '.join(map(str, requirements))}",
        )

    @staticmethod
    def _raise_if_denied(principal: Principal, decision: AuthorizationDecision) -> AuthorizationDecision:
        if not decision.allowed:
            logger.info(f"Authorization denied for user {principal.user_id}: {decision.reason}")
            raise AuthorizationDenied(decision.reason, missing=[str(r) for r in decision.missing])
        return decision

    async def enforce(self, principal: Principal, permission: str, action: Union[Action, str]) -> AuthorizationDecision:
        return self._raise_if_denied(principal, await self.authorize(principal, permission, action))

    async def enforce_all(self, principal: Principal, requirements: Sequence[RequirementLike]) -> AuthorizationDecision:
        return self._raise_if_denied(principal, await self.authorize_all(principal, requirements))

    async def enforce_any(self, principal: Principal, requirements: Sequence[RequirementLike]) -> AuthorizationDecision:
        return self._raise_if_denied(principal, await self.authorize_any(principal, requirements))
