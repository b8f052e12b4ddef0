"""Standard permission roles provisioned in every hosting account.

Role selection is always the caller's decision; nothing here infers a
role from the operation being performed.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class RoleName(str, Enum):
    """Permission tiers available in hosting accounts."""

    READ_ONLY = "ReadOnly"
    FULL_READ_ONLY = "FullReadOnly"
    ONCALL_OPERATOR = "OncallOperator"
    ADMIN = "Admin"
    LAMBDA_INVOKER = "LambdaInvoker"
    SUPPORT_OPS = "SupportOps"


class RiskLevel(Enum):
    """Risk of handing out a role, derived from its contingent-auth level."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


DEFAULT_ROLE = RoleName.READ_ONLY.value

# Roles the credential provider hands out for any account. Anything else
# is only available in low-risk accounts.
DEFAULT_ALLOWED_ROLES = (
    RoleName.READ_ONLY.value,
    RoleName.FULL_READ_ONLY.value,
    RoleName.ONCALL_OPERATOR.value,
    RoleName.LAMBDA_INVOKER.value,
    RoleName.SUPPORT_OPS.value,
)


@dataclass(frozen=True)
class RoleDefinition:
    """IAM role provisioned in hosting accounts."""

    name: str
    description: str
    contingent_auth: int
    federation_timeout_minutes: int
    policy_arns: List[str] = field(default_factory=list)
    group: Optional[str] = None

    @property
    def risk_level(self) -> RiskLevel:
        """Risk level of the role."""
        if self.contingent_auth <= 0:
            return RiskLevel.LOW
        if self.contingent_auth == 1:
            return RiskLevel.MEDIUM
        return RiskLevel.HIGH


ONCALL_GROUP = "hosting-oncall"


def get_roles_for_stage(stage: Any) -> Dict[str, RoleDefinition]:
    """Get the standard role set for a deployment stage.

    Args:
        stage: Stage value; prod Admin is not granted to the oncall group

    Returns:
        Role definitions keyed by role name
    """
    stage_value = getattr(stage, "value", stage)
    roles = [
        RoleDefinition(
            name=RoleName.READ_ONLY.value,
            description=(
                "Does not allow mutations and has no access to customer data."
            ),
            contingent_auth=0,
            federation_timeout_minutes=90,
            group=ONCALL_GROUP,
        ),
        RoleDefinition(
            name=RoleName.FULL_READ_ONLY.value,
            description=(
                "Does not allow mutations. Use for read-only operations that "
                "need access to customer data."
            ),
            contingent_auth=1,
            federation_timeout_minutes=60,
            policy_arns=["arn:aws:iam::aws:policy/ReadOnlyAccess"],
            group=ONCALL_GROUP,
        ),
        RoleDefinition(
            name=RoleName.ONCALL_OPERATOR.value,
            description=(
                "Limited write permissions covering the usual oncall operations."
            ),
            contingent_auth=1,
            federation_timeout_minutes=15,
            policy_arns=["arn:aws:iam::aws:policy/ReadOnlyAccess"],
            group=ONCALL_GROUP,
        ),
        RoleDefinition(
            name=RoleName.ADMIN.value,
            description=(
                "Highly permissive role. Use with extreme caution and only "
                "for emergencies."
            ),
            contingent_auth=2,
            federation_timeout_minutes=15,
            policy_arns=["arn:aws:iam::aws:policy/AdministratorAccess"],
            group=None if stage_value == "prod" else ONCALL_GROUP,
        ),
        RoleDefinition(
            name=RoleName.LAMBDA_INVOKER.value,
            description="Invokes test Lambda functions and reads their results.",
            contingent_auth=1,
            federation_timeout_minutes=60,
            policy_arns=[
                "arn:aws:iam::aws:policy/service-role/AWSLambdaRole",
                "arn:aws:iam::aws:policy/ReadOnlyAccess",
            ],
            group=ONCALL_GROUP,
        ),
        RoleDefinition(
            name=RoleName.SUPPORT_OPS.value,
            description="Support engineers reading build logs.",
            contingent_auth=1,
            federation_timeout_minutes=60,
            group="hosting-support",
        ),
    ]
    return {role.name: role for role in roles}


def get_role_definition(role_name: str, stage: Any = "prod") -> Optional[RoleDefinition]:
    """Look up a standard role by name.

    Returns:
        RoleDefinition, or None for roles outside the standard set
    """
    return get_roles_for_stage(stage).get(str(getattr(role_name, "value", role_name)))


def get_risk_level(role_name: str, stage: Any = "prod") -> RiskLevel:
    """Get the risk level of a role; unknown roles are treated as HIGH."""
    definition = get_role_definition(role_name, stage)
    if definition is None:
        return RiskLevel.HIGH
    return definition.risk_level
