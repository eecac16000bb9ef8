from .declarations import (
    ANY,
    AccessorSet,
    AccessTier,
    AssociatedTypeDeclaration,
    CapabilityMarker,
    ConditionalBlock,
    ConditionalClause,
    InterfaceDeclaration,
    MemberDeclaration,
    MemberKind,
    MemberNode,
    MethodDeclaration,
    Parameter,
    ParameterKind,
    PropertyDeclaration,
    SubscriptDeclaration,
    TypeExpr,
    iter_members,
)
from .diagnostics import (
    NOT_A_PROTOCOL_MESSAGE,
    Diagnostic,
    GenerationResult,
    MockableError,
    MockableErrorKind,
)

__all__ = [
    "ANY",
    "AccessorSet",
    "AccessTier",
    "AssociatedTypeDeclaration",
    "CapabilityMarker",
    "ConditionalBlock",
    "ConditionalClause",
    "InterfaceDeclaration",
    "MemberDeclaration",
    "MemberKind",
    "MemberNode",
    "MethodDeclaration",
    "Parameter",
    "ParameterKind",
    "PropertyDeclaration",
    "SubscriptDeclaration",
    "TypeExpr",
    "iter_members",
    "NOT_A_PROTOCOL_MESSAGE",
    "Diagnostic",
    "GenerationResult",
    "MockableError",
    "MockableErrorKind",
]
