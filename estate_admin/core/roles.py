"""System role names and the static route -> allowed-roles table."""

import enum
from typing import Dict, FrozenSet, Optional

from estate_admin.core.config import settings


class SystemRole(str, enum.Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    SALES_MANAGER = "SALES_MANAGER"
    SALES_PERSON = "SALES_PERSON"
    FINANCE = "FINANCE"
    CUSTOMER_SERVICE = "CUSTOMER_SERVICE"
    USER = "USER"


SUPER_ADMIN_ROLE = SystemRole.SUPER_ADMIN.value

SYSTEM_ROLE_NAMES: FrozenSet[str] = frozenset(r.value for r in SystemRole)

# Roles that see every project regardless of their project scope.
ALL_PROJECTS_ROLES: FrozenSet[str] = frozenset({
    SystemRole.SUPER_ADMIN.value,
    SystemRole.ADMIN.value,
})

SYSTEM_ROLE_DISPLAY = {
    SystemRole.SUPER_ADMIN: ("Super administrator", "Unrestricted access to every resource"),
    SystemRole.ADMIN: ("Administrator", "Manage users and all project data"),
    SystemRole.SALES_MANAGER: ("Sales manager", "Manage sales team, units, parking and appointments"),
    SystemRole.SALES_PERSON: ("Sales person", "Handle sales units, parking and customer appointments"),
    SystemRole.FINANCE: ("Finance", "Budget, expenses, commission and statistics"),
    SystemRole.CUSTOMER_SERVICE: ("Customer service", "Customers and appointments"),
    SystemRole.USER: ("User", "Basic read access"),
}


def _roles(*roles: SystemRole) -> FrozenSet[str]:
    return frozenset(r.value for r in roles)


_SA = SystemRole.SUPER_ADMIN
_AD = SystemRole.ADMIN
_SM = SystemRole.SALES_MANAGER
_SP = SystemRole.SALES_PERSON
_FI = SystemRole.FINANCE
_CS = SystemRole.CUSTOMER_SERVICE
_US = SystemRole.USER

_EVERYONE = _roles(_SA, _AD, _SM, _SP, _FI, _CS, _US)
_SALES = _roles(_SA, _AD, _SM, _SP)
_SALES_LEADS = _roles(_SA, _AD, _SM)
_FRONT_DESK = _roles(_SA, _AD, _SM, _SP, _CS)

# Path prefix (below API_PREFIX) -> HTTP method -> roles allowed when a handler
# declares no roles.
# The longest matching prefix wins; prefixes match on whole path segments.
API_ROLE_TABLE: Dict[str, Dict[str, FrozenSet[str]]] = {
    "/auth": {
        "GET": _EVERYONE,
        "POST": _EVERYONE,
    },
    "/admin": {
        "GET": _roles(_SA),
        "POST": _roles(_SA),
        "PUT": _roles(_SA),
        "PATCH": _roles(_SA),
        "DELETE": _roles(_SA),
    },
    "/users": {
        "GET": _roles(_SA, _AD),
        "POST": _roles(_SA, _AD),
        "PUT": _roles(_SA, _AD),
        "DELETE": _roles(_SA),
    },
    "/sales-control": {
        "GET": _SALES,
        "POST": _SALES,
        "PUT": _SALES,
        "DELETE": _SALES_LEADS,
    },
    "/customers": {
        "GET": _FRONT_DESK,
        "POST": _FRONT_DESK,
        "PUT": _FRONT_DESK,
        "DELETE": _SALES_LEADS,
    },
    "/appointments": {
        "GET": _FRONT_DESK,
        "POST": _FRONT_DESK,
        "PUT": _FRONT_DESK,
        "DELETE": _SALES_LEADS,
    },
    "/parking": {
        "GET": _SALES,
        "POST": _SALES,
        "PUT": _SALES,
        "DELETE": _SALES_LEADS,
    },
    "/finance": {
        "GET": _roles(_SA, _AD, _SM, _FI),
        "POST": _roles(_SA, _AD, _FI),
        "PUT": _roles(_SA, _AD, _FI),
        "DELETE": _roles(_SA, _AD),
    },
    "/handover": {
        "GET": _SALES_LEADS,
        "POST": _SALES_LEADS,
        "PUT": _SALES_LEADS,
        "DELETE": _roles(_SA, _AD),
    },
    "/statistics": {
        "GET": _roles(_SA, _AD, _SM, _FI),
    },
}


def lookup_allowed_roles(path: str, method: str, api_prefix: Optional[str] = None) -> Optional[FrozenSet[str]]:
    """Return the roles declared for ``method`` on the longest matching prefix.

    Table prefixes are relative to the API prefix (``settings.API_PREFIX`` by
    default). ``None`` means the route is undeclared: the path is outside the
    API prefix, no table prefix matched, or the match declares nothing for
    this method.
    """
    root = (api_prefix if api_prefix is not None else settings.API_PREFIX).rstrip("/")
    if root:
        if path != root and not path.startswith(root + "/"):
            return None
        path = path[len(root):] or "/"

    best = None
    for prefix in API_ROLE_TABLE:
        if path == prefix or path.startswith(prefix.rstrip("/") + "/"):
            if best is None or len(prefix) > len(best):
                best = prefix
    if best is None:
        return None
    return API_ROLE_TABLE[best].get(method.upper())
