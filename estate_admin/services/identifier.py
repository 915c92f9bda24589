"""Permission identifier generation from (HTTP method, route path).

Pure functions: the same inputs always give the same outputs, which lets the
reconciler re-derive identifiers on every run and upsert instead of
duplicating.

Route paths may use either ``/:param`` / ``/*param`` markers or FastAPI's
``/{param}`` / ``/{param:path}`` templates. All dynamic segments collapse to
one placeholder, so ``/users/:id`` and ``/users/:userId`` share an identifier.
"""

import re
from typing import List, Optional

from estate_admin.core.config import settings

PLACEHOLDER = "id"

VERBS = {
    "GET": "View",
    "POST": "Create",
    "PUT": "Update",
    "DELETE": "Delete",
    "PATCH": "Partially update",
}

DESCRIPTION_VERBS = {
    "GET": "view and retrieve",
    "POST": "create new",
    "PUT": "fully update",
    "DELETE": "delete",
    "PATCH": "partially update",
}

NOUNS = {
    # administration
    "admin": "Admin",
    "permissions": "Permission",
    "menus": "Menu",
    "buttons": "Button",
    "users": "User",
    "roles": "Role",
    "audit-logs": "Audit log",
    "scan": "Permission scan",
    "auth": "Auth",
    "login": "Login",
    "me": "Current user",
    # projects
    "projects": "Project",
    "sales-control": "Sales control",
    "parking": "Parking space",
    "appointments": "Customer appointment",
    "purchased-customers": "Purchased customer",
    "sales-personnel": "Sales personnel",
    "statistics": "Statistics",
    "budget": "Budget",
    "expenses": "Expense",
    "commission": "Commission",
    "deposit": "Deposit",
    "handover": "Handover",
    "withdrawal-records": "Withdrawal record",
    "visitor-questionnaire": "Visitor questionnaire",
    # common
    "stats": "Stats",
    "batch": "Batch operation",
    "test": "Test",
    "init-db": "Database initialization",
}

_BRACE_CATCH_ALL = re.compile(r"\{([^}:]+):path\}")
_BRACE_PARAM = re.compile(r"\{([^}:]+)(?::[^}]*)?\}")
_REPEATED_UNDERSCORES = re.compile(r"_+")


def normalize_route_path(route_path: str) -> str:
    """Rewrite FastAPI templates to ``:param`` / ``*param`` markers."""
    path = route_path.split("?", 1)[0].split("#", 1)[0].strip()
    path = _BRACE_CATCH_ALL.sub(r"*\1", path)
    path = _BRACE_PARAM.sub(r":\1", path)
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/")
    return path


def strip_api_root(route_path: str, api_root: Optional[str] = None) -> str:
    root = (api_root if api_root is not None else settings.API_PREFIX).rstrip("/")
    path = normalize_route_path(route_path)
    if root and (path == root or path.startswith(root + "/")):
        path = path[len(root):]
    return path or "/"


def is_dynamic(segment: str) -> bool:
    return segment.startswith(":") or segment.startswith("*")


def _segments(route_path: str) -> List[str]:
    return [s for s in strip_api_root(route_path).split("/") if s]


def generate_identifier(method: str, route_path: str) -> str:
    """``GET /api/admin/roles/:id`` -> ``get_admin_roles_id``."""
    tokens = [PLACEHOLDER if is_dynamic(s) else s for s in _segments(route_path)]
    body = _REPEATED_UNDERSCORES.sub("_", "_".join(tokens)).strip("_")
    return f"{method.lower()}_{body or 'root'}".lower()


def _resource_name(route_path: str) -> str:
    words = []
    for segment in _segments(route_path):
        if is_dynamic(segment):
            words.append("detail")
        else:
            words.append(NOUNS.get(segment, segment))
    return " ".join(words) or "resource"


def generate_name(method: str, route_path: str) -> str:
    """``GET /api/admin/roles/:id`` -> ``View Admin Role detail``."""
    verb = VERBS.get(method.upper(), method)
    return f"{verb} {_resource_name(route_path)}"


def generate_description(method: str, route_path: str) -> str:
    verb = DESCRIPTION_VERBS.get(method.upper(), method)
    return f"Permission to {verb} {_resource_name(route_path)}"


def infer_menu_path(route_path: str) -> str:
    """Candidate owning-menu path: API root and dynamic segments removed.

    Returns an empty string when nothing remains.
    """
    static = [s for s in _segments(route_path) if not is_dynamic(s)]
    return "/" + "/".join(static) if static else ""
