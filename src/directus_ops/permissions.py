"""Repair access rules so the administrator can manage content collections.

Directus 11 attaches permissions to *policies*; older releases attached
them to roles. The API helpers work through the REST client while the
``*_db`` helpers write ``directus_permissions`` and ``directus_policies``
directly when the API itself refuses access.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from psycopg2 import sql

from .database import column_exists, execute, fetch_all, table_exists
from .directus_client import DirectusAPIError, DirectusRESTClient

logger = logging.getLogger(__name__)

CRUD_ACTIONS: tuple[str, ...] = ("create", "read", "update", "delete")


@dataclass(slots=True)
class PermissionReport:
    """Outcome of a permission repair for one collection."""

    collection: str
    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


def _looks_like_admin(name: Optional[str]) -> bool:
    return bool(name) and "admin" in str(name).lower()


def find_admin_role(client: DirectusRESTClient) -> Dict[str, Any]:
    """Return the administrator role.

    A role flagged ``admin_access`` wins over one merely named "admin".

    Raises
    ------
    LookupError
        If no role qualifies.
    """

    roles = client.list_roles()
    for role in roles:
        if role.get("admin_access") is True:
            return role
    for role in roles:
        if _looks_like_admin(role.get("name")):
            return role
    raise LookupError("Administrator role not found.")


def find_admin_policy(client: DirectusRESTClient) -> Dict[str, Any]:
    """Return the policy granting ``admin_access`` (Directus 11+)."""

    policies = client.list_policies()
    for policy in policies:
        if policy.get("admin_access") is True:
            return policy
    for policy in policies:
        if _looks_like_admin(policy.get("name")):
            return policy
    raise LookupError("Administrator policy not found.")


def ensure_crud_permissions(
    client: DirectusRESTClient,
    collection: str,
    *,
    policy: str | None = None,
    role: str | None = None,
    actions: Sequence[str] = CRUD_ACTIONS,
    replace: bool = False,
) -> PermissionReport:
    """Create missing permissions for ``collection`` through the API.

    Exactly one of ``policy`` or ``role`` selects who receives the rules.
    With ``replace`` the existing rules are deleted first so Directus
    recreates them with its own defaults.
    """

    if (policy is None) == (role is None):
        raise ValueError("Provide exactly one of policy or role.")

    owner_key = "policy" if policy is not None else "role"
    owner_id = policy if policy is not None else role
    report = PermissionReport(collection=collection)

    existing = client.list_permissions(collection=collection, **{owner_key: owner_id})
    if replace:
        for permission in existing:
            client.delete_permission(permission["id"])
            logger.info("Deleted permission %s (%s)", permission["id"], permission.get("action"))
        existing = []

    existing_actions = {permission.get("action") for permission in existing}
    for action in actions:
        if action in existing_actions:
            report.skipped.append(action)
            continue
        payload = {
            "collection": collection,
            "action": action,
            owner_key: owner_id,
            "fields": ["*"],
        }
        try:
            client.create_permission(payload)
        except DirectusAPIError as exc:
            report.failed[action] = str(exc)
            logger.warning("Could not create %s permission on %s: %s", action, collection, exc)
            continue
        report.created.append(action)
    return report


def ensure_crud_permissions_db(
    conn: Any,
    collection: str,
    policy_id: str,
    actions: Sequence[str] = CRUD_ACTIONS,
) -> PermissionReport:
    """Insert missing rows into ``directus_permissions`` for ``policy_id``.

    ``permissions`` is stored as ``{}`` (no row filter) and ``fields`` as
    ``*``.
    """

    report = PermissionReport(collection=collection)
    rows = fetch_all(
        conn,
        "SELECT action FROM directus_permissions WHERE collection = %s AND policy = %s",
        (collection, policy_id),
    )
    existing = {row["action"] for row in rows}
    for action in actions:
        if action in existing:
            report.skipped.append(action)
            continue
        execute(
            conn,
            "INSERT INTO directus_permissions "
            "(collection, action, permissions, validation, presets, fields, policy) "
            "VALUES (%s, %s, %s, NULL, NULL, %s, %s)",
            (collection, action, "{}", "*", policy_id),
        )
        report.created.append(action)
    return report


def fix_null_permissions(conn: Any, collection: str, policy_id: str | None = None) -> int:
    """Replace NULL ``permissions``/``fields`` columns with allow-all values.

    Returns the number of rows updated.
    """

    query = (
        "UPDATE directus_permissions "
        "SET permissions = COALESCE(permissions, %s), fields = COALESCE(fields, %s) "
        "WHERE collection = %s AND (permissions IS NULL OR fields IS NULL)"
    )
    params: List[Any] = ["{}", "*", collection]
    if policy_id is not None:
        query += " AND policy = %s"
        params.append(policy_id)
    return execute(conn, query, params)


def delete_explicit_permissions(conn: Any, collection: str, policy_id: str) -> int:
    """Drop explicit rules so an ``admin_access`` policy covers the collection."""

    return execute(
        conn,
        "DELETE FROM directus_permissions WHERE collection = %s AND policy = %s",
        (collection, policy_id),
    )


def ensure_admin_access_db(conn: Any, role_name: str = "Administrator") -> List[Dict[str, Any]]:
    """Set ``admin_access`` and ``app_access`` for the administrator.

    On Directus 11+ the flags live on ``directus_policies``; earlier
    releases keep them on ``directus_roles``. Returns the updated rows.
    """

    if table_exists(conn, "directus_policies"):
        table = "directus_policies"
    elif column_exists(conn, "directus_roles", "admin_access"):
        table = "directus_roles"
    else:
        raise LookupError("Neither directus_policies nor directus_roles.admin_access exists.")

    rows = fetch_all(
        conn,
        sql.SQL(
            "UPDATE {} SET admin_access = TRUE, app_access = TRUE "
            "WHERE name = %s RETURNING id, name, admin_access, app_access"
        ).format(sql.Identifier(table)),
        (role_name,),
    )
    if not rows:
        logger.warning("No %s row named %r", table, role_name)
    return rows


def ensure_admin_access(client: DirectusRESTClient) -> Dict[str, Any]:
    """Enable ``admin_access`` on the administrator role through the API.

    Returns the role, updated when the flag had to be switched on.
    """

    role = find_admin_role(client)
    if role.get("admin_access") is True:
        return role
    return client.update_role(role["id"], {"admin_access": True, "app_access": True})


def summarize(reports: Iterable[PermissionReport]) -> Dict[str, int]:
    totals = {"created": 0, "skipped": 0, "failed": 0}
    for report in reports:
        totals["created"] += len(report.created)
        totals["skipped"] += len(report.skipped)
        totals["failed"] += len(report.failed)
    return totals


def find_admin_policy_db(conn: Any) -> str:
    """Return the id of the first policy with ``admin_access`` set."""

    rows = fetch_all(
        conn,
        "SELECT id FROM directus_policies WHERE admin_access = TRUE ORDER BY name LIMIT 1",
    )
    if not rows:
        raise LookupError("No policy with admin_access found.")
    return str(rows[0]["id"])
