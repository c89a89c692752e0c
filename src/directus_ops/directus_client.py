"""Thin REST client for interacting with Directus."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, MutableMapping, Optional, Sequence

import requests

from .config import DirectusSettings

logger = logging.getLogger(__name__)


class DirectusAPIError(requests.HTTPError):
    """Raised when Directus answers with a non-2xx status.

    ``messages`` holds the ``errors[].message`` strings from the response
    body and ``codes`` the matching ``extensions.code`` values.
    """

    def __init__(
        self,
        status_code: int,
        messages: Sequence[str],
        *,
        codes: Sequence[str] = (),
        response: requests.Response | None = None,
    ) -> None:
        self.status_code = status_code
        self.messages = list(messages)
        self.codes = list(codes)
        detail = "; ".join(self.messages) or "no error detail"
        super().__init__(f"HTTP {status_code}: {detail}", response=response)

    @property
    def already_exists(self) -> bool:
        """``True`` when the error reports a duplicate field, record or collection."""

        text = " ".join(self.messages).lower()
        if "already exists" in text or "has to be unique" in text or "duplicate" in text:
            return True
        return "RECORD_NOT_UNIQUE" in self.codes

    @classmethod
    def from_response(cls, response: requests.Response) -> "DirectusAPIError":
        messages: List[str] = []
        codes: List[str] = []
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, Mapping):
            for error in body.get("errors") or []:
                if not isinstance(error, Mapping):
                    continue
                if error.get("message"):
                    messages.append(str(error["message"]))
                extensions = error.get("extensions")
                if isinstance(extensions, Mapping) and extensions.get("code"):
                    codes.append(str(extensions["code"]))
        if not messages:
            messages.append(getattr(response, "reason", None) or "Request failed")
        return cls(response.status_code, messages, codes=codes, response=response)


class DirectusRESTClient:
    """Minimal client for Directus REST endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        token_type: str = "Bearer",
        timeout: int | float | None = 30,
        session: requests.Session | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.refresh_token: str | None = None
        self.token_type = token_type
        self.timeout = timeout
        self.session = session or requests.Session()
        self._settings: DirectusSettings | None = None

    @classmethod
    def from_env(
        cls,
        env_path: str | Path | None = None,
        *,
        base_url: str | None = None,
        session: requests.Session | None = None,
    ) -> "DirectusRESTClient":
        """Build a client from ``DIRECTUS_URL``/``DIRECTUS_TOKEN`` settings."""

        settings = DirectusSettings.from_env(env_path)
        client = cls(
            base_url or settings.url,
            token=settings.token,
            timeout=settings.timeout,
            session=session,
        )
        client._settings = settings
        return client

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def login(
        self,
        email: str | None = None,
        password: str | None = None,
        *,
        load_env: bool = True,
        env_path: str | Path | None = None,
    ) -> Dict[str, Any]:
        """
        Authenticate with Directus and store the access token.

        If email/password are not provided, they are read from the
        ADMIN_EMAIL and ADMIN_PASSWORD environment variables (optionally
        loading a .env file first).

        Returns:
            The ``data`` object of the login response (``access_token``,
            ``refresh_token``, ``expires``).

        Raises:
            ValueError: If credentials are missing or no token is returned.
            DirectusAPIError: If authentication fails.
        """
        if email is None or password is None:
            settings = self._settings or DirectusSettings.from_env(env_path, load_env=load_env)
            if email is None:
                email = settings.email
            if password is None:
                password = settings.password

        if not email or not password:
            raise ValueError(
                "Email and password must be provided either as arguments or via "
                "ADMIN_EMAIL and ADMIN_PASSWORD environment variables."
            )

        response = self.session.post(
            self._build_url("auth/login"),
            headers={
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
            json={"email": email, "password": password},
            timeout=self.timeout,
        )
        self._raise_for_status(response)

        data = (response.json() or {}).get("data") or {}
        token = data.get("access_token")
        if not token:
            raise ValueError("Directus login response did not include an access token.")

        self.token = token
        self.refresh_token = data.get("refresh_token")
        return data

    def ensure_authenticated(self, email: str | None = None, password: str | None = None) -> None:
        """Log in unless a static token is already configured."""

        if not self.token:
            self.login(email, password)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _build_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _build_headers(self, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers: Dict[str, str] = {
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if self.token:
            headers["Authorization"] = f"{self.token_type} {self.token}"
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        if response.status_code >= 400:
            raise DirectusAPIError.from_response(response)

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[MutableMapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Dict[str, Any]:
        logger.debug("%s %s params=%s", method, path, params)
        response = self.session.request(
            method,
            self._build_url(path),
            headers=self._build_headers(headers),
            params=params,
            json=json,
            timeout=self.timeout,
        )
        self._raise_for_status(response)
        if response.status_code == 204:
            return {}
        return response.json()

    def _data(self, method: str, path: str, **kwargs: Any) -> Any:
        return self._request(method, path, **kwargs).get("data")

    # ------------------------------------------------------------------
    # Items
    # ------------------------------------------------------------------
    def list_items(
        self,
        collection: str,
        *,
        params: Optional[MutableMapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Return the items of ``collection`` matching ``params``."""

        return self._data("GET", f"items/{collection}", params=params) or []

    def list_all_items(
        self,
        collection: str,
        *,
        fields: Sequence[str] | None = None,
        params: Optional[MutableMapping[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Return every item of ``collection`` (``limit=-1``)."""

        query: Dict[str, Any] = dict(params or {})
        query["limit"] = -1
        if fields:
            query["fields"] = ",".join(fields)
        return self.list_items(collection, params=query)

    def get_item(self, collection: str, item_id: Any, *, params: Optional[MutableMapping[str, Any]] = None) -> Dict[str, Any]:
        return self._data("GET", f"items/{collection}/{item_id}", params=params)

    def create_item(self, collection: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Create a new item in the collection."""

        return self._data("POST", f"items/{collection}", json=dict(payload))

    def update_item(self, collection: str, item_id: Any, payload: Mapping[str, Any]) -> Dict[str, Any]:
        """Update an existing item by primary key."""

        return self._data("PATCH", f"items/{collection}/{item_id}", json=dict(payload))

    def delete_item(self, collection: str, item_id: Any) -> Dict[str, Any]:
        """Delete an item by primary key."""

        return self._request("DELETE", f"items/{collection}/{item_id}")

    def delete_items(self, collection: str, item_ids: Iterable[Any]) -> Dict[str, Any]:
        """Delete several items with a single request."""

        return self._request("DELETE", f"items/{collection}", json=list(item_ids))

    def find_first_by_field(
        self,
        collection: str,
        field: str,
        value: Any,
        *,
        fields: Sequence[str] | None = None,
    ) -> Optional[Dict[str, Any]]:
        """Return the first item whose ``field`` equals ``value``."""

        params: Dict[str, Any] = {f"filter[{field}][_eq]": value, "limit": 1}
        if fields:
            params["fields"] = ",".join(fields)
        items = self.list_items(collection, params=params)
        return items[0] if items else None

    def upsert_by_field(
        self,
        collection: str,
        field: str,
        value: Any,
        payload: Mapping[str, Any],
    ) -> Dict[str, Any]:
        """Create or update an item using ``field`` equality as the key."""

        existing = self.find_first_by_field(collection, field, value)
        if existing:
            item_id = existing.get("id")
            if item_id is None:
                raise ValueError(
                    "Existing item is missing an 'id' field required for updates."
                )
            return self.update_item(collection, item_id, payload)
        return self.create_item(collection, payload)

    def count_items(self, collection: str, *, params: Optional[MutableMapping[str, Any]] = None) -> int:
        """Return the number of items using ``aggregate[count]=*``."""

        query: Dict[str, Any] = dict(params or {})
        query["aggregate[count]"] = "*"
        rows = self.list_items(collection, params=query)
        if not rows:
            return 0
        count = rows[0].get("count", 0)
        if isinstance(count, Mapping):
            count = next(iter(count.values()), 0)
        return int(count or 0)

    # ------------------------------------------------------------------
    # Collections, fields and relations
    # ------------------------------------------------------------------
    def list_collections(self) -> List[Dict[str, Any]]:
        return self._data("GET", "collections") or []

    def get_collection(self, collection: str) -> Dict[str, Any]:
        return self._data("GET", f"collections/{collection}")

    def create_collection(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("POST", "collections", json=dict(payload))

    def update_collection(self, collection: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("PATCH", f"collections/{collection}", json=dict(payload))

    def delete_collection(self, collection: str) -> Dict[str, Any]:
        return self._request("DELETE", f"collections/{collection}")

    def list_fields(self, collection: str) -> List[Dict[str, Any]]:
        """Return field definitions (``field``, ``type``, ``schema``, ``meta``)."""

        return self._data("GET", f"fields/{collection}") or []

    def get_field(self, collection: str, field: str) -> Dict[str, Any]:
        return self._data("GET", f"fields/{collection}/{field}")

    def create_field(self, collection: str, definition: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("POST", f"fields/{collection}", json=dict(definition))

    def update_field(self, collection: str, field: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("PATCH", f"fields/{collection}/{field}", json=dict(payload))

    def delete_field(self, collection: str, field: str) -> Dict[str, Any]:
        return self._request("DELETE", f"fields/{collection}/{field}")

    def list_relations(self, collection: str | None = None) -> List[Dict[str, Any]]:
        path = f"relations/{collection}" if collection else "relations"
        return self._data("GET", path) or []

    def create_relation(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("POST", "relations", json=dict(payload))

    def delete_relation(self, collection: str, field: str) -> Dict[str, Any]:
        return self._request("DELETE", f"relations/{collection}/{field}")

    # ------------------------------------------------------------------
    # Roles, policies and permissions
    # ------------------------------------------------------------------
    def list_roles(self) -> List[Dict[str, Any]]:
        return self._data("GET", "roles") or []

    def update_role(self, role_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("PATCH", f"roles/{role_id}", json=dict(payload))

    def list_policies(self) -> List[Dict[str, Any]]:
        return self._data("GET", "policies") or []

    def list_permissions(self, **filters: Any) -> List[Dict[str, Any]]:
        """Return permissions, filtered by equality on the given columns."""

        params: Dict[str, Any] = {"limit": -1}
        for key, value in filters.items():
            params[f"filter[{key}][_eq]"] = value
        return self._data("GET", "permissions", params=params) or []

    def create_permission(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("POST", "permissions", json=dict(payload))

    def delete_permission(self, permission_id: Any) -> Dict[str, Any]:
        return self._request("DELETE", f"permissions/{permission_id}")

    # ------------------------------------------------------------------
    # Flows
    # ------------------------------------------------------------------
    def list_flows(self, *, params: Optional[MutableMapping[str, Any]] = None) -> List[Dict[str, Any]]:
        return self._data("GET", "flows", params=params) or []

    def create_flow(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("POST", "flows", json=dict(payload))

    def update_flow(self, flow_id: str, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("PATCH", f"flows/{flow_id}", json=dict(payload))

    def create_operation(self, payload: Mapping[str, Any]) -> Dict[str, Any]:
        return self._data("POST", "operations", json=dict(payload))

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------
    def server_info(self) -> Dict[str, Any]:
        """Return ``/server/info`` (version details need an admin token)."""

        return self._data("GET", "server/info") or {}

    def ping(self) -> bool:
        response = self.session.request(
            "GET",
            self._build_url("server/ping"),
            headers={"Accept": "text/plain"},
            timeout=self.timeout,
        )
        return response.status_code == 200 and response.text.strip() == "pong"
