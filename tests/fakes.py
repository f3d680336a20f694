"""In-memory gateway used behind ``httpx.MockTransport``.

The fake speaks either response envelope and can switch off pagination
and the credentials, secrets and stream route APIs, which is enough to
impersonate both gateway release lines.
"""

import json
from collections import defaultdict
from typing import Any

import httpx

from apisix_bridge.config import GatewayConfig

ADMIN_URL = "http://apisix-admin.test:9180"
CONTROL_URL = "http://apisix-control.test:9090"
API_KEY = "edd1c9f034335f136f87ad84b625c8f1"

ADMIN_PREFIX = "/apisix/admin/"
ROUTE_NOT_FOUND = {"error_msg": "404 Route Not Found"}
KEY_NOT_FOUND = {"message": "Key not found"}

COLLECTIONS = {
    "routes",
    "services",
    "upstreams",
    "consumers",
    "consumer_groups",
    "ssls",
    "global_rules",
    "plugin_configs",
    "stream_routes",
    "protos",
    "plugin_metadata",
}

HTTP_PLUGINS = ["key-auth", "basic-auth", "jwt-auth", "hmac-auth", "limit-count", "cors"]
STREAM_PLUGINS = ["ip-restriction", "limit-conn"]

PLUGIN_SCHEMAS = {
    "limit-count": {
        "type": "object",
        "properties": {
            "count": {"type": "integer"},
            "time_window": {"type": "integer"},
            "key": {"type": "string"},
            "show_limit_quota_header": {"type": "boolean"},
        },
        "required": ["count", "time_window"],
    },
    "cors": {
        "type": "object",
        "properties": {
            "allow_origins": {"type": "string"},
            "max_age": {"type": "integer"},
        },
    },
}


def make_config(**overrides: Any) -> GatewayConfig:
    """Connection settings pointing at the fake gateway."""
    return GatewayConfig(
        **{"admin_url": ADMIN_URL, "control_url": CONTROL_URL, "api_key": API_KEY, **overrides}
    )


class FakeGateway:
    """Admin and Control API backed by dicts.

    Args:
        legacy: Answer with the legacy ``node`` envelope and omit ``id``
            from entity values (ids only live in storage keys)
        pagination: Accept ``page``/``page_size``; rejected with 400 when off
        credentials: Route the consumer credentials sub-API
        secrets: Route the secrets API
        stream_routes: Stream mode enabled
        api_key: Required ``X-API-KEY`` value (None disables the check)
    """

    def __init__(
        self,
        legacy: bool = False,
        pagination: bool | None = None,
        credentials: bool | None = None,
        secrets: bool | None = None,
        stream_routes: bool = True,
        api_key: str | None = API_KEY,
        version: str | None = None,
    ):
        self.legacy = legacy
        self.pagination = (not legacy) if pagination is None else pagination
        self.credentials = (not legacy) if credentials is None else credentials
        self.secrets = (not legacy) if secrets is None else secrets
        self.stream_routes = stream_routes
        self.api_key = api_key
        self.version = version or ("2.15.3" if legacy else "3.9.1")
        self.server_info_enabled = True
        self.healthy = True

        # Single-entity GETs withhold certificate private keys
        self.omit_on_get: dict[str, tuple[str, ...]] = {"ssls": ("key",)}
        self.omit_on_list: dict[str, tuple[str, ...]] = {}

        self.store: dict[str, dict[str, dict[str, Any]]] = defaultdict(dict)
        self.requests: list[httpx.Request] = []
        self._counter = 0
        self._clock = 1_700_000_000

    # Test helpers

    def seed(self, collection: str, *entities: dict[str, Any]) -> None:
        for entity in entities:
            entity = dict(entity)
            entity.setdefault("create_time", self._tick())
            entity.setdefault("update_time", entity["create_time"])
            self.store[collection][str(entity["id"])] = entity

    def entities(self, collection: str) -> list[dict[str, Any]]:
        return list(self.store[collection].values())

    def calls(self, method: str | None = None, path: str | None = None) -> list[httpx.Request]:
        """Recorded admin requests, optionally filtered by method and admin-relative path."""
        matched = []
        for request in self.requests:
            if not request.url.path.startswith(ADMIN_PREFIX):
                continue
            if method and request.method != method:
                continue
            if path is not None and request.url.path[len(ADMIN_PREFIX) :] != path:
                continue
            matched.append(request)
        return matched

    def writes(self) -> list[httpx.Request]:
        return [r for r in self.calls() if r.method in ("POST", "PUT", "PATCH", "DELETE")]

    @staticmethod
    def body_of(request: httpx.Request) -> Any:
        return json.loads(request.content) if request.content else None

    # Transport

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == httpx.URL(CONTROL_URL).host:
            return self._control(request)

        if self.api_key and request.headers.get("X-API-KEY") != self.api_key:
            return httpx.Response(401, json={"message": "failed to check token"})

        path = request.url.path
        if not path.startswith(ADMIN_PREFIX):
            return httpx.Response(404, json=ROUTE_NOT_FOUND)
        return self._admin(request, path[len(ADMIN_PREFIX) :].strip("/").split("/"))

    def _tick(self) -> int:
        self._clock += 1
        return self._clock

    def _new_id(self) -> str:
        self._counter += 1
        return f"{self._counter:020d}"

    @staticmethod
    def _key(collection: str, entity_id: str) -> str:
        return f"/apisix/{collection}/{entity_id}"

    def _locate(self, parts: list[str]) -> tuple[str, str | None, httpx.Response | None]:
        head = parts[0]
        if head == "consumers" and len(parts) >= 3 and parts[2] == "credentials":
            if not self.credentials:
                return "", None, httpx.Response(404, json=ROUTE_NOT_FOUND)
            if parts[1] not in self.store["consumers"]:
                return "", None, httpx.Response(404, json={"message": "consumer not found"})
            return "/".join(parts[:3]), parts[3] if len(parts) > 3 else None, None
        if head == "secrets":
            if not self.secrets or len(parts) < 2:
                return "", None, httpx.Response(404, json=ROUTE_NOT_FOUND)
            return "/".join(parts[:2]), parts[2] if len(parts) > 2 else None, None
        if head == "stream_routes" and not self.stream_routes:
            return (
                "",
                None,
                httpx.Response(
                    400, json={"error_msg": "stream mode is disabled, can not add stream routes"}
                ),
            )
        if head not in COLLECTIONS:
            return "", None, httpx.Response(404, json=ROUTE_NOT_FOUND)
        return head, parts[1] if len(parts) > 1 else None, None

    def _admin(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        if parts[0] == "plugins":
            return self._plugins(request, parts[1:])

        collection, entity_id, error = self._locate(parts)
        if error is not None:
            return error

        body = self.body_of(request)
        items = self.store[collection]

        if entity_id is None:
            if request.method == "GET":
                return self._list(collection, request)
            if request.method == "POST":
                return self._write(collection, self._new_id(), body, created=True)
            return httpx.Response(405, json={"error_msg": "method not allowed"})

        if request.method == "PUT":
            return self._write(collection, entity_id, body, created=entity_id not in items)

        if entity_id not in items:
            return httpx.Response(404, json=KEY_NOT_FOUND)

        if request.method == "GET":
            omit = self.omit_on_get.get(collection, ())
            entity = items[entity_id]
            return httpx.Response(200, json=self._single(collection, entity_id, entity, omit))
        if request.method == "PATCH":
            return self._write(collection, entity_id, {**items[entity_id], **body}, created=False)
        if request.method == "DELETE":
            del items[entity_id]
            key = self._key(collection, entity_id)
            return httpx.Response(200, json={"deleted": "1", "key": key})
        return httpx.Response(405, json={"error_msg": "method not allowed"})

    def _plugins(self, request: httpx.Request, parts: list[str]) -> httpx.Response:
        if request.method != "GET" or len(parts) != 1:
            return httpx.Response(404, json=ROUTE_NOT_FOUND)
        if parts[0] == "list":
            stream = request.url.params.get("subsystem") == "stream"
            return httpx.Response(200, json=STREAM_PLUGINS if stream else HTTP_PLUGINS)
        if parts[0] not in HTTP_PLUGINS:
            return httpx.Response(400, json={"error_msg": "not found plugin name"})
        return httpx.Response(200, json=PLUGIN_SCHEMAS.get(parts[0], {"type": "object"}))

    def _write(
        self, collection: str, entity_id: str, body: Any, created: bool
    ) -> httpx.Response:
        if not isinstance(body, dict):
            return httpx.Response(400, json={"error_msg": "invalid request body"})
        existing = self.store[collection].get(entity_id, {})
        now = self._tick()
        entity = {k: v for k, v in body.items() if k not in ("create_time", "update_time")}
        entity["id"] = entity_id
        entity["create_time"] = existing.get("create_time", now)
        entity["update_time"] = now
        self.store[collection][entity_id] = entity
        status = 201 if created else 200
        return httpx.Response(status, json=self._single(collection, entity_id, entity))

    def _value(self, entity: dict[str, Any], omit: tuple[str, ...] = ()) -> dict[str, Any]:
        value = {k: v for k, v in entity.items() if k not in omit}
        if self.legacy:
            value.pop("id", None)
        return value

    def _single(
        self, collection: str, entity_id: str, entity: dict[str, Any], omit: tuple[str, ...] = ()
    ) -> dict[str, Any]:
        key = self._key(collection, entity_id)
        if self.legacy:
            return {"action": "get", "node": {"key": key, "value": self._value(entity, omit)}}
        return {"key": key, "value": self._value(entity, omit)}

    def _list(self, collection: str, request: httpx.Request) -> httpx.Response:
        params = dict(request.url.params)
        paging = {"page", "page_size"} & params.keys()
        if paging and not self.pagination:
            return httpx.Response(
                400,
                json={"error_msg": "invalid configuration: additional properties forbidden"},
            )

        filters = {k: v for k, v in params.items() if k not in ("page", "page_size")}
        entities = [
            entity
            for entity in self.store[collection].values()
            if all(str(entity.get(k)) == v for k, v in filters.items())
        ]
        total = len(entities)
        window, has_more = entities, False
        if paging:
            page = int(params.get("page", 1))
            size = int(params.get("page_size", 10))
            start = (page - 1) * size
            window = entities[start : start + size]
            has_more = start + size < total

        omit = self.omit_on_list.get(collection, ())
        nodes = [
            {
                "key": self._key(collection, entity["id"]),
                "value": self._value(entity, omit),
                "createdIndex": 1,
                "modifiedIndex": 1,
            }
            for entity in window
        ]

        if self.legacy:
            return httpx.Response(
                200,
                json={
                    "action": "get",
                    "count": total,
                    # Empty directories serialize as an object
                    "node": {"dir": True, "key": f"/apisix/{collection}", "nodes": nodes or {}},
                },
            )
        return httpx.Response(200, json={"total": total, "list": nodes, "has_more": has_more})

    def _control(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == "/v1/healthcheck":
            if not self.healthy:
                return httpx.Response(503, json={"error_msg": "unhealthy"})
            return httpx.Response(200, json=[])
        if path == "/v1/server_info" and self.server_info_enabled:
            return httpx.Response(
                200,
                json={
                    "hostname": "apisix-test",
                    "version": self.version,
                    "up_time": 42,
                    "boot_time": 1_700_000_000,
                    "id": "9e5b2c4a-6d0f-4c1e-9d5a-0c2f3b1e7a11",
                    "etcd_version": "3.5.0",
                },
            )
        if path == "/v1/plugins":
            return httpx.Response(200, json=[{"name": "key-auth", "priority": 2500}])
        if path == "/v1/schema":
            return httpx.Response(200, json={"main": {"route": {}}, "plugins": {}})
        return httpx.Response(404, json=ROUTE_NOT_FOUND)
