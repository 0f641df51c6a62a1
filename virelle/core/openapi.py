"""Documents the caller-identity header in the generated OpenAPI schema."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from virelle.core.config import settings

USER_ID_SCHEME = "UserIdHeader"


def apply_openapi_customizations(app: FastAPI) -> None:
    """Require the user id header on every operation except ``/health``."""

    build_schema = app.openapi

    def openapi() -> dict[str, Any]:
        if app.openapi_schema:
            return app.openapi_schema

        schema = build_schema()
        schema.setdefault("components", {}).setdefault("securitySchemes", {})[USER_ID_SCHEME] = {
            "type": "apiKey",
            "in": "header",
            "name": settings.app.user_id_header,
            "description": "Caller's user id, forwarded by the upstream gateway.",
        }
        schema["security"] = [{USER_ID_SCHEME: []}]
        for operation in schema.get("paths", {}).get("/health", {}).values():
            operation["security"] = []

        app.openapi_schema = schema
        return schema

    app.openapi = openapi  # type: ignore[assignment]
