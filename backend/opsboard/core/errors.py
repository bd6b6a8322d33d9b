"""
Error taxonomy for the ingestion and KPI endpoints.

Every HTTP-facing error carries its status code and renders the
`{"ok": false, ...}` envelope used by all routes. `MappingConfigError` and
`RunStateError` never reach a client: the first is turned into a
normalization skip, the second is a programming error.
"""

from __future__ import annotations


class OpsboardError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"ok": False, "error": self.message}


class AuthenticationError(OpsboardError):
    status_code = 401


class AuthorizationError(OpsboardError):
    status_code = 403


class DemoReadOnlyError(OpsboardError):
    status_code = 403
    code = "DEMO_READ_ONLY"

    def __init__(self, message: str = "Demo org is read-only"):
        super().__init__(message)

    def to_body(self) -> dict:
        return {"ok": False, "code": self.code, "message": self.message}


class NotFoundError(OpsboardError):
    status_code = 404


class PersistenceError(OpsboardError):
    status_code = 400


class ValidationError(OpsboardError):
    status_code = 400


class MappingConfigError(ValueError):
    pass


class RunStateError(RuntimeError):
    pass
