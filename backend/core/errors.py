"""
Error Taxonomy
Every failure the core raises is one of these.

    MonitorError
    ├── UpstreamUnavailable  → provider call failed / malformed payload (502)
    ├── NotFound             → unsupported symbol or unknown record   (404)
    ├── ValidationError      → bad alert-creation input               (400)
    └── StoreFailure         → persistence layer error                (500)
"""


class MonitorError(Exception):
    """Base class for service errors"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class UpstreamUnavailable(MonitorError):
    """Price provider failed, timed out, or returned something unusable"""

    status_code = 502

    def __init__(self, message: str, endpoint: str = None, status: int = None):
        super().__init__(message)
        self.endpoint = endpoint
        self.status = status


class NotFound(MonitorError):
    status_code = 404


class ValidationError(MonitorError):
    status_code = 400

    def __init__(self, message: str, fields: list = None):
        super().__init__(message)
        self.fields = fields or []

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.fields:
            body["fields"] = self.fields
        return body


class StoreFailure(MonitorError):
    status_code = 500
