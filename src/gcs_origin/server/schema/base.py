from pydantic.dataclasses import dataclass


@dataclass
class ErrorResponse:
    error: str
    path: str | None = None
    message: str | None = None

    def serialize(self):
        data = {"error": self.error}
        if self.path is not None:
            data["path"] = self.path
        if self.message is not None:
            data["message"] = self.message
        return data


@dataclass
class HealthResponse:
    status: str
    timestamp: str
    version: str
