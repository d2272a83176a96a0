from __future__ import annotations


class OriginSyncError(RuntimeError):
    pass


class ConfigError(OriginSyncError):
    pass


class ValidationError(OriginSyncError):
    pass


class AddressResolutionError(OriginSyncError):
    pass


class RemoteAPIError(OriginSyncError):
    def __init__(self, message: str, status_code: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code

    @property
    def not_found(self) -> bool:
        if self.status_code == 404:
            return True
        text = f"{self.code or ''} {self}".lower()
        return "notfound" in text or "not found" in text
