from typing import Dict, Optional


class ABTestError(Exception):
    pass


class LoadFailure(ABTestError):
    def __init__(self, tenant: str, cause: Optional[BaseException] = None, message: Optional[str] = None):
        self.tenant = tenant
        self.cause = cause
        if message is None:
            message = f"Failed to load experiments for tenant '{tenant}': {cause!r}"
        super().__init__(message)


class MalformedDataError(LoadFailure):
    def __init__(self, tenant: str, detail: str):
        self.detail = detail
        super().__init__(tenant, message=f"Malformed experiment data for tenant '{tenant}': {detail}")


class ReloadError(ABTestError):
    def __init__(self, failures: Dict[str, BaseException]):
        self.failures = dict(failures)
        tenants = ", ".join(sorted(self.failures))
        super().__init__(f"Reload failed for {len(self.failures)} tenant(s): {tenants}")


class CacheClosedError(ABTestError):
    def __init__(self):
        super().__init__("Experiment cache has been closed.")
