"""Error taxonomy shared by the webhook, the scheduled pass and the store.

Every error carries the HTTP status the webhook answers with, so ``main.py``
can turn any of them into a well-formed JSON response.
"""

from __future__ import annotations


class GratefulError(Exception):
    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__

    def __str__(self) -> str:
        return self.message


# ── Unauthenticated ─────────────────────────────────────────────────────


class Unauthenticated(GratefulError):
    status_code = 401


class VerificationFailed(Unauthenticated):
    def __init__(self, reason: str = "Verification failed."):
        super().__init__(reason)


# ── Malformed input ─────────────────────────────────────────────────────


class MalformedInput(GratefulError):
    status_code = 400


class HeaderNotFound(MalformedInput):
    def __init__(self, header: str):
        super().__init__(f"Header '{header}' not found.")
        self.header = header


class InvalidPayload(MalformedInput):
    def __init__(self, detail: str):
        super().__init__(f"Invalid payload provided: {detail}.")


# ── Upstream failures ───────────────────────────────────────────────────


class UpstreamFailure(GratefulError):
    status_code = 502


class StoreError(UpstreamFailure):
    pass


class DiscordAPIError(UpstreamFailure):
    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


# ── Contract violations ─────────────────────────────────────────────────


class ContractViolation(GratefulError):
    """The other side of a protocol did something we never agreed on."""

    status_code = 400
