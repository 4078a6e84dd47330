"""Ed25519 request signature check.

Discord signs ``timestamp || body`` with the application's key; the body must
not be trusted (or even parsed) before this passes.
"""

from __future__ import annotations

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import VerifyKey

from app.errors import VerificationFailed

SIGNATURE_HEADER = "x-signature-ed25519"
TIMESTAMP_HEADER = "x-signature-timestamp"


def verify_signature(public_key: str, signature: str, timestamp: str, body: bytes | str) -> None:
    """Raise ``VerificationFailed`` unless *signature* signs ``timestamp + body``.

    Malformed hex, wrong-length keys and wrong-length signatures all count as a
    failed verification rather than a crash.
    """
    if isinstance(body, str):
        body = body.encode()
    try:
        key = VerifyKey(bytes.fromhex(public_key))
        sig = bytes.fromhex(signature)
    except (ValueError, TypeError, CryptoError) as exc:
        raise VerificationFailed(f"Malformed key or signature: {exc}") from exc

    try:
        key.verify(timestamp.encode() + body, sig)
    except BadSignatureError as exc:
        raise VerificationFailed("Invalid signature provided.") from exc
    except (ValueError, TypeError, CryptoError) as exc:
        raise VerificationFailed(f"Invalid signature provided: {exc}") from exc
