import base64
import hashlib
import secrets
import string
from dataclasses import dataclass

from request_auth.exceptions import CryptoUnavailable

# RFC 7636 unreserved characters
VERIFIER_ALPHABET = string.ascii_letters + string.digits + "-._~"
VERIFIER_LENGTH = 64


@dataclass(frozen=True)
class PKCEPair:
    code_verifier: str
    code_challenge: str
    method: str = "S256"


def generate_code_verifier(length: int = VERIFIER_LENGTH) -> str:
    """Generate a PKCE code verifier (43-128 characters)."""
    if not 43 <= length <= 128:
        raise ValueError("Code verifier length must be between 43 and 128")

    try:
        return "".join(secrets.choice(VERIFIER_ALPHABET) for _ in range(length))
    except NotImplementedError as e:
        raise CryptoUnavailable("No secure random source available") from e


def calculate_s256_challenge(verifier: str) -> str:
    sha256_digest = hashlib.sha256(verifier.encode("ascii")).digest()

    challenge = base64.urlsafe_b64encode(sha256_digest).rstrip(b"=").decode("ascii")

    return challenge


def generate_pkce_pair() -> PKCEPair:
    verifier = generate_code_verifier()

    return PKCEPair(
        code_verifier=verifier,
        code_challenge=calculate_s256_challenge(verifier),
    )
