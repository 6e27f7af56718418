"""
Admin authentication by wallet signature.

The admin proves control of the configured wallet by signing a plaintext
message with ``personal_sign`` (EIP-191). Every privileged request carries
``walletAddress``, ``signature`` and ``message``; nothing is cached between
requests.

The message is chosen by the caller, so a captured signature can be
replayed. ``message_check`` is where a server nonce or expiry check plugs in.
"""
import logging
from typing import Callable, Optional

from eth_account import Account
from eth_account.messages import encode_defunct

from app.core.exceptions import AuthenticationError, AuthorizationError, ConfigurationError

logger = logging.getLogger(__name__)

MessageCheck = Callable[[str], None]


def recover_signer(message: str, signature: str) -> str:
    """Address that produced ``signature`` over ``message``, lowercased."""
    signable = encode_defunct(text=message)
    return Account.recover_message(signable, signature=signature).lower()


class WalletSignatureVerifier:
    def __init__(self, admin_address: str, message_check: Optional[MessageCheck] = None):
        self.admin_address = (admin_address or "").strip().lower()
        self.message_check = message_check

    def verify(self, claimed_address: Optional[str], signature: Optional[str], message: Optional[str]) -> str:
        """Return the lowercased admin address if the proof holds.

        Raises ``AuthenticationError`` for missing or inconsistent proofs and
        ``AuthorizationError`` when a valid signer is not the admin.
        """
        if not all(isinstance(v, str) and v for v in (claimed_address, signature, message)):
            raise AuthenticationError("Missing authentication credentials")

        if self.message_check is not None:
            self.message_check(message)

        try:
            recovered = recover_signer(message, signature)
        except Exception as e:
            # Malformed hex, wrong length, bad v/r/s all land here
            logger.warning("Signature recovery failed: %s", e)
            raise AuthenticationError("Authentication failed")

        if recovered != claimed_address.strip().lower():
            raise AuthenticationError("Invalid signature")

        if not self.admin_address:
            raise ConfigurationError("Admin wallet not configured")

        if recovered != self.admin_address:
            raise AuthorizationError("Unauthorized: Admin access required")

        return recovered
