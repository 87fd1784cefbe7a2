"""
Signer identities for SwapKit.

A signer is either Signable (private key material present) or ViewOnly
(public key only). Execution requires Signable; balance lookups accept
either.
"""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Union

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from swapkit.core.errors import InvalidRequest, WalletSigningRequired


@dataclass(frozen=True)
class Signable:
    """Identity holding a keypair."""
    keypair: Keypair

    @property
    def pubkey(self) -> Pubkey:
        return self.keypair.pubkey()

    def __repr__(self) -> str:
        return f"<Signable {self.pubkey}>"


@dataclass(frozen=True)
class ViewOnly:
    """Identity holding only a public key."""
    pubkey: Pubkey

    def __repr__(self) -> str:
        return f"<ViewOnly {self.pubkey}>"


Signer = Union[Signable, ViewOnly]
AccountRef = Union[Signable, ViewOnly, Pubkey, str]


def _keypair_from_bytes(key_bytes: bytes) -> Keypair:
    # Solana private keys are 64 bytes (32 private + 32 public)
    # or 32 bytes (seed only, public derived)
    try:
        if len(key_bytes) == 64:
            return Keypair.from_bytes(key_bytes)
        if len(key_bytes) == 32:
            return Keypair.from_seed(key_bytes)
    except ValueError as e:
        raise InvalidRequest(f"Invalid private key: {e}")
    raise InvalidRequest(f"Invalid key length: {len(key_bytes)} bytes")


def signer_from_base58(private_key_base58: str) -> Signable:
    """
    Build a Signable from a base58 private key.

    Raises:
        InvalidRequest: if the key cannot be decoded
    """
    try:
        key_bytes = base58.b58decode(private_key_base58.strip())
    except ValueError as e:
        raise InvalidRequest(f"Private key is not valid base58: {e}")

    return Signable(_keypair_from_bytes(key_bytes))


def signer_from_keyfile(path: Union[str, Path]) -> Signable:
    """
    Build a Signable from a solana-keygen JSON keyfile (array of byte values).

    Raises:
        InvalidRequest: if the file is not a valid keyfile
    """
    keyfile = Path(path).expanduser()
    if not keyfile.exists():
        raise InvalidRequest(f"Keyfile not found: {keyfile}")

    try:
        with open(keyfile, "r") as f:
            values = json.load(f)
        key_bytes = bytes(values)
    except (ValueError, TypeError) as e:
        raise InvalidRequest(f"Invalid keyfile {keyfile}: {e}")

    return Signable(_keypair_from_bytes(key_bytes))


def view_only(address: str) -> ViewOnly:
    """Build a ViewOnly identity from a base58 address."""
    return ViewOnly(parse_pubkey(address))


def parse_pubkey(address: str) -> Pubkey:
    try:
        return Pubkey.from_string(address)
    except ValueError as e:
        raise InvalidRequest(f"Invalid public key {address!r}: {e}")


def pubkey_of(account: AccountRef) -> Pubkey:
    """Public key of any account reference."""
    if isinstance(account, (Signable, ViewOnly)):
        return account.pubkey
    if isinstance(account, Pubkey):
        return account
    return parse_pubkey(account)


def require_signable(signer: Signer) -> Keypair:
    """
    Return the signer's keypair.

    Raises:
        WalletSigningRequired: for ViewOnly identities
    """
    if isinstance(signer, Signable):
        return signer.keypair

    raise WalletSigningRequired(
        f"Signing for {signer.pubkey} requires a private key. "
        f"Use a wallet adapter for view-only identities."
    )
