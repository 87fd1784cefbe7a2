"""
Unit tests for signer identities.
"""

import json
import pytest
import sys
from pathlib import Path

# Add parent to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import base58
from solders.keypair import Keypair

from swapkit.core.errors import InvalidRequest, WalletSigningRequired
from swapkit.core.signer import (
    Signable,
    ViewOnly,
    pubkey_of,
    require_signable,
    signer_from_base58,
    signer_from_keyfile,
    view_only,
)


class TestSignerConstruction:
    """Test building signers from key material."""

    def test_from_base58_secret_key(self):
        """A 64-byte base58 secret key yields the same keypair."""
        keypair = Keypair()
        signer = signer_from_base58(base58.b58encode(bytes(keypair)).decode())
        assert signer.pubkey == keypair.pubkey()

    def test_from_base58_seed(self):
        """A 32-byte seed is accepted."""
        seed = bytes(range(32))
        signer = signer_from_base58(base58.b58encode(seed).decode())
        assert signer.pubkey == Keypair.from_seed(seed).pubkey()

    def test_wrong_length_rejected(self):
        """Other key lengths are invalid."""
        with pytest.raises(InvalidRequest):
            signer_from_base58(base58.b58encode(b"short").decode())

    def test_invalid_base58_rejected(self):
        """Characters outside the base58 alphabet are invalid."""
        with pytest.raises(InvalidRequest):
            signer_from_base58("0OIl")

    def test_from_keyfile(self, tmp_path):
        """solana-keygen JSON keyfiles are supported."""
        keypair = Keypair()
        keyfile = tmp_path / "id.json"
        keyfile.write_text(json.dumps(list(bytes(keypair))))

        assert signer_from_keyfile(keyfile).pubkey == keypair.pubkey()

    def test_missing_keyfile(self, tmp_path):
        """A missing keyfile is invalid."""
        with pytest.raises(InvalidRequest):
            signer_from_keyfile(tmp_path / "nope.json")


class TestSignerVariants:
    """Test Signable/ViewOnly dispatch."""

    def test_require_signable(self):
        """Signable returns its keypair."""
        keypair = Keypair()
        assert require_signable(Signable(keypair)) is keypair

    def test_view_only_cannot_sign(self):
        """ViewOnly raises WalletSigningRequired."""
        with pytest.raises(WalletSigningRequired):
            require_signable(ViewOnly(Keypair().pubkey()))

    def test_pubkey_of_accepts_every_reference(self):
        """Signers, pubkeys and strings resolve to the same key."""
        keypair = Keypair()
        address = str(keypair.pubkey())
        assert pubkey_of(Signable(keypair)) == keypair.pubkey()
        assert pubkey_of(view_only(address)) == keypair.pubkey()
        assert pubkey_of(keypair.pubkey()) == keypair.pubkey()
        assert pubkey_of(address) == keypair.pubkey()

    def test_view_only_invalid_address(self):
        """Malformed addresses are invalid."""
        with pytest.raises(InvalidRequest):
            view_only("not-an-address")
