"""
Tests for Ed25519 signing, verification and host-level signature checks.
"""

import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from crossgate.crypto.hashing import hash_message
from crossgate.crypto.precheck import (
    Ed25519Instruction,
    VerifiedSignatures,
    run_signature_checks,
)
from crossgate.crypto.signing import MessageSigner, SignatureVerifier
from crossgate.protocol.errors import InvalidSignature
from crossgate.protocol.models import MessageSignature


class TestMessageSigner:
    """Tests for MessageSigner."""

    def test_generate_signer(self):
        signer = MessageSigner.generate()
        assert len(signer.key_id) == 16
        assert len(signer.public_key_bytes) == 32

    def test_sign_requires_digest(self):
        signer = MessageSigner.generate()
        with pytest.raises(ValueError):
            signer.sign(b"not a digest")

    def test_sign_message(self, message):
        signer = MessageSigner.generate()
        sig = signer.sign_message(message)
        assert len(sig.signature) == 64
        assert sig.signer == signer.public_key_bytes
        assert SignatureVerifier().verify(hash_message(message), sig.signature, sig.signer)

    def test_keypair_bytes_roundtrip(self):
        signer = MessageSigner.generate()
        keypair = signer.export_keypair_bytes()
        assert len(keypair) == 64
        assert MessageSigner.from_keypair_bytes(keypair).public_key_bytes == signer.public_key_bytes

    def test_keypair_with_wrong_public_half_rejected(self):
        a = MessageSigner.generate().export_keypair_bytes()
        b = MessageSigner.generate().export_keypair_bytes()
        with pytest.raises(ValueError, match="does not match"):
            MessageSigner.from_keypair_bytes(a[:32] + b[32:])

    def test_keypair_file(self, tmp_path):
        signer = MessageSigner.generate()
        path = tmp_path / "authority.json"
        path.write_text(json.dumps(list(signer.export_keypair_bytes())))
        assert MessageSigner.from_keypair_file(str(path)).public_key_bytes == signer.public_key_bytes


class TestSignatureVerifier:
    """Tests for SignatureVerifier."""

    def setup_method(self):
        self.verifier = SignatureVerifier()
        self.signer = MessageSigner.generate()
        self.digest = bytes(range(32))
        self.signature = self.signer.sign(self.digest)

    def test_valid(self):
        assert self.verifier.verify(self.digest, self.signature, self.signer.public_key_bytes)

    def test_wrong_digest(self):
        other = bytes(32)
        assert not self.verifier.verify(other, self.signature, self.signer.public_key_bytes)

    def test_wrong_key(self):
        other = MessageSigner.generate().public_key_bytes
        assert not self.verifier.verify(self.digest, self.signature, other)

    def test_truncated_digest_never_accepted(self):
        assert not self.verifier.verify(
            self.digest[:31], self.signature, self.signer.public_key_bytes
        )

    def test_bad_lengths_return_false(self):
        key = self.signer.public_key_bytes
        assert not self.verifier.verify(self.digest, self.signature[:63], key)
        assert not self.verifier.verify(self.digest, self.signature, key[:31])

    def test_tampered_signature(self):
        tampered = bytes([self.signature[0] ^ 1]) + self.signature[1:]
        assert not self.verifier.verify(self.digest, tampered, self.signer.public_key_bytes)

    def test_verify_signature_record(self):
        sig = self.signer.sign_digest(self.digest)
        assert self.verifier.verify_signature(self.digest, sig)
        assert not self.verifier.verify_signature(bytes(32), sig)


class TestSignatureChecks:
    """Tests for host-level signature check instructions."""

    def test_all_valid_confirms_each(self, message):
        digest = hash_message(message)
        sigs = [MessageSigner.generate().sign_digest(digest) for _ in range(3)]

        verified = run_signature_checks(Ed25519Instruction.for_signatures(sigs, digest))

        assert len(verified) == 3
        for sig in sigs:
            assert verified.confirms(sig, digest)

    def test_any_failure_rejects_submission(self, message):
        digest = hash_message(message)
        good = MessageSigner.generate().sign_digest(digest)
        bad = MessageSignature(signature=b"\x00" * 64, signer=good.signer)

        with pytest.raises(InvalidSignature):
            run_signature_checks(Ed25519Instruction.for_signatures([good, bad], digest))

    def test_non_digest_message_rejected(self):
        key = Ed25519PrivateKey.generate()
        public = key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
        )
        payload = b"x" * 40
        ix = Ed25519Instruction.create(key.sign(payload), public, payload)
        with pytest.raises(InvalidSignature):
            run_signature_checks([ix])

    def test_confirmation_bound_to_digest(self, message):
        digest = hash_message(message)
        sig = MessageSigner.generate().sign_digest(digest)
        verified = run_signature_checks(Ed25519Instruction.for_signatures([sig], digest))
        assert not verified.confirms(sig, bytes(32))

    def test_empty(self):
        verified = run_signature_checks([])
        assert isinstance(verified, VerifiedSignatures)
        assert len(verified) == 0
