import hashlib

import base58
from Crypto.Hash import RIPEMD160
from ecdsa import SECP256k1, SigningKey, VerifyingKey
from ecdsa.util import sigdecode_string, sigencode_string

from goldmand.errors import InvalidKeyError

WIF_VERSION = 0x80
# 27 + 4 marks a compressed public key, recovery id is added on top
COMPACT_HEADER = 27 + 4


def sha256(data):
    return hashlib.sha256(data).digest()


def ripemd160(data):
    return RIPEMD160.new(data=data).digest()


def _b58decode(text):
    try:
        return base58.b58decode(text)
    except ValueError as e:
        raise InvalidKeyError(f"invalid base58 string: {e}")


def _b58encode(data):
    return base58.b58encode(data).decode("ascii")


def decode_private_key(key):
    """Returns the 32 byte secret of a legacy WIF or PVT_K1_ key"""
    if not key or not isinstance(key, str):
        raise InvalidKeyError("empty private key")
    key = key.strip()

    if key.startswith("PVT_K1_"):
        raw = _b58decode(key[len("PVT_K1_"):])
        secret, checksum = raw[:-4], raw[-4:]
        if ripemd160(secret + b"K1")[:4] != checksum:
            raise InvalidKeyError("checksum mismatch")
    else:
        raw = _b58decode(key)
        if len(raw) != 37 or raw[0] != WIF_VERSION:
            raise InvalidKeyError("not a WIF private key")
        secret, checksum = raw[1:33], raw[33:]
        if sha256(sha256(raw[:33]))[:4] != checksum:
            raise InvalidKeyError("checksum mismatch")

    if len(secret) != 32:
        raise InvalidKeyError("private key must be 32 bytes")
    return secret


def _signing_key(key):
    secret = key if isinstance(key, bytes) else decode_private_key(key)
    try:
        return SigningKey.from_string(secret, curve=SECP256k1)
    except Exception as e:
        raise InvalidKeyError(f"invalid secp256k1 key: {e}")


def public_key(key, legacy=True):
    """EOS... (legacy) or PUB_K1_... public key of a private key"""
    point = _signing_key(key).get_verifying_key().to_string("compressed")
    if legacy:
        return "EOS" + _b58encode(point + ripemd160(point)[:4])
    return "PUB_K1_" + _b58encode(point + ripemd160(point + b"K1")[:4])


def is_canonical(sig):
    r, s = sig[:32], sig[32:]
    return (
        not r[0] & 0x80 and not (r[0] == 0 and not r[1] & 0x80)
        and not s[0] & 0x80 and not (s[0] == 0 and not s[1] & 0x80)
    )


def _recovery_id(sig, digest, point):
    candidates = VerifyingKey.from_public_key_recovery_with_digest(
        sig, digest, SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
    )
    for i, candidate in enumerate(candidates):
        if candidate.to_string("compressed") == point:
            return i
    raise InvalidKeyError("could not compute recovery id")


def sign_digest(key, digest):
    """Canonical SIG_K1_ signature of a 32 byte sha256 digest"""
    sk = _signing_key(key)
    point = sk.get_verifying_key().to_string("compressed")

    attempt = 0
    while True:
        entropy = attempt.to_bytes(32, "big") if attempt else b""
        sig = sk.sign_digest_deterministic(
            digest, hashfunc=hashlib.sha256, sigencode=sigencode_string, extra_entropy=entropy
        )
        if is_canonical(sig):
            break
        attempt += 1

    compact = bytes([COMPACT_HEADER + _recovery_id(sig, digest, point)]) + sig
    return "SIG_K1_" + _b58encode(compact + ripemd160(compact + b"K1")[:4])


def recover_public_key(signature, digest):
    """Inverse of sign_digest, returns the legacy EOS public key"""
    if not signature.startswith("SIG_K1_"):
        raise InvalidKeyError("not a K1 signature")
    raw = _b58decode(signature[len("SIG_K1_"):])
    compact, checksum = raw[:65], raw[65:]
    if len(compact) != 65 or ripemd160(compact + b"K1")[:4] != checksum:
        raise InvalidKeyError("checksum mismatch")
    recid = compact[0] - COMPACT_HEADER
    candidates = VerifyingKey.from_public_key_recovery_with_digest(
        compact[1:], digest, SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
    )
    point = candidates[recid].to_string("compressed")
    return "EOS" + _b58encode(point + ripemd160(point)[:4])
