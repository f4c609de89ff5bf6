"""
Cryptographic primitives for starksign.

Covers:
  - SHA-256 / Hash160 / Keccak-256 digests
  - STARK curve parameters and point arithmetic (ecdsa ``CurveFp`` / ``PointJacobi``)
  - Pedersen hash over the STARK curve
  - STARK ECDSA signing (RFC 6979 nonces) and verification against a bare x-coordinate
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass

from Crypto.Hash import RIPEMD160, keccak
from ecdsa.ecdsa import Private_key, Public_key, RSZeroError, Signature
from ecdsa.ellipticcurve import CurveFp, PointJacobi
from ecdsa.numbertheory import SquareRootError, inverse_mod, square_root_mod_prime
from ecdsa.rfc6979 import generate_k

from starksign.errors import MalformedField, SigningFailure
from starksign.field import FIELD_PRIME


# ===================================================================
#  Digests
# ===================================================================

def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash160(data: bytes) -> bytes:
    """RIPEMD-160(SHA-256(data))."""
    return RIPEMD160.new(sha256(data)).digest()


def keccak256(data: bytes) -> bytes:
    """Ethereum's Keccak-256 (pre-NIST padding, not SHA3-256)."""
    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


# ===================================================================
#  STARK curve
# ===================================================================

ALPHA = 1
BETA = 0x6F21413EFBE40DE150E596D72F7A8C5609AD26C15C915C1F4CDFCB99CEE9E89
EC_ORDER = 0x800000000000010FFFFFFFFFFFFFFFFB781126DCAE7B2321E66A241ADC64D2F

# Upper bound (exclusive) for r, w = s^-1 and the signed digest
N_ELEMENT_BITS_ECDSA = 251
ECDSA_BOUND = 2 ** N_ELEMENT_BITS_ECDSA

# Pedersen splits each element into 248 low bits and 4 high bits
N_LOW_BITS = 248
LOW_MASK = (1 << N_LOW_BITS) - 1

SIGN_MAX_ATTEMPTS = 32

STARK_CURVE = CurveFp(FIELD_PRIME, ALPHA, BETA, 1)

GENERATOR = PointJacobi(
    STARK_CURVE,
    0x1EF15C18599971B7BECED415A40F0C7DEACFD9B0D1819E03D723D8BC943CFCA,
    0x5668060AA49730B7BE4801DF46EC62DE53ECD11ABE43A32873000C36E8DC1F,
    1,
    EC_ORDER,
    generator=True,
)

PEDERSEN_SHIFT_POINT = PointJacobi(
    STARK_CURVE,
    0x49EE3EBA8C1600700EE1B87EB599F16716B0B1022947733551FDE4050CA6804,
    0x3CA0CFE4B3BC6DDF346D49D06EA0ED34E621062C0E056C1D0405D266E10268A,
    1,
    EC_ORDER,
)

# (low-bits base, high-bits base) for the first and second input
PEDERSEN_POINTS = (
    (
        PointJacobi(
            STARK_CURVE,
            0x234287DCBAFFE7F969C748655FCA9E58FA8120B6D56EB0C1080D17957EBE47B,
            0x3B056F100F96FB21E889527D41F4E39940135DD7A6C94CC6ED0268EE89E5615,
            1,
            EC_ORDER,
            generator=True,
        ),
        PointJacobi(
            STARK_CURVE,
            0x4FA56F376C83DB33F9DAB2656558F3399099EC1DE5E3018B7A6932DBA8AA378,
            0x3FA0984C931C9E38113E0C0E47E4401562761F92A7A23B45168F4E80FF5B54D,
            1,
            EC_ORDER,
        ),
    ),
    (
        PointJacobi(
            STARK_CURVE,
            0x4BA4CC166BE8DEC764910F75B45F74B40C690C74709E90F3AA372F0BD2D6997,
            0x40301CF5C1751F4B971E46C4EDE85FCAC5C59A5CE5AE7C48151F27B24B219C,
            1,
            EC_ORDER,
            generator=True,
        ),
        PointJacobi(
            STARK_CURVE,
            0x54302DCB0E6CC1C6E44CCA8F61A63BB2CA65048D53FB325D36FF12C49A58202,
            0x1B77B3E37D13504B348046268D8AE25CE98AD783C25561A879DCC77E99C2426,
            1,
            EC_ORDER,
        ),
    ),
)


def pedersen_hash(a: int, b: int) -> int:
    """
    Two-input Pedersen hash.  Not commutative: ``pedersen_hash(a, b)`` and
    ``pedersen_hash(b, a)`` differ.

    H(a, b) = [shift + a_low*P0 + a_high*P1 + b_low*P2 + b_high*P3].x
    """
    point = PEDERSEN_SHIFT_POINT
    for value, (low_base, high_base) in zip((a, b), PEDERSEN_POINTS):
        if not isinstance(value, int) or not 0 <= value < FIELD_PRIME:
            raise MalformedField(f"Pedersen input {value!r} is outside the field")
        low, high = value & LOW_MASK, value >> N_LOW_BITS
        if low:
            point = point + low_base * low
        if high:
            point = point + high_base * high
    return point.x()


def get_public_key(private_key: int) -> int:
    """The stark key: x-coordinate of ``private_key * G``."""
    if not 0 < private_key < EC_ORDER:
        raise ValueError("Private key must be in range [1, N-1]")
    return (GENERATOR * private_key).x()


def recover_public_point(stark_key: int) -> PointJacobi:
    """Lift an x-coordinate back onto the curve (one of the two y roots)."""
    if not 0 <= stark_key < FIELD_PRIME:
        raise MalformedField("stark key is outside the field")
    y_squared = (pow(stark_key, 3, FIELD_PRIME) + ALPHA * stark_key + BETA) % FIELD_PRIME
    try:
        y = square_root_mod_prime(y_squared, FIELD_PRIME)
    except SquareRootError as exc:
        raise MalformedField(f"{hex(stark_key)} is not the x-coordinate of a curve point") from exc
    return PointJacobi(STARK_CURVE, stark_key, y, 1, EC_ORDER)


# ===================================================================
#  STARK ECDSA
# ===================================================================

@dataclass(frozen=True)
class StarkSignature:
    """An (r, s) pair over a digest."""
    r: int
    s: int

    def to_dict(self) -> dict:
        return {"r": str(self.r), "s": str(self.s)}

    def __str__(self) -> str:
        return f"{self.r},{self.s}"


def _generate_k_rfc6979(msg_hash: int, private_key: int, seed: int | None) -> int:
    # Pad a digest that is one nibble short, for parity with elliptic.js
    if 1 <= msg_hash.bit_length() % 8 <= 4 and msg_hash.bit_length() >= 248:
        msg_hash *= 16
    extra_entropy = b"" if seed is None else seed.to_bytes((seed.bit_length() + 7) // 8, "big")
    data = msg_hash.to_bytes(max(1, (msg_hash.bit_length() + 7) // 8), "big")
    return generate_k(EC_ORDER, private_key, hashlib.sha256, data, extra_entropy=extra_entropy)


def sign(msg_hash: int, private_key: int, max_attempts: int = SIGN_MAX_ATTEMPTS) -> StarkSignature:
    """
    Sign ``msg_hash`` with a STARK private scalar.

    Nonces are RFC 6979 deterministic; when a candidate violates the
    ``r, w < 2**251`` constraint the next extra-entropy seed is tried.
    Raises SigningFailure for an out-of-range digest or when no seed
    within ``max_attempts`` yields a usable signature.
    """
    if not isinstance(msg_hash, int) or not 0 <= msg_hash < ECDSA_BOUND:
        raise SigningFailure("digest must be in [0, 2**251)")
    if not 0 < private_key < EC_ORDER:
        raise SigningFailure("private key is outside the curve order")

    public = Public_key(GENERATOR, GENERATOR * private_key, verify=False)
    signer = Private_key(public, private_key)

    seed: int | None = None
    for _ in range(max_attempts):
        k = _generate_k_rfc6979(msg_hash, private_key, seed)
        seed = 1 if seed is None else seed + 1
        try:
            sig = signer.sign(msg_hash, k)
        except RSZeroError:
            continue
        if not 1 <= sig.r < ECDSA_BOUND:
            continue
        if not 1 <= inverse_mod(sig.s, EC_ORDER) < ECDSA_BOUND:
            continue
        return StarkSignature(sig.r, sig.s)
    raise SigningFailure(f"no valid signature for digest after {max_attempts} attempts")


def verify(msg_hash: int, r: int, s: int, stark_key: int) -> bool:
    """Verify (r, s) over ``msg_hash`` against a stark key (x-coordinate only)."""
    if not 0 <= msg_hash < ECDSA_BOUND:
        return False
    if not 1 <= r < ECDSA_BOUND or not 1 <= s < EC_ORDER:
        return False
    if not 1 <= inverse_mod(s, EC_ORDER) < ECDSA_BOUND:
        return False
    try:
        point = recover_public_point(stark_key)
    except MalformedField:
        return False

    # Either y root may be the signer's
    negated = PointJacobi(STARK_CURVE, point.x(), FIELD_PRIME - point.y(), 1, EC_ORDER)
    signature = Signature(r, s)
    return any(
        Public_key(GENERATOR, candidate, verify=False).verifies(msg_hash, signature)
        for candidate in (point, negated)
    )
