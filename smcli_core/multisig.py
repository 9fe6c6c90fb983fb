"""
Multi-signature account spawn arguments.

A K-of-N multisig account is identified by the principal address computed
from its threshold and ordered participant keys.  Participant order is part
of the address: the same keys in a different order give a different account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from smcli_core.address import (
    MULTISIG_TEMPLATE,
    Address,
    check_public_key,
    compute_principal,
    encode_compact,
)
from smcli_core.errors import InvalidParticipantCount, InvalidThreshold

logger = logging.getLogger("smcli_multisig")

MIN_PARTICIPANTS = 2
# threshold is encoded as a single byte
MAX_THRESHOLD = 255


@dataclass(frozen=True)
class MultisigSpawnArguments:
    """Threshold and ordered participant keys of a multisig account."""
    required: int
    public_keys: tuple[bytes, ...] = field(default_factory=tuple)

    def encode(self) -> bytes:
        out = bytearray([self.required])
        out += encode_compact(len(self.public_keys))
        for key in self.public_keys:
            out += key
        return bytes(out)


@dataclass(frozen=True)
class MultisigSpawn:
    """Validated spawn arguments plus the resulting principal address."""
    arguments: MultisigSpawnArguments
    address: Address

    def address_string(self, hrp: str) -> str:
        return self.address.to_string(hrp)


def validate_spawn(threshold: int, participants: list[bytes]) -> MultisigSpawnArguments:
    """
    Check the inputs and freeze them into spawn arguments.

    Participant count is checked first, so ``(2, [p1])`` is a participant
    error rather than a threshold error.
    """
    participants = list(participants)
    if len(participants) < MIN_PARTICIPANTS:
        raise InvalidParticipantCount(
            "Invalid number of participants",
            details={"participants": len(participants), "min": MIN_PARTICIPANTS},
        )
    if (isinstance(threshold, bool) or not isinstance(threshold, int)
            or not 1 <= threshold <= min(len(participants), MAX_THRESHOLD)):
        raise InvalidThreshold(
            "Invalid threshold",
            details={"threshold": threshold, "participants": len(participants)},
        )
    keys = tuple(
        check_public_key(p, f"participant {i}") for i, p in enumerate(participants)
    )
    return MultisigSpawnArguments(required=threshold, public_keys=keys)


def build_spawn(threshold: int, participants: list[bytes]) -> MultisigSpawn:
    args = validate_spawn(threshold, participants)
    address = compute_principal(MULTISIG_TEMPLATE, args)
    logger.debug(f"Multisig {threshold}-of-{len(args.public_keys)} -> {address.hex()}")
    return MultisigSpawn(arguments=args, address=address)


def spawn_multisig(threshold: int, participants: list[bytes]) -> Address:
    """Principal address of a *threshold*-of-N multisig over *participants*."""
    return build_spawn(threshold, participants).address
