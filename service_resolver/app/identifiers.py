"""
did:hpass identifier parsing.
"""

import re
from dataclasses import dataclass

from shared.errors import IdentifierMalformed

DID_HPASS_PATTERN = re.compile(r"^did:hpass:([0-9A-Fa-f]{60,65}):([0-9A-Fa-fts]{60,65})$")
DELIMITER = ":"


@dataclass(frozen=True)
class Identifier:
    """A validated did:hpass identifier."""

    did: str
    network_id: str
    resource_id: str

    @classmethod
    def parse(cls, did: str) -> "Identifier":
        match = DID_HPASS_PATTERN.fullmatch(did or "")
        if match is None:
            raise IdentifierMalformed(did)
        return cls(did=did, network_id=match.group(1), resource_id=match.group(2))

    @property
    def registry_key(self) -> str:
        """Everything before the resource-id; substituted into registry URLs."""
        return self.did[:self.did.rindex(DELIMITER)]

    def __str__(self) -> str:
        return self.did
