"""Static allowlist of username/password pairs."""

from dataclasses import dataclass
from typing import Iterable

from gateway.domain.errors import ConfigError

CREDENTIAL_SEPARATOR = ":"


@dataclass(frozen=True)
class Credential:
    """A single allowed username/password pair."""

    username: str
    password: str


@dataclass(frozen=True)
class CredentialSet:
    """Ordered, read-only collection of allowed credentials."""

    credentials: tuple[Credential, ...] = ()

    def __len__(self) -> int:
        return len(self.credentials)

    def is_authorized(self, username: str, password: str) -> bool:
        """Return True when some credential matches both fields exactly."""
        for credential in self.credentials:
            if credential.username == username and credential.password == password:
                return True
        return False


def parse_credential(entry: str) -> Credential:
    """Parse a ``user:password`` entry, rejecting anything else."""
    parts = entry.split(CREDENTIAL_SEPARATOR)
    if len(parts) != 2:
        raise ConfigError(
            f"invalid authorize entry {parts[0]!r}: expected user:password"
        )
    username, password = parts
    return Credential(username=username, password=password)


def configure(entries: Iterable[str]) -> CredentialSet:
    """Build a credential set; a single malformed entry fails the whole set."""
    return CredentialSet(tuple(parse_credential(entry) for entry in entries))
