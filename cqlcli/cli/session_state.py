"""In-memory state of one interactive or batch session."""

import enum
from dataclasses import dataclass, field
from typing import List, Optional

from cqlcli.db.types import Credentials, HostAddress, TLSConfig

CONTINUATION_PROMPT = "   ...> "


class OutputFormat(str, enum.Enum):
    TABLE = "table"
    JSON = "json"
    CSV = "csv"

    @classmethod
    def parse(cls, value: str) -> "OutputFormat":
        """Parse a format name. Raises ValueError for unknown names."""
        try:
            return cls(value.strip().lower())
        except ValueError:
            choices = ", ".join(f.value for f in cls)
            raise ValueError(f"Unknown output format {value!r} (choose {choices})")


@dataclass
class SessionState:
    """Active keyspace, output format and connection parameters.

    Owned by the top-level loop. Only ``\\format`` and a successful ``USE``
    change it after startup.
    """

    active_keyspace: Optional[str] = None
    output_format: OutputFormat = OutputFormat.TABLE
    hosts: List[HostAddress] = field(default_factory=list)
    credentials: Optional[Credentials] = None
    tls: Optional[TLSConfig] = None

    def prompt(self) -> str:
        if self.active_keyspace:
            return f"cqlsh:{self.active_keyspace}> "
        return "cqlsh> "

    @classmethod
    def from_settings(cls, settings, output_format: Optional[str] = None):
        return cls(
            output_format=OutputFormat.parse(output_format or settings.output_format),
            hosts=settings.hosts,
            credentials=settings.credentials,
            tls=settings.tls,
        )
