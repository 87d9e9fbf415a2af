"""Client configuration loader."""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from tttmirror.core.keys import PublicKey
from tttmirror.core.state import LIVENESS_TIMEOUT_MS


@dataclass
class ClientConfig:
    program_id: PublicKey | None = None
    program_id_env: str | None = None   # env var holding the program id (hex)
    record_size: int = 256              # bytes allocated per game record
    keep_alive_interval_ms: int = 1000
    liveness_timeout_ms: int = LIVENESS_TIMEOUT_MS
    keep_alive_timeout_s: float | None = None  # None = wait indefinitely

    def resolve_program_id(self) -> PublicKey | None:
        """Return the configured program id, falling back to ``program_id_env``."""
        if self.program_id is not None:
            return self.program_id
        if self.program_id_env:
            value = os.environ.get(self.program_id_env)
            if value:
                return PublicKey.from_hex(value.strip())
        return None


@dataclass
class TelemetryConfig:
    output_dir: Path | None = None


@dataclass
class MirrorConfig:
    client: ClientConfig = field(default_factory=ClientConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)


def load_config(path: Path) -> MirrorConfig:
    """Load client config from YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    c = raw.get("client", {})
    program_id = c.get("program_id")
    timeout = c.get("keep_alive_timeout_s")

    client = ClientConfig(
        program_id=PublicKey.from_hex(program_id) if program_id else None,
        program_id_env=c.get("program_id_env"),
        record_size=c.get("record_size", 256),
        keep_alive_interval_ms=c.get("keep_alive_interval_ms", 1000),
        liveness_timeout_ms=c.get("liveness_timeout_ms", LIVENESS_TIMEOUT_MS),
        keep_alive_timeout_s=float(timeout) if timeout is not None else None,
    )

    # Parse optional telemetry config
    telemetry = TelemetryConfig()
    t_raw = raw.get("telemetry")
    if t_raw and t_raw.get("output_dir"):
        telemetry.output_dir = Path(t_raw["output_dir"])

    return MirrorConfig(client=client, telemetry=telemetry)
