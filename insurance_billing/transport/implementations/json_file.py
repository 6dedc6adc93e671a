"""
NDJSON file transport: writes envelopes as newline-delimited JSON per destination.
"""

import json
from pathlib import Path
from typing import Any

import structlog

from insurance_billing.errors import TransientInfrastructureError
from insurance_billing.transport.envelope import MessageEnvelope

logger = structlog.get_logger()


class JsonFileTransport:
    """
    Writes envelopes as NDJSON (one JSON object per line), one file per destination.

    File naming: {output_dir}/{destination}.ndjson
    """

    def __init__(self, output_dir: str) -> None:
        self._output_dir = Path(output_dir)
        self._handles: dict[str, Any] = {}
        self._write_count = 0

    def _get_handle(self, destination: str) -> Any:
        if destination not in self._handles:
            # Sanitize destination for filename
            safe_name = destination.replace("/", "_").replace("$", "")
            self._output_dir.mkdir(parents=True, exist_ok=True)
            path = self._output_dir / f"{safe_name}.ndjson"
            self._handles[destination] = open(path, "a", encoding="utf-8")  # noqa: SIM115
        return self._handles[destination]

    def _write(self, destination: str, envelopes: list[MessageEnvelope]) -> None:
        try:
            handle = self._get_handle(destination)
            for envelope in envelopes:
                handle.write(json.dumps(envelope.to_dict(), separators=(",", ":")) + "\n")
        except OSError as e:
            logger.warning("json_file_write_failed", destination=destination, error=str(e))
            raise TransientInfrastructureError(
                "Transport unavailable",
                operation="send",
                destination=destination,
            ) from e
        self._write_count += len(envelopes)

    def send(self, envelope: MessageEnvelope) -> None:
        self._write(envelope.destination, [envelope])

    def send_batch(self, destination: str, envelopes: list[MessageEnvelope]) -> None:
        self._write(destination, envelopes)

    def flush(self) -> None:
        for handle in self._handles.values():
            handle.flush()

    def close(self) -> None:
        for handle in self._handles.values():
            handle.close()
        self._handles.clear()

    @property
    def stats(self) -> dict[str, int]:
        return {
            "json_file_writes": self._write_count,
            "open_files": len(self._handles),
        }
