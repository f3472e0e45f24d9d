"""
Stdio Bridge

Wires the child process, frame reader and correlator together for one child
lifetime. The HTTP layer only talks to this class.
"""

from typing import Any, Optional

from stdio_bridge.channel.correlator import MessageCorrelator
from stdio_bridge.channel.reader import FrameReader
from stdio_bridge.configs.logging import get_logger
from stdio_bridge.configs.runtime import BridgeConfig
from stdio_bridge.exceptions import ProcessSpawnError
from stdio_bridge.process.supervisor import ChildProcess

logger = get_logger("bridge")


class StdioBridge:
    """Relays messages to a child process and correlates its responses."""

    def __init__(self, config: BridgeConfig):
        self.config = config
        self.reader = FrameReader()
        self.process = ChildProcess(
            config.command,
            config.args,
            config.env,
            on_output=self._on_output,
            on_exit=self._on_exit,
        )
        self.correlator = MessageCorrelator(self.process.write, config.request_timeout)

    async def start(self) -> None:
        try:
            await self.process.start()
        except ProcessSpawnError:
            self.correlator.on_process_exit(None)
            raise

    async def stop(self) -> None:
        await self.process.stop(self.config.shutdown_grace)

    async def send(self, message: dict, timeout: Optional[float] = None) -> Optional[dict[str, Any]]:
        """Relay one message; see MessageCorrelator.send."""
        return await self.correlator.send(message, timeout)

    def _on_output(self, chunk: bytes) -> None:
        self.reader.append(chunk)
        for message in self.reader.drain():
            self.correlator.on_inbound_message(message)

    def _on_exit(self, code: Optional[int]) -> None:
        if self.reader.pending_bytes:
            logger.warning(f"Discarding {self.reader.pending_bytes} bytes of unterminated child output")
            self.reader.clear()
        self.correlator.on_process_exit(code)
