"""Entry point for running kilo-acp as an ACP agent.

Usage:
    python -m kiloacp
    kilo-acp

This starts the ACP agent listening on stdin/stdout for JSON-RPC
messages from an ACP client (Zed, Rider, etc.). Each prompt runs
``kilo run --format json <prompt>`` in the session's working directory.
"""

import os

from kiloacp.config import Config, load_config
from kiloacp.logging import get_logger, setup_logging

log = get_logger()


async def _main(config: Config) -> None:
    """Async entry point with proper cleanup."""
    import asyncio
    import json

    from acp.agent.connection import AgentSideConnection
    from acp.connection import StreamDirection, StreamEvent
    from acp.stdio import stdio_streams

    from kiloacp.transport.acp.agent import create_agent

    agent = create_agent(config)
    log.info("Agent ready, kilo binary=%s", agent.runner.binary)

    def log_message(event: StreamEvent) -> None:
        """Log ACP traffic for debugging."""
        direction = "<<" if event.direction == StreamDirection.INCOMING else ">>"
        method = event.message.get("method", "response")
        msg_id = event.message.get("id", "-")

        if method == "response":
            result = event.message.get("result", {})
            stop_reason = (
                result.get("stopReason", "n/a") if isinstance(result, dict) else "n/a"
            )
            error = event.message.get("error")
            if error:
                log.debug("%s response (id=%s) ERROR: %s", direction, msg_id, error)
            else:
                log.debug("%s response (id=%s) stop_reason=%s", direction, msg_id, stop_reason)
        elif method == "session/update":
            update = event.message.get("params", {}).get("update", {})
            log.debug(
                "%s %s type=%s", direction, method, update.get("sessionUpdate", "unknown")
            )
        else:
            msg_str = json.dumps(event.message, default=str)
            preview = msg_str[:200] + "..." if len(msg_str) > 200 else msg_str
            log.debug("%s %s (id=%s) %s", direction, method, msg_id, preview)

    output_stream, input_stream = await stdio_streams()
    conn = AgentSideConnection(
        agent,
        input_stream,
        output_stream,
        listening=False,
    )
    conn._conn.add_observer(log_message)

    log.info("Ready to accept ACP requests")

    try:
        await conn.listen()
    except (BrokenPipeError, ConnectionResetError):
        log.info("Pipe closed, shutting down...")
    finally:
        log.info("Connection closed, stopping kilo processes...")
        try:
            await asyncio.wait_for(agent.close(), timeout=5.0)
        except asyncio.TimeoutError:
            log.warning("Agent shutdown timed out")
        try:
            await asyncio.wait_for(conn.close(), timeout=2.0)
        except asyncio.TimeoutError:
            log.warning("Connection close timed out, forcing exit")
        except Exception as e:
            log.warning("Error during cleanup: %s", e)


def main() -> None:
    """Run the kilo-acp agent."""
    import asyncio

    # Load config before logging so we can use config.logging settings;
    # the launch directory supplies the project-level layer
    config = load_config(session_root=os.getcwd())
    setup_logging(config.logging)

    log.info("Starting kilo-acp (binary=%s, pid=%d)", config.kilo.binary, os.getpid())

    try:
        asyncio.run(_main(config))
    except KeyboardInterrupt:
        pass
    finally:
        log.info("Exiting...")


if __name__ == "__main__":
    main()
