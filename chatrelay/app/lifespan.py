"""
Relay startup and shutdown.

Startup connects the registry and the bus (either may fail; the relay then
runs local-only), registers already-online players, and starts the heartbeat
and the main-context dispatcher.

Shutdown order matters: the heartbeat stops and the main-context queue is
drained before presence is cleaned up, so no queued callback or late beat can
write a set that was just deleted.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ..container import RelayContainer
from ..exceptions import ErrorContext, TransportUnavailableError, log_relay_error
from ..structured_logging.enhanced_logging_config import get_logger, setup_logging

logger = get_logger("chatrelay.lifespan")

PENDING_WRITE_TIMEOUT = 2.0


async def start_relay(container: RelayContainer) -> None:
    """Bring the relay up. Transport failures leave it running local-only."""
    config = container.config
    setup_logging(config.logging, instance_id=container.instance_id)
    logger.info("Starting chatrelay", instance_id=container.instance_id)

    await container.dispatcher.start()

    if not config.relay.enabled:
        logger.warning("Cross-instance relay disabled, running local-only")
        container.started = True
        return

    registry_ok = await container.registry.connect()
    bus_ok = await container.bus.connect() if container.bus is not None else False
    context = ErrorContext(instance_id=container.instance_id)
    if not registry_ok:
        log_relay_error(
            TransportUnavailableError(
                "Presence registry unavailable at startup, remote lookups will report not found",
                transport="redis",
                context=context,
            ),
            level="warning",
        )
    if not bus_ok:
        log_relay_error(
            TransportUnavailableError(
                "Bus unavailable at startup, remote delivery disabled until reconnect",
                transport="nats",
                context=context,
            ),
            level="warning",
        )

    await container.vanish_bridge.register_online_players()
    await container.heartbeat.start()

    container.started = True
    logger.info("chatrelay started", instance_id=container.instance_id, registry_ok=registry_ok, bus_ok=bus_ok)


async def stop_relay(container: RelayContainer) -> None:
    """
    Shut the relay down.

    Order: heartbeat, dispatcher, pending presence writes, presence cleanup,
    bus, registry.
    """
    logger.info("Stopping chatrelay", instance_id=container.instance_id)

    await container.heartbeat.stop()
    # Runs what is still queued; any presence writes it spawns are awaited next
    await container.dispatcher.stop()

    if not await container.task_manager.wait_for_pending(timeout=PENDING_WRITE_TIMEOUT):
        await container.task_manager.cancel_all()

    if container.config.relay.enabled:
        await container.registry.cleanup()

    if container.bus is not None:
        await container.bus.disconnect()
    await container.registry.disconnect()

    container.started = False
    logger.info("chatrelay stopped", instance_id=container.instance_id)


@asynccontextmanager
async def relay_lifespan(container: RelayContainer) -> AsyncIterator[RelayContainer]:
    """Run the relay for the duration of the context."""
    await start_relay(container)
    try:
        yield container
    finally:
        try:
            await stop_relay(container)
        except asyncio.CancelledError:
            logger.warning("chatrelay shutdown interrupted", instance_id=container.instance_id)
            raise
