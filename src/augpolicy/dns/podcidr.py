"""Pod CIDR detection for the dynamic denylist."""

import asyncio
import logging
from datetime import timedelta

from augpolicy.core.errors import FilterConfigurationError, InventoryListError
from augpolicy.core.interfaces import NodeInventory
from augpolicy.dns.filter import IPFilter

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_INTERVAL = timedelta(minutes=5)


class PodCIDRProvider:
    """
    Periodically fetch pod CIDRs from node specs and install them as the
    dynamic denylist of an IPFilter.

    This keeps egress rules from allowing traffic into pod networks when
    a hostname resolves to a pod address.
    """

    def __init__(
        self,
        inventory: NodeInventory,
        ip_filter: IPFilter,
        interval: timedelta = DEFAULT_REFRESH_INTERVAL,
    ):
        self.inventory = inventory
        self.ip_filter = ip_filter
        self.interval = interval
        self.ready = asyncio.Event()

    async def start(self, stop_event: asyncio.Event) -> None:
        """Refresh once, then on every interval until stop_event is set."""
        await self.refresh()
        self.ready.set()

        while not stop_event.is_set():
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.interval.total_seconds())
            except asyncio.TimeoutError:
                await self.refresh()

        logger.debug("Pod CIDR provider stopped")

    async def refresh(self) -> None:
        """Fetch pod CIDRs and replace the dynamic denylist. Never raises."""
        try:
            nodes = await self.inventory.list_nodes()
        except InventoryListError as e:
            logger.error("Failed to list nodes for pod CIDR detection: %s", e)
            return
        except Exception:
            logger.exception("Unexpected error listing nodes for pod CIDR detection")
            return

        seen: dict[str, None] = {}
        for node in nodes:
            for cidr in node.pod_ranges():
                seen.setdefault(cidr, None)
        cidrs = list(seen)

        try:
            self.ip_filter.set_dynamic_denylist(cidrs)
        except FilterConfigurationError as e:
            logger.error("Failed to set dynamic denylist from pod CIDRs: %s", e)
            return

        logger.info("Updated pod CIDR denylist: %s", cidrs)
