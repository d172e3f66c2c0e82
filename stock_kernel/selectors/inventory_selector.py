"""
InventorySelector -- read access to inventory sessions.

Architecture position:
    Kernel > Selectors -- read-only, no flush/commit.
"""

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.dtos import InventoryInfo, InventoryItemInfo
from stock_kernel.exceptions import InventoryNotFoundError
from stock_kernel.models.inventory import Inventory, InventoryItem, InventoryStatus
from stock_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector[Inventory]):
    """Selector for inventory sessions and their items."""

    def get_inventory(self, inventory_id: UUID) -> InventoryInfo:
        inventory = self.session.get(Inventory, inventory_id)
        if inventory is None:
            raise InventoryNotFoundError(str(inventory_id))
        return InventoryInfo.from_model(inventory)

    def list_inventories(
        self,
        status: InventoryStatus | None = None,
        limit: int = 50,
    ) -> list[InventoryInfo]:
        """Sessions, most recently started first."""
        stmt = select(Inventory)
        if status is not None:
            stmt = stmt.where(Inventory.status == InventoryStatus(status).value)
        inventories = self.session.execute(
            stmt.order_by(Inventory.started_at.desc(), Inventory.id).limit(limit)
        ).scalars().all()
        return [InventoryInfo.from_model(i) for i in inventories]

    def list_items(
        self,
        inventory_id: UUID,
        counted: bool | None = None,
    ) -> list[InventoryItemInfo]:
        """
        Items of a session.

        Args:
            counted: True for counted items only, False for uncounted only,
                None for all.
        """
        if self.session.get(Inventory, inventory_id) is None:
            raise InventoryNotFoundError(str(inventory_id))

        stmt = select(InventoryItem).where(InventoryItem.inventory_id == inventory_id)
        if counted is True:
            stmt = stmt.where(InventoryItem.actual_stock.is_not(None))
        elif counted is False:
            stmt = stmt.where(InventoryItem.actual_stock.is_(None))
        items = self.session.execute(
            stmt.order_by(InventoryItem.created_at, InventoryItem.id)
        ).scalars().all()
        return [InventoryItemInfo.from_model(i) for i in items]
