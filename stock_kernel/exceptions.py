"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Stock mutations and reconciliation close are transactional: any error aborts
the whole unit of work and is surfaced to the caller (the CRUD/UI layer),
which owns user-facing messaging.  Callers must be able to tell "the product
does not exist" from "there is not enough stock" without parsing messages, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        back_office.write_off(product_id, quantity=5, reason="broken")
    except InsufficientStockError as e:
        api_response(code=e.code, requested=e.requested, available=e.available)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- CategoryNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- InventoryNotFoundError
    |   +-- InventoryItemNotFoundError
    |   +-- TaskNotFoundError
    |   +-- RuleNotFoundError
    |   +-- SupplyNotFoundError
    |   +-- ProcurementListNotFoundError
    |   +-- ProcurementItemNotFoundError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |   +-- InvalidInvariantError
    |   +-- ProductInactiveError
    |
    +-- ReconciliationError
    |   +-- InventoryAlreadyClosedError
    |   +-- UnknownMetricError
    |
    +-- TaskError
    |   +-- TaskAlreadyCompletedError
    |
    +-- CatalogError
    |   +-- DuplicateNameError
    |   +-- CircularReferenceError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Lookup          | PRODUCT_NOT_FOUND           | Unknown product id
                | INVENTORY_NOT_FOUND         | Unknown reconciliation session id
                | INVENTORY_ITEM_NOT_FOUND    | Unknown inventory item id
                | TASK_NOT_FOUND              | Unknown restock/transfer task id
                | ...                         | (one per entity)
----------------|-----------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK          | Mutation would drive a bucket below 0
                | INVALID_INVARIANT           | front + back != total would result
                | PRODUCT_INACTIVE            | Supply/write-off on a soft-deleted product
----------------|-----------------------------|-----------------------------------------
Reconciliation  | INVENTORY_ALREADY_CLOSED    | Mutating or closing a CLOSED session
                | UNKNOWN_METRIC              | target_metric_key not in metrics catalog
----------------|-----------------------------|-----------------------------------------
Task            | TASK_ALREADY_COMPLETED      | Completing a task that is not OPEN
----------------|-----------------------------|-----------------------------------------
Catalog         | DUPLICATE_NAME              | Category/warehouse name already taken
                | CIRCULAR_REFERENCE          | Category parented to itself/descendant
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Ledger row or closed session modified

Plain argument validation (non-positive quantity, negative price, max <= min)
raises ``ValueError``; those are programming/input errors, not domain states.
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Lookup exceptions


class NotFoundError(StockKernelError):
    """Base exception for unknown entity references."""

    code: str = "NOT_FOUND"
    entity_type: str = "Entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"
    entity_type: str = "Product"


class CategoryNotFoundError(NotFoundError):
    code: str = "CATEGORY_NOT_FOUND"
    entity_type: str = "Category"


class WarehouseNotFoundError(NotFoundError):
    code: str = "WAREHOUSE_NOT_FOUND"
    entity_type: str = "Warehouse"


class InventoryNotFoundError(NotFoundError):
    code: str = "INVENTORY_NOT_FOUND"
    entity_type: str = "Inventory"


class InventoryItemNotFoundError(NotFoundError):
    code: str = "INVENTORY_ITEM_NOT_FOUND"
    entity_type: str = "InventoryItem"


class TaskNotFoundError(NotFoundError):
    code: str = "TASK_NOT_FOUND"
    entity_type: str = "RestockTask"


class RuleNotFoundError(NotFoundError):
    code: str = "RULE_NOT_FOUND"
    entity_type: str = "ReplenishmentRule"


class SupplyNotFoundError(NotFoundError):
    code: str = "SUPPLY_NOT_FOUND"
    entity_type: str = "Supply"


class ProcurementListNotFoundError(NotFoundError):
    code: str = "PROCUREMENT_LIST_NOT_FOUND"
    entity_type: str = "ProcurementList"


class ProcurementItemNotFoundError(NotFoundError):
    code: str = "PROCUREMENT_ITEM_NOT_FOUND"
    entity_type: str = "ProcurementListItem"


# Stock exceptions


class StockError(StockKernelError):
    """Base exception for stock-quantity errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    A mutation would drive a stock bucket below zero.

    The mutation is aborted in full: no ledger row and no state change
    reach storage.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, bucket: str, requested: int, available: int):
        self.product_id = str(product_id)
        self.bucket = bucket
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient {bucket} stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class InvalidInvariantError(StockError):
    """
    front_stock + back_stock != total_stock, a negative bucket, or an
    explicit front level above capacity would result.

    Unreachable when the split policy is followed; checked regardless on
    every mutation before flush.
    """

    code: str = "INVALID_INVARIANT"

    def __init__(self, product_id: str, total: int, front: int, back: int):
        self.product_id = str(product_id)
        self.total = total
        self.front = front
        self.back = back
        super().__init__(
            f"Stock invariant violated for product {product_id}: "
            f"front({front}) + back({back}) != total({total})"
        )


class ProductInactiveError(StockError):
    """Product is soft-deleted and cannot receive supply or write-offs."""

    code: str = "PRODUCT_INACTIVE"

    def __init__(self, product_id: str):
        self.product_id = str(product_id)
        super().__init__(f"Product {product_id} is inactive")


# Reconciliation exceptions


class ReconciliationError(StockKernelError):
    """Base exception for inventory reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class InventoryAlreadyClosedError(ReconciliationError):
    """The session is CLOSED; CLOSED is terminal."""

    code: str = "INVENTORY_ALREADY_CLOSED"

    def __init__(self, inventory_id: str):
        self.inventory_id = str(inventory_id)
        super().__init__(f"Inventory {inventory_id} is already closed")


class UnknownMetricError(ReconciliationError):
    """target_metric_key is not a recognized revenue metric."""

    code: str = "UNKNOWN_METRIC"

    def __init__(self, metric_key: str):
        self.metric_key = metric_key
        super().__init__(f"Unknown revenue metric: {metric_key}")


# Task exceptions


class TaskError(StockKernelError):
    """Base exception for replenishment task errors."""

    code: str = "TASK_ERROR"


class TaskAlreadyCompletedError(TaskError):
    """Task is not OPEN."""

    code: str = "TASK_ALREADY_COMPLETED"

    def __init__(self, task_id: str):
        self.task_id = str(task_id)
        super().__init__(f"Task {task_id} is already completed")


# Catalog exceptions


class CatalogError(StockKernelError):
    """Base exception for category/warehouse metadata errors."""

    code: str = "CATALOG_ERROR"


class DuplicateNameError(CatalogError):
    """Name must be unique within its entity type."""

    code: str = "DUPLICATE_NAME"

    def __init__(self, entity_type: str, entity_name: str):
        self.entity_type = entity_type
        self.entity_name = entity_name
        super().__init__(f"{entity_type} with name '{entity_name}' already exists")


class CircularReferenceError(CatalogError):
    """Category would become its own ancestor."""

    code: str = "CIRCULAR_REFERENCE"

    def __init__(self, category_id: str, parent_id: str):
        self.category_id = str(category_id)
        self.parent_id = str(parent_id)
        super().__init__(
            f"Category {category_id} cannot be parented to {parent_id}: "
            "circular reference"
        )


# Immutability exceptions


class ImmutabilityError(StockKernelError):
    """Base exception for append-only/terminal-state violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger rows are immutable from creation; inventory item snapshots are
    immutable once written; CLOSED sessions are immutable.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
