"""
StockMutator -- the single writer of product stock.

Responsibility:
    Every change to a product's total/front/back stock goes through this
    service.  One mutation is: lock the product row, validate, compute the
    new split, write the product, append exactly one ledger row with the
    next per-product sequence, flush, and (except for reconciliation
    overwrites) evaluate front restocking inside a SAVEPOINT.

Architecture position:
    Kernel > Services -- imperative shell, owns no transaction.
    Pure split rules live in ``stock_kernel.domain.split_policy``.

Invariants enforced:
    S1 -- front + back == total, both >= 0, after every mutation.
    L1 -- ledger new_stock == previous_stock + change_amount.
    L2 -- per-product ledger sequence = product.ledger_version, incremented
          under the product row lock.
    Atomicity -- validation happens before any write; a typed error leaves
          the session without partial changes for the caller to commit.

Failure modes:
    - ProductNotFoundError: unknown product id.
    - ProductInactiveError: supply/write-off on a deactivated product.
    - InsufficientStockError: a bucket or the total would go negative.
    - InvalidInvariantError: explicit front/back do not add up.
    - ValueError: non-positive quantities, bad thresholds, negative totals.

Audit relevance:
    The ledger row carries the cause (movement_type, reason, related entity)
    and the actor.  Reconciliation overwrites are system-attributed
    (actor_id None) and reference the inventory session.
"""

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import select

from stock_kernel.db.types import to_money
from stock_kernel.domain.clock import Clock
from stock_kernel.domain.dtos import MovementRecord, MutationResult, StockState
from stock_kernel.domain.split_policy import (
    Bucket,
    StockSplit,
    clamp_to_capacity,
    fill_front_first,
    split_on_change,
    take_from_bucket,
    validate_split,
)
from stock_kernel.exceptions import (
    InvalidInvariantError,
    ProductInactiveError,
    ProductNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.product import Product
from stock_kernel.models.stock_movement import MovementType, StockMovement
from stock_kernel.services.base import BaseService
from stock_kernel.services.replenishment_service import ReplenishmentService

logger = get_logger("services.stock_mutator")

OPENING_BALANCE_REASON = "opening_balance"


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {value}")


def _require_non_negative(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {value!r}")
    if value < 0:
        raise ValueError(f"{name} cannot be negative, got {value}")


def _validate_thresholds(min_front_stock: int, max_front_stock: int) -> None:
    _require_non_negative("max_front_stock", max_front_stock)
    _require_non_negative("min_front_stock", min_front_stock)
    if max_front_stock > 0 and min_front_stock >= max_front_stock:
        raise ValueError(
            f"min_front_stock ({min_front_stock}) must be below "
            f"max_front_stock ({max_front_stock})"
        )


def _price(name: str, value: Decimal | int | str) -> Decimal:
    amount = to_money(value)
    if amount < 0:
        raise ValueError(f"{name} cannot be negative, got {amount}")
    return amount


class StockMutator(BaseService[Product]):
    """
    Applies stock changes and writes the ledger.

    Contract:
        Methods accept product ids and plain values, and return frozen
        ``MutationResult`` DTOs.  They flush but never commit.

    Guarantees:
        - Same-product calls serialize on SELECT ... FOR UPDATE.
        - Exactly one ledger row per total-changing mutation; none when the
          total is unchanged (except INTERNAL_MOVE, which records a
          relocation with change_amount 0).

    Non-goals:
        - Does NOT edit prices other than last-cost on supply; catalog
          price maintenance is CatalogService's.
    """

    def __init__(
        self,
        session,
        clock: Clock | None = None,
        replenishment: ReplenishmentService | None = None,
    ):
        super().__init__(session, clock)
        self._replenishment = replenishment or ReplenishmentService(
            session, self._clock
        )

    # =========================================================================
    # Internal helpers
    # =========================================================================

    def _get_product_for_update(self, product_id: UUID) -> Product:
        """Load the product with a row lock, refreshing any cached state."""
        product = self.session.execute(
            select(Product)
            .where(Product.id == product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def _require_active(self, product: Product) -> None:
        if not product.is_active:
            raise ProductInactiveError(str(product.id))

    def _apply_split(self, product: Product, split: StockSplit) -> None:
        validate_split(split.total, split.front, split.back, str(product.id))
        product.total_stock = split.total
        product.front_stock = split.front
        product.back_stock = split.back

    def _append_movement(
        self,
        product: Product,
        *,
        change_amount: int,
        previous_stock: int,
        movement_type: MovementType,
        reason: str | None = None,
        related_entity_type: str | None = None,
        related_entity_id: UUID | None = None,
        actor_id: UUID | None = None,
        moved_quantity: int | None = None,
        from_location: str | None = None,
        to_location: str | None = None,
    ) -> StockMovement:
        # INVARIANT L2: sequence allocated under the product row lock
        product.ledger_version += 1
        movement = StockMovement(
            product_id=product.id,
            sequence=product.ledger_version,
            change_amount=change_amount,
            previous_stock=previous_stock,
            new_stock=previous_stock + change_amount,
            movement_type=movement_type.value,
            reason=reason,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
            actor_id=actor_id,
            created_at=self._clock.now(),
            moved_quantity=moved_quantity,
            from_location=from_location,
            to_location=to_location,
        )
        self.session.add(movement)
        return movement

    def _log_mutation(self, product: Product, movement: StockMovement | None) -> None:
        logger.info(
            "stock_mutated",
            extra={
                "product_id": str(product.id),
                "movement_type": movement.movement_type if movement else None,
                "change_amount": movement.change_amount if movement else 0,
                "total_stock": product.total_stock,
                "front_stock": product.front_stock,
                "back_stock": product.back_stock,
                "sequence": product.ledger_version,
            },
        )

    def _result(
        self, product: Product, movement: StockMovement | None
    ) -> MutationResult:
        return MutationResult(
            state=StockState.from_model(product),
            movement=MovementRecord.from_model(movement) if movement else None,
        )

    # =========================================================================
    # Mutations
    # =========================================================================

    def register_product(
        self,
        name: str,
        *,
        category_id: UUID | None = None,
        cost_price: Decimal | int | str = Decimal("0"),
        selling_price: Decimal | int | str = Decimal("0"),
        opening_stock: int = 0,
        max_front_stock: int = 0,
        min_front_stock: int = 0,
        actor_id: UUID | None = None,
    ) -> MutationResult:
        """
        Create a product with an opening balance.

        The opening balance is an initial creation: it fills front up to
        capacity and spills the rest to back.  A positive balance is
        ledgered as MANUAL_EDIT "opening_balance" so that replaying the
        ledger from zero reproduces the total.
        """
        if not name or not name.strip():
            raise ValueError("Product name is required")
        _require_non_negative("opening_stock", opening_stock)
        _validate_thresholds(min_front_stock, max_front_stock)

        product = Product(
            id=uuid4(),
            name=name.strip(),
            category_id=category_id,
            cost_price=_price("cost_price", cost_price),
            selling_price=_price("selling_price", selling_price),
            total_stock=0,
            front_stock=0,
            back_stock=0,
            max_front_stock=max_front_stock,
            min_front_stock=min_front_stock,
            is_active=True,
            ledger_version=0,
            created_by_id=actor_id,
        )

        split = split_on_change(
            0, 0, opening_stock, max_front_stock,
            is_initial_creation=True, product_id=str(product.id),
        )
        self._apply_split(product, split)
        self.session.add(product)
        self.session.flush()

        movement = None
        if opening_stock > 0:
            movement = self._append_movement(
                product,
                change_amount=opening_stock,
                previous_stock=0,
                movement_type=MovementType.MANUAL_EDIT,
                reason=OPENING_BALANCE_REASON,
                actor_id=actor_id,
            )
        self.session.flush()

        logger.info(
            "product_registered",
            extra={
                "product_id": str(product.id),
                "product_name": product.name,
                "opening_stock": opening_stock,
                "max_front_stock": max_front_stock,
            },
        )
        self._replenishment.evaluate_product(product)
        return self._result(product, movement)

    def record_supply(
        self,
        product_id: UUID,
        quantity: int,
        *,
        unit_cost: Decimal | int | str | None = None,
        related_supply_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> MutationResult:
        """
        Book received goods.

        New units land in back when split tracking is on.  A given
        unit_cost becomes the product's cost price (last-cost costing).
        """
        _require_positive("quantity", quantity)
        cost = _price("unit_cost", unit_cost) if unit_cost is not None else None

        product = self._get_product_for_update(product_id)
        self._require_active(product)

        previous = product.total_stock
        split = split_on_change(
            product.front_stock, product.back_stock, quantity,
            product.max_front_stock, product_id=str(product.id),
        )
        self._apply_split(product, split)
        if cost is not None:
            product.cost_price = cost
            product.updated_by_id = actor_id

        movement = self._append_movement(
            product,
            change_amount=quantity,
            previous_stock=previous,
            movement_type=MovementType.SUPPLY,
            related_entity_type="supply" if related_supply_id else None,
            related_entity_id=related_supply_id,
            actor_id=actor_id,
        )
        self.session.flush()
        self._log_mutation(product, movement)

        self._replenishment.evaluate_product(product)
        return self._result(product, movement)

    def write_off(
        self,
        product_id: UUID,
        quantity: int,
        *,
        reason: str | None = None,
        actor_id: UUID | None = None,
        bucket: Bucket = Bucket.AUTO,
    ) -> MutationResult:
        """
        Remove stock (breakage, spoilage, sales booked manually).

        AUTO takes from front first, then back.  A named bucket must hold
        the full quantity on its own.
        """
        _require_positive("quantity", quantity)

        product = self._get_product_for_update(product_id)
        self._require_active(product)

        previous = product.total_stock
        split = take_from_bucket(
            product.front_stock, product.back_stock, quantity,
            Bucket(bucket), product_id=str(product.id),
        )
        self._apply_split(product, split)

        movement = self._append_movement(
            product,
            change_amount=-quantity,
            previous_stock=previous,
            movement_type=MovementType.WRITE_OFF,
            reason=reason,
            actor_id=actor_id,
        )
        self.session.flush()
        self._log_mutation(product, movement)

        self._replenishment.evaluate_product(product)
        return self._result(product, movement)

    def manual_edit(
        self,
        product_id: UUID,
        *,
        new_total: int | None = None,
        min_front_stock: int | None = None,
        max_front_stock: int | None = None,
        front_stock: int | None = None,
        back_stock: int | None = None,
        reason: str | None = None,
        actor_id: UUID | None = None,
    ) -> MutationResult:
        """
        Edit thresholds, capacity and/or stock directly.

        Split resolution:
            - explicit front and/or back: the pair must add up to the new
              total (a missing side is derived), then re-fit to capacity;
            - otherwise the total change goes through split_on_change and
              the result is re-fit to the (possibly new) capacity: a
              shrink spills front overflow to back, capacity 0 collapses
              everything to front.

        A MANUAL_EDIT ledger row is written only if the total changed.
        Replenishment is always re-evaluated.
        """
        product = self._get_product_for_update(product_id)

        total = product.total_stock if new_total is None else new_total
        _require_non_negative("new_total", total)
        capacity = (
            product.max_front_stock if max_front_stock is None else max_front_stock
        )
        threshold = (
            product.min_front_stock if min_front_stock is None else min_front_stock
        )
        _validate_thresholds(threshold, capacity)

        if front_stock is not None or back_stock is not None:
            front = total - back_stock if front_stock is None else front_stock
            back = total - front if back_stock is None else back_stock
            validate_split(total, front, back, str(product.id))
            if (capacity <= 0 and back > 0) or (capacity > 0 and front > capacity):
                raise InvalidInvariantError(str(product.id), total, front, back)
            split = StockSplit(front=front, back=back)
        else:
            split = split_on_change(
                product.front_stock, product.back_stock,
                total - product.total_stock, capacity,
                product_id=str(product.id),
            )
            split = clamp_to_capacity(split.front, split.back, capacity)

        previous = product.total_stock
        product.max_front_stock = capacity
        product.min_front_stock = threshold
        self._apply_split(product, split)
        product.updated_by_id = actor_id

        movement = None
        if total != previous:
            movement = self._append_movement(
                product,
                change_amount=total - previous,
                previous_stock=previous,
                movement_type=MovementType.MANUAL_EDIT,
                reason=reason,
                actor_id=actor_id,
            )
        self.session.flush()
        self._log_mutation(product, movement)

        self._replenishment.evaluate_product(product)
        return self._result(product, movement)

    def adjust_from_reconciliation(
        self,
        product_id: UUID,
        new_total: int,
        *,
        related_inventory_id: UUID,
    ) -> MutationResult:
        """
        Overwrite the total with a physical count.

        The count is authoritative: a changed total resets the split
        front-first (all front when capacity is 0); an unchanged total
        leaves the product untouched.  The ledger row is system-attributed
        and its delta is taken against the live total, so it stays
        arithmetically correct even when the session snapshot is stale.
        Does NOT trigger replenishment.
        """
        _require_non_negative("new_total", new_total)

        product = self._get_product_for_update(product_id)
        previous = product.total_stock

        movement = None
        if new_total != previous:
            self._apply_split(product, fill_front_first(new_total, product.max_front_stock))
            movement = self._append_movement(
                product,
                change_amount=new_total - previous,
                previous_stock=previous,
                movement_type=MovementType.INVENTORY_ADJUSTMENT,
                reason="inventory_count",
                related_entity_type="inventory",
                related_entity_id=related_inventory_id,
                actor_id=None,
            )
            self.session.flush()
            self._log_mutation(product, movement)
        return self._result(product, movement)

    def move_internal(
        self,
        product_id: UUID,
        quantity: int,
        *,
        from_location: str,
        to_location: str,
        related_task_id: UUID | None = None,
        actor_id: UUID | None = None,
    ) -> MutationResult:
        """
        Record a relocation that leaves the total unchanged.

        Between the "back" and "front" buckets the product split is
        updated; between warehouses only the ledger row is written (the
        caller maintains WarehouseStock).  The row has change_amount 0.
        """
        _require_positive("quantity", quantity)
        product = self._get_product_for_update(product_id)

        buckets = {Bucket.FRONT.value, Bucket.BACK.value}
        if from_location in buckets and to_location in buckets:
            if from_location == to_location:
                raise ValueError("from_location and to_location must differ")
            taken = take_from_bucket(
                product.front_stock, product.back_stock, quantity,
                Bucket(from_location), product_id=str(product.id),
            )
            if to_location == Bucket.FRONT.value:
                split = StockSplit(front=taken.front + quantity, back=taken.back)
            else:
                split = StockSplit(front=taken.front, back=taken.back + quantity)
            self._apply_split(product, split)

        movement = self._append_movement(
            product,
            change_amount=0,
            previous_stock=product.total_stock,
            movement_type=MovementType.INTERNAL_MOVE,
            related_entity_type="task" if related_task_id else None,
            related_entity_id=related_task_id,
            actor_id=actor_id,
            moved_quantity=quantity,
            from_location=from_location,
            to_location=to_location,
        )
        self.session.flush()
        self._log_mutation(product, movement)
        return self._result(product, movement)
