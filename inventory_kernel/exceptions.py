"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (input forms, staging acceptance, import tooling) need to tell
"not enough stock" apart from "this location has never held the item" without
parsing message text. Every error therefore:
  1. Has its own class (catch by type, not message)
  2. Carries a CODE attribute (machine-readable, log- and API-safe)
  3. Carries structured DATA (stock id, location, quantities)

Example:
    try:
        inventory.consume("ENV-10", "WH-A", Ownership.HOUSE, 25)
    except InsufficientQuantityError as e:
        show_warning(f"Only {e.available} of {e.stock_id} on hand")

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- QuantityError
    |   +-- InvalidQuantityError
    |   +-- InsufficientQuantityError
    |
    +-- CostBasisError
    |   +-- NoCostBasisFoundError
    |   +-- MissingUnitCostError
    |   +-- InvalidUnitCostError
    |
    +-- StockLocationError
    |   +-- UnknownStockLocationError
    |   +-- MissingRecordDefaultsError
    |   +-- InvalidTransferError
    |
    +-- StagingError
    |   +-- StagedMaterialNotFoundError
    |   +-- UnknownMaterialTypeError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- StoreFailureError
    +-- ImportRowError

===============================================================================
ERROR CODES
===============================================================================

Code                        | Exception                    | Raised when
----------------------------|------------------------------|------------------------------
INVALID_QUANTITY            | InvalidQuantityError         | delta is zero / non-positive
INSUFFICIENT_QUANTITY       | InsufficientQuantityError    | not enough on hand or in lots
NO_COST_BASIS_FOUND         | NoCostBasisFoundError        | deduction with no open lot
MISSING_UNIT_COST           | MissingUnitCostError         | addition without a unit cost
INVALID_UNIT_COST           | InvalidUnitCostError         | unit cost <= 0 or malformed
UNKNOWN_STOCK_LOCATION      | UnknownStockLocationError    | deduction where no record exists
MISSING_RECORD_DEFAULTS     | MissingRecordDefaultsError   | first arrival without defaults
INVALID_TRANSFER            | InvalidTransferError         | source == destination
STAGED_MATERIAL_NOT_FOUND   | StagedMaterialNotFoundError  | accept of unknown staged row
UNKNOWN_MATERIAL_TYPE       | UnknownMaterialTypeError     | category not configured
IMMUTABILITY_VIOLATION      | ImmutabilityViolationError   | forbidden ledger update/delete
STORE_FAILURE               | StoreFailureError            | persistence failure
IMPORT_ROW_INVALID          | ImportRowError               | malformed CSV import row

All of these propagate to the immediate caller. Nothing in the kernel retries.
"""

class InventoryKernelError(Exception):
    """Base exception for all inventory kernel errors."""

    code: str = "INVENTORY_KERNEL_ERROR"


# Quantity errors


class QuantityError(InventoryKernelError):
    """Base for quantity-related errors."""

    code: str = "QUANTITY_ERROR"


class InvalidQuantityError(QuantityError):
    """A quantity delta of zero, or a non-positive requested quantity."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: int, reason: str = "quantity must be non-zero"):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class InsufficientQuantityError(QuantityError):
    """The snapshot or the open lots cannot cover the requested deduction."""

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(
        self,
        stock_id: str,
        location_id: str,
        requested: int,
        available: int,
    ):
        self.stock_id = stock_id
        self.location_id = location_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient quantity of {stock_id} at {location_id}: "
            f"requested {requested}, available {available}"
        )


# Cost basis errors


class CostBasisError(InventoryKernelError):
    """Base for cost-basis errors."""

    code: str = "COST_BASIS_ERROR"


class NoCostBasisFoundError(CostBasisError):
    """A deduction was attempted but no open cost lot exists for the key."""

    code: str = "NO_COST_BASIS_FOUND"

    def __init__(self, stock_id: str, location_id: str, ownership: str):
        self.stock_id = stock_id
        self.location_id = location_id
        self.ownership = ownership
        super().__init__(
            f"No open cost lot for {stock_id} at {location_id} ({ownership})"
        )


class MissingUnitCostError(CostBasisError):
    """An addition was requested without a unit cost."""

    code: str = "MISSING_UNIT_COST"

    def __init__(self, stock_id: str, location_id: str):
        self.stock_id = stock_id
        self.location_id = location_id
        super().__init__(
            f"Unit cost is required to add {stock_id} at {location_id}"
        )


class InvalidUnitCostError(CostBasisError):
    """Unit cost is not a positive, well-formed amount."""

    code: str = "INVALID_UNIT_COST"

    def __init__(self, value: object, reason: str = "unit cost must be positive"):
        self.value = str(value)
        self.reason = reason
        super().__init__(f"Invalid unit cost {value!r}: {reason}")


# Stock location errors


class StockLocationError(InventoryKernelError):
    """Base for stock-record lookup errors."""

    code: str = "STOCK_LOCATION_ERROR"


class UnknownStockLocationError(StockLocationError):
    """No Stock Record exists for the (stock, location, ownership) key."""

    code: str = "UNKNOWN_STOCK_LOCATION"

    def __init__(self, stock_id: str, location_id: str, ownership: str):
        self.stock_id = stock_id
        self.location_id = location_id
        self.ownership = ownership
        super().__init__(
            f"No stock record for {stock_id} at {location_id} ({ownership})"
        )


class MissingRecordDefaultsError(StockLocationError):
    """First arrival at a location needs defaults to create the record."""

    code: str = "MISSING_RECORD_DEFAULTS"

    def __init__(self, stock_id: str, location_id: str):
        self.stock_id = stock_id
        self.location_id = location_id
        super().__init__(
            f"Record defaults are required to create {stock_id} at {location_id}"
        )


class InvalidTransferError(StockLocationError):
    """Transfer request is malformed (e.g. source equals destination)."""

    code: str = "INVALID_TRANSFER"

    def __init__(self, stock_id: str, location_id: str, reason: str):
        self.stock_id = stock_id
        self.location_id = location_id
        self.reason = reason
        super().__init__(f"Invalid transfer of {stock_id} at {location_id}: {reason}")


# Staging errors


class StagingError(InventoryKernelError):
    """Base for incoming-material staging errors."""

    code: str = "STAGING_ERROR"


class StagedMaterialNotFoundError(StagingError):
    """Staged incoming material does not exist (or was already accepted)."""

    code: str = "STAGED_MATERIAL_NOT_FOUND"

    def __init__(self, staged_id: int):
        self.staged_id = staged_id
        super().__init__(f"Staged material not found: {staged_id}")


class UnknownMaterialTypeError(StagingError):
    """Material category is not one of the configured types."""

    code: str = "UNKNOWN_MATERIAL_TYPE"

    def __init__(self, material_type: str, allowed: tuple[str, ...]):
        self.material_type = material_type
        self.allowed = allowed
        super().__init__(
            f"Unknown material type {material_type!r}; expected one of {', '.join(allowed)}"
        )


# Immutability errors


class ImmutabilityError(InventoryKernelError):
    """Base for append-only violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete ledger history."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Store / tooling errors


class StoreFailureError(InventoryKernelError):
    """The persistent store failed; the surrounding transaction was rolled back."""

    code: str = "STORE_FAILURE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store failure during {operation}: {detail}")


class ImportRowError(InventoryKernelError):
    """A bulk-import row could not be parsed."""

    code: str = "IMPORT_ROW_INVALID"

    def __init__(self, line_number: int, reason: str):
        self.line_number = line_number
        self.reason = reason
        super().__init__(f"Import row {line_number} invalid: {reason}")
