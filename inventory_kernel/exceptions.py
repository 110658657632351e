"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger (order fulfillment, vendor adjustments, return
processing, batch jobs) must react to failures by category, not by parsing
messages:

    try:
        engine.apply_mutation(...)
    except LockTimeoutError as e:          # Busy -> retry later
        requeue(e.product_id)
    except ProductNotFoundError as e:      # NotFound -> 404
        api_response(code=e.code, product=e.product_id)
    except InvalidInputError as e:         # InvalidInput -> 400
        api_response(code=e.code, detail=str(e))

Every class carries a ``code`` class attribute (machine-readable, API-safe)
and stores its context as attributes, so structured logging and API layers
can serialize it without string matching.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ProductError
    |   +-- ProductNotFoundError
    |   +-- ProductAlreadyRegisteredError
    |   +-- ProductNotInCatalogError
    |
    +-- InvalidInputError
    |   +-- InvalidMovementTypeError
    |   +-- InvalidQuantityError
    |   +-- MissingReasonError
    |   +-- MissingActorError
    |   +-- InvalidReferenceTypeError
    |   +-- InvalidThresholdError
    |   +-- VariantNotFoundError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |   +-- OptimisticLockError
    |
    +-- DispatchFailureError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |
    +-- LedgerInconsistencyError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-----------------------------------
Product       | PRODUCT_NOT_FOUND           | No StockRecord for product id
              | PRODUCT_ALREADY_REGISTERED  | StockRecord already exists
              | PRODUCT_NOT_IN_CATALOG      | Registering an unknown product
--------------|-----------------------------|-----------------------------------
Input         | INVALID_INPUT               | Generic validation failure
              | INVALID_MOVEMENT_TYPE       | Not IN/OUT/ADJUSTMENT/RETURN
              | INVALID_QUANTITY            | Negative, non-integer, zero delta
              | MISSING_REASON              | Blank reason
              | MISSING_ACTOR               | Blank performed_by
              | INVALID_REFERENCE_TYPE      | Not ORDER/RETURN/ADJUSTMENT/PURCHASE
              | INVALID_THRESHOLD           | Negative or non-integer threshold
              | VARIANT_NOT_FOUND           | Variant id unknown for product
--------------|-----------------------------|-----------------------------------
Concurrency   | BUSY                        | Per-product lock wait timed out
              | CONFLICT                    | Row changed by another writer
--------------|-----------------------------|-----------------------------------
Dispatch      | DISPATCH_FAILURE            | Notification sink unreachable
--------------|-----------------------------|-----------------------------------
Immutability  | IMMUTABILITY_VIOLATION      | UPDATE/DELETE of a movement
--------------|-----------------------------|-----------------------------------
Ledger        | LEDGER_INCONSISTENT         | Replay does not match balance

===============================================================================
PROPAGATION
===============================================================================

Validation and persistence errors abort the mutation and reach the caller
unchanged.  ``DispatchFailureError`` is raised by notification sinks and is
caught and logged by the dispatcher; it never alters the outcome of a
mutation.  Batch mutations convert per-item errors into failed item results.
"""


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must define a ``code`` class attribute.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Product-related exceptions


class ProductError(InventoryKernelError):
    """Base exception for product lookup and registration errors."""

    code: str = "PRODUCT_ERROR"


class ProductNotFoundError(ProductError):
    """No stock record exists for the given product id."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class ProductAlreadyRegisteredError(ProductError):
    """A stock record already exists for the given product id."""

    code: str = "PRODUCT_ALREADY_REGISTERED"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product already registered: {product_id}")


class ProductNotInCatalogError(ProductError):
    """The catalog mirror has no entry for the product being registered."""

    code: str = "PRODUCT_NOT_IN_CATALOG"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is not present in the catalog")


# Input validation exceptions


class InvalidInputError(InventoryKernelError):
    """Base exception for rejected caller input."""

    code: str = "INVALID_INPUT"


class InvalidMovementTypeError(InvalidInputError):
    """Movement type is not one of IN, OUT, ADJUSTMENT, RETURN."""

    code: str = "INVALID_MOVEMENT_TYPE"

    def __init__(self, movement_type: object):
        self.movement_type = str(movement_type)
        super().__init__(f"Invalid movement type: {movement_type!r}")


class InvalidQuantityError(InvalidInputError):
    """Quantity is negative, not an integer, or zero for a relative movement."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: object, reason: str):
        self.quantity = str(quantity)
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}")


class MissingReasonError(InvalidInputError):
    """Every movement needs a non-blank reason."""

    code: str = "MISSING_REASON"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"A reason is required for stock movements on {product_id}")


class MissingActorError(InvalidInputError):
    """Every mutation needs a performed_by actor identifier."""

    code: str = "MISSING_ACTOR"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"performed_by is required for mutations on {product_id}")


class InvalidReferenceTypeError(InvalidInputError):
    """Reference type is not one of ORDER, RETURN, ADJUSTMENT, PURCHASE."""

    code: str = "INVALID_REFERENCE_TYPE"

    def __init__(self, reference_type: object):
        self.reference_type = str(reference_type)
        super().__init__(f"Invalid reference type: {reference_type!r}")


class InvalidThresholdError(InvalidInputError):
    """Low-stock threshold must be a non-negative integer."""

    code: str = "INVALID_THRESHOLD"

    def __init__(self, threshold: object):
        self.threshold = str(threshold)
        super().__init__(f"Invalid low-stock threshold: {threshold!r}")


class VariantNotFoundError(InvalidInputError):
    """Variant id does not belong to the product's stock record."""

    code: str = "VARIANT_NOT_FOUND"

    def __init__(self, product_id: str, variant_id: str):
        self.product_id = product_id
        self.variant_id = variant_id
        super().__init__(f"Variant {variant_id} not found on product {product_id}")


# Concurrency exceptions


class ConcurrencyError(InventoryKernelError):
    """Base exception for contention between writers."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """Waiting for the per-product lock exceeded the configured timeout."""

    code: str = "BUSY"

    def __init__(self, product_id: str, timeout_seconds: float):
        self.product_id = product_id
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s waiting for lock on product {product_id}"
        )


class OptimisticLockError(ConcurrencyError):
    """The stock record row was modified by another writer mid-transaction."""

    code: str = "CONFLICT"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Concurrent modification detected on product {product_id}")


# Dispatch exceptions


class DispatchFailureError(InventoryKernelError):
    """Notification sink could not deliver an alert."""

    code: str = "DISPATCH_FAILURE"

    def __init__(self, product_id: str, alert_type: str, reason: str):
        self.product_id = product_id
        self.alert_type = alert_type
        self.reason = reason
        super().__init__(
            f"Failed to dispatch {alert_type} alert for product {product_id}: {reason}"
        )


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for writes against append-only records."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify immutable {entity_type} {entity_id}: {reason}"
        )


# Ledger consistency


class LedgerInconsistencyError(InventoryKernelError):
    """Replaying the movement log does not reproduce the stored balance."""

    code: str = "LEDGER_INCONSISTENT"

    def __init__(self, product_id: str, bucket: str, expected: int, replayed: int):
        self.product_id = product_id
        self.bucket = bucket
        self.expected = expected
        self.replayed = replayed
        super().__init__(
            f"Ledger mismatch for {product_id}/{bucket}: "
            f"stored={expected}, replayed={replayed}"
        )
