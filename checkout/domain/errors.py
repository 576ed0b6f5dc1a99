# checkout/domain/errors.py


class CheckoutError(Exception):
    """Base class for every error raised by the pricing and settlement code."""

    code = "CHECKOUT_ERROR"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.code)
        self.message = message or self.code


#cart / pricing - caller fixes the input, coordinator state is not touched
class InvalidCartState(CheckoutError):
    code = "INVALID_CART_STATE"


class IllegalTransition(InvalidCartState):
    code = "ILLEGAL_TRANSITION"


class InvalidQuantity(CheckoutError):
    code = "INVALID_QUANTITY"


class CurrencyMismatch(CheckoutError):
    code = "CURRENCY_MISMATCH"


#checkout phase - surfaced to the user, cart is kept
class EmptyCart(CheckoutError):
    code = "EMPTY_CART"


class InvalidLineItem(CheckoutError):
    code = "INVALID_LINE_ITEM"

    def __init__(self, product_id, message: str | None = None):
        super().__init__(message or f"Product {product_id} is not available")
        self.product_id = product_id


class PricingDesync(CheckoutError):
    code = "PRICING_DESYNC"

    def __init__(self, local_total, remote_total):
        super().__init__(
            f"Local total {local_total} does not match authoritative total {remote_total}"
        )
        self.local_total = local_total
        self.remote_total = remote_total


class CheckoutInProgress(CheckoutError):
    code = "CHECKOUT_IN_PROGRESS"


class PaymentFailed(CheckoutError):
    code = "PAYMENT_FAILED"


class PaymentCanceled(CheckoutError):
    code = "PAYMENT_CANCELED"


class ReconciliationTimeout(CheckoutError):
    code = "RECONCILIATION_TIMEOUT"


#collaborators
class ProductNotFound(CheckoutError):
    code = "PRODUCT_NOT_FOUND"


class AuthorityRejected(CheckoutError):
    code = "AUTHORITY_REJECTED"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class TransientAuthorityError(CheckoutError):
    """5xx / 429 from the payment authority; safe to retry with the same idempotency key."""

    code = "AUTHORITY_UNAVAILABLE"


class ConcurrentModification(CheckoutError):
    code = "CONCURRENT_MODIFICATION"


class CartNotFound(CheckoutError):
    code = "CART_NOT_FOUND"


class OrderNotFound(CheckoutError):
    code = "ORDER_NOT_FOUND"
