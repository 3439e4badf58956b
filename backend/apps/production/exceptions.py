"""
Production error kinds.
Every rejected operation raises one of these so callers can tell
"not yet" from "already done" from "payment failed".
"""


class ProductionError(Exception):
    """Base class for all production order errors."""
    code = 'production_error'
    status_code = 400
    default_message = 'The operation could not be completed.'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ==================== State machine ====================

class InvalidTransition(ProductionError):
    code = 'invalid_transition'
    status_code = 409
    default_message = 'This transition is not allowed from the current status.'


class AlreadyTerminal(InvalidTransition):
    code = 'already_terminal'
    default_message = 'The order is already completed or cancelled.'


class ConsultationPending(ProductionError):
    code = 'consultation_pending'
    status_code = 409
    default_message = 'Consultation must be completed or waived first.'


class ProofPending(ProductionError):
    code = 'proof_pending'
    status_code = 409
    default_message = 'A proof is awaiting the customer\'s review.'


class InvalidState(ProductionError):
    code = 'invalid_state'
    status_code = 409
    default_message = 'The record is not in a state that allows this action.'


# ==================== Duplicate-action guards ====================

class AlreadyActive(ProductionError):
    code = 'already_active'
    status_code = 409
    default_message = 'An active consultation already exists for this order.'


class AlreadyPending(ProductionError):
    code = 'already_pending'
    status_code = 409
    default_message = 'A price adjustment is already awaiting a response.'


class AlreadyUsed(ProductionError):
    code = 'already_used'
    status_code = 409
    default_message = 'The price adjustment for this order has already been used.'


class AlreadyResolved(ProductionError):
    code = 'already_resolved'
    status_code = 409
    default_message = 'This price adjustment has already been resolved.'


class AlreadyReleased(ProductionError):
    code = 'already_released'
    status_code = 409
    default_message = 'Escrow has already been released.'


class DuplicateHold(ProductionError):
    code = 'duplicate_hold'
    status_code = 409
    default_message = 'Escrow is already held for this order.'


# ==================== Input validation ====================

class InvalidAmount(ProductionError):
    code = 'invalid_amount'
    default_message = 'Amount must be a positive whole number of minor units.'


class NoOpAdjustment(ProductionError):
    code = 'noop_adjustment'
    default_message = 'Adjusted price must differ from the current price.'


class InvalidJustification(ProductionError):
    code = 'invalid_justification'
    default_message = 'A justification is required.'


class InvalidDeadline(ProductionError):
    code = 'invalid_deadline'
    default_message = 'Response deadline must be in the future.'


class InvalidProof(ProductionError):
    code = 'invalid_proof'
    default_message = 'A proof needs at least one image.'


# ==================== Escrow / payment ====================

class TopUpFailed(ProductionError):
    code = 'top_up_failed'
    status_code = 402
    default_message = 'The additional amount could not be charged.'


class PaymentFailed(ProductionError):
    code = 'payment_failed'
    status_code = 402
    default_message = 'The payment processor rejected the request.'


class NotHeld(ProductionError):
    code = 'not_held'
    status_code = 409
    default_message = 'No escrow is held for this order.'


# ==================== Access / lookup ====================

class Unauthorized(ProductionError):
    code = 'unauthorized'
    status_code = 403
    default_message = 'You are not allowed to perform this action on this order.'


class NotFound(ProductionError):
    code = 'not_found'
    status_code = 404
    default_message = 'Not found.'


class OrderNotFound(NotFound):
    code = 'order_not_found'
    default_message = 'Production order not found.'


class ConsultationNotFound(NotFound):
    code = 'consultation_not_found'
    default_message = 'Consultation not found.'


class PriceAdjustmentNotFound(NotFound):
    code = 'price_adjustment_not_found'
    default_message = 'Price adjustment not found.'


class ProofNotFound(NotFound):
    code = 'proof_not_found'
    default_message = 'Proof not found.'
