"""Error taxonomy for the allocation engine"""


class AllocationError(Exception):
    """Base class for allocation engine errors"""

    def __init__(self, message: str, **context):
        super().__init__(message)
        self.message = message
        self.context = context


class ValidationError(AllocationError):
    """Missing or invalid input; raised before the store is touched"""


class InvalidTransitionError(ValidationError):
    """A state machine or booking status transition that is not allowed"""


class NotFoundError(AllocationError):
    """A referenced booking, table, join group or flow does not exist"""


class NoCapacityError(AllocationError):
    """No candidate resource fits; resolved by marking the booking unallocated"""


class ConcurrencyConflictError(AllocationError):
    """An allocation write lost a race with a competing writer"""


class DataIntegrityError(AllocationError):
    """Stored data breaks an invariant: non-contiguous priority ranks or a violated store constraint"""


class SlotUnavailableError(AllocationError):
    """No free resource is left to hold for the requested slot"""


class HoldExpiredError(AllocationError):
    """The slot hold lapsed before it was extended or converted"""
