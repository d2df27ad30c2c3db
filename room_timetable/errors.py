# room_timetable/errors.py
"""
Rejections raised by the timetable engine.

Every error carries a machine-readable ``reason`` so callers can message
precisely. None of them is fatal to the process: each is scoped to a single
booking attempt or a single template-week of a materialization run.
"""


class BookingError(Exception):
    """Base class for every engine rejection."""

    reason = "booking_error"

    def __init__(self, detail: str, reason: str = None, party: str = None):
        super().__init__(detail)
        self.detail = detail
        if reason is not None:
            self.reason = reason
        self.party = party

    def to_dict(self) -> dict:
        return {"reason": self.reason, "party": self.party, "detail": self.detail}


class ValidationError(BookingError):
    """Bad input: interval shape, operating hours, weekend policy, past start."""

    reason = "invalid_request"


class ConflictError(BookingError):
    """The interval overlaps the room's timetable or the owner's own schedule."""

    reason = "slot_unavailable"

    ROOM = "room"
    OWNER = "owner"

    def __init__(self, detail: str, party: str):
        super().__init__(detail, party=party)


class RaceLostError(ConflictError):
    # Same shape as ConflictError for callers; logged separately.
    pass


class DataIntegrityError(BookingError):
    """Materialization could not produce a sane booking for one template-week."""

    reason = "data_integrity"


class NotFoundError(BookingError):
    reason = "not_found"
