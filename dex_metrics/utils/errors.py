class UnknownEntityError(LookupError):
    """A key references a pool or token that has not been observed yet."""


class MalformedKeyError(ValueError):
    """A key carries the right scope marker but the wrong number of segments."""


class DuplicateAggregationError(RuntimeError):
    """More aggregation partials were observed for one key than the model allows."""


class OrdinalOrderError(RuntimeError):
    """A mutation arrived with an ordinal lower than one already applied."""


class SegmentNotReadyError(OrdinalOrderError):
    """A segment arrived before the segment it continues was persisted."""
