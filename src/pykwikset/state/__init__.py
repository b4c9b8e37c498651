"""State/store layer.

This package is the single place where remote device records are merged
into locally tracked entities.  It performs no I/O: the reconciliation
engine fetches, the store diffs and applies, and every observable change
comes back as a :class:`~pykwikset.state.events.DeviceEvent`.
"""
