"""Stations bounded context — kitchen and barista preparation.

Each station consumes its tickets from the ticket topic, keeps a local
StationTicket per order, and reports every status change back to the
coordinator. Stations never touch the order store directly.
"""

from protean.domain import Domain

stations = Domain(name="stations")
