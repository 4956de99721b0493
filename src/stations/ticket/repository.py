"""Repository for StationTicket."""

from shared.tickets import TERMINAL_STATUSES

from stations.domain import stations
from stations.ticket.ticket import StationTicket


@stations.repository(part_of=StationTicket)
class StationTicketRepository:
    def find_for(self, order_id: str, station: str) -> StationTicket | None:
        """The ticket a station holds for an order, if it has received one."""
        return self._dao.query.filter(order_id=str(order_id), station=station).all().first

    def find_open(self, station: str) -> list[StationTicket]:
        terminal = [s.value for s in TERMINAL_STATUSES]
        tickets = self._dao.query.filter(station=station).all().items
        open_tickets = [t for t in tickets if t.status not in terminal]
        return sorted(open_tickets, key=lambda t: t.received_at)

    def find_with_unreported(self) -> list[StationTicket]:
        return [t for t in self._dao.query.all().items if t.unreported_transitions()]
