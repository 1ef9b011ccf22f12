from fleetdesk.models.driver import Driver
from fleetdesk.models.vehicle import Vehicle
from fleetdesk.models.consignment import Consignment
from fleetdesk.models.trip import Trip
from fleetdesk.models.trip_revenue import TripRevenue
from fleetdesk.models.route_deviation import RouteDeviationWarning
from fleetdesk.models.driver_location import DriverLocation
from fleetdesk.models.reconciliation import SettlementReconciliation

__all__ = [
    "Driver",
    "Vehicle",
    "Consignment",
    "Trip",
    "TripRevenue",
    "RouteDeviationWarning",
    "DriverLocation",
    "SettlementReconciliation",
]
