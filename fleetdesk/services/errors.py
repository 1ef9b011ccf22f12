"""
Domain errors raised by the settlement, assignment and trip services.

Each FleetError carries a stable ``code`` that the API exposes to the client
next to the human readable message.
"""


class FleetError(Exception):
    code = "fleet_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class SettlementError(FleetError):
    code = "settlement_error"


class TripNotFound(SettlementError):
    code = "trip_not_found"


class ConsignmentNotFound(SettlementError):
    code = "consignment_not_found"


class VehicleNotFound(SettlementError):
    code = "vehicle_not_found"


class TripAlreadyClosed(SettlementError):
    code = "trip_already_closed"


class TripMismatch(SettlementError):
    """The driver or vehicle named in the request is not the one assigned to the trip."""
    code = "trip_mismatch"


class GeocodingFailed(SettlementError):
    code = "geocoding_failed"


class InvalidWeight(SettlementError):
    code = "invalid_weight"


class UnknownVehicleClass(SettlementError):
    code = "unknown_vehicle_class"


# ---------------------------------------------------------------------------
# Consignment intake / trip assignment
# ---------------------------------------------------------------------------

class AssignmentError(FleetError):
    code = "assignment_error"


class DriverNotFound(AssignmentError):
    code = "driver_not_found"


class DriverUnavailable(AssignmentError):
    code = "driver_unavailable"


class VehicleUnavailable(AssignmentError):
    code = "vehicle_unavailable"


class VehicleClassMismatch(AssignmentError):
    code = "vehicle_class_mismatch"


class ConsignmentNotPending(AssignmentError):
    code = "consignment_not_pending"


class DuplicateConsignmentCode(AssignmentError):
    code = "duplicate_consignment_code"


class InvalidTripTransition(Exception):
    def __init__(self, current: str, target: str):
        super().__init__(f"Trip cannot move from {current!r} to {target!r}")
        self.current = current
        self.target = target
