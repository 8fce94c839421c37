"""Internal constants shared across the library."""

EARTH_RADIUS_M = 6_371_000.0

# ------------------------------------------------------------------
# Scheduling
# ------------------------------------------------------------------

DEFAULT_TICK_INTERVAL_S = 30.0
DEFAULT_REFRESH_INTERVAL_S = 5 * 60.0
DEFAULT_HEALTH_CHECK_INTERVAL_S = 5 * 60.0
DEFAULT_MAX_CONCURRENCY = 8

# ------------------------------------------------------------------
# Route time compression
#
# A 120 s wall-clock cycle stands in for a 20 minute traversal, so each
# 30 s tick represents five simulated minutes.
# ------------------------------------------------------------------

DEFAULT_CYCLE_S = 120.0
DEFAULT_ASSUMED_TRAVERSAL_S = 1200.0

# GPS noise, in degrees (0.001° is roughly 100 m).
DEFAULT_JITTER_DEGREES = 0.001
DEFAULT_SCENARIO_SPREAD_DEGREES = 0.01

DEFAULT_TIMEZONE = "Africa/Nairobi"

#: Vehicle statuses that take part in the simulation.
SIMULATED_STATUSES: frozenset[str] = frozenset({"available", "in_use"})

# ------------------------------------------------------------------
# Vehicle counters
# ------------------------------------------------------------------

#: Passengers boarded on each ``stop_arrival`` event, inclusive bounds.
PASSENGERS_PER_STOP = (1, 10)
#: Fraction of a trip credited per ``stop_arrival`` event.
TRIP_INCREMENT = 0.1
#: Trip length used for the estimated arrival time, in km.
ASSUMED_TRIP_KM = 30.0
