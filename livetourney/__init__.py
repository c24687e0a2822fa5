"""Live tournament runtime: clock, seating and table balancing for live poker events."""

__version__ = "0.1.0"
