"""Are We Down? - a watchdog daemon that notifies when monitored targets change status."""

__version__ = "0.1.0"
