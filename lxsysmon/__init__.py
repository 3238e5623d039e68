"""Network event building, UDP report throttling, hex dumps and service installation for a Linux system monitor."""

__version__ = "0.1.0"