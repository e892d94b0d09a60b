"""2Mins: two-minute habit challenges from the terminal."""

__version__ = "0.1.0"
