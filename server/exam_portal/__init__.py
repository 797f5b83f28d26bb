"""Online examination service: exams, timed attempts, submissions and grading."""

__version__ = "0.1.0"
