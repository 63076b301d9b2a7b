"""quizpulse: quiz attempt scoring and topic insight analytics."""

__version__ = "0.1.0"
