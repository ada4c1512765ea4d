"""CourseGate - learner progression, quiz gating and certification."""

__version__ = "0.1.0"
