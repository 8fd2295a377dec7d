"""CourseWatch: video progress tracking and exam gating."""

__version__ = "0.1.0"
