"""School timetable, attendance and AI-assisted import back end."""

__version__ = "0.1.0"
