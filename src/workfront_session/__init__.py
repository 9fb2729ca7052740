"""workfront-session: reusable authenticated sessions for Adobe Workfront."""

__version__ = "0.1.0"
