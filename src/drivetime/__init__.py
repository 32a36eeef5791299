"""DriveTime - capture ideas and articles now, listen to them on the drive."""

__version__ = "0.1.0"
