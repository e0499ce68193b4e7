"""Framework-independent logging domain: models, formatters and loggers."""
