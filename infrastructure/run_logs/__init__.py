"""Durable per-run audit logging."""

from .file_logger import DurableRunLogger, build_log_filename, format_entry

__all__ = ["DurableRunLogger", "build_log_filename", "format_entry"]
