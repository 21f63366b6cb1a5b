from experiences.executors.base import run_source_with_status, skipped_status

__all__ = ["run_source_with_status", "skipped_status"]
