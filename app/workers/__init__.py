"""
Workers module for the analytics background processing.

This module contains:
- unified_scheduler: interval and daily job scheduler with cancellation handles
- analytics_tasks: task bodies (batch processing, cleanup, health check)
- background_processor: owns the recurring analytics jobs
"""

__all__ = [
    "BackgroundProcessor",
    "JobHandle",
    "UnifiedScheduler",
]

from app.workers.background_processor import BackgroundProcessor
from app.workers.unified_scheduler import JobHandle, UnifiedScheduler
