"""
Bundled middleware: action logging and performance monitoring
"""

from actionstack.tools.logger import action_logger, create_logger
from actionstack.tools.perfmon import ActionTiming, PerformanceMonitor, perfmon

__all__ = [
    'action_logger',
    'create_logger',
    'PerformanceMonitor',
    'ActionTiming',
    'perfmon',
]
