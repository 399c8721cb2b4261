from .models import Failed, Found, Resource, ScanResult
from .orchestrator import ScanOrchestrator
from .pacing import RateLimiter, with_retries
from .prober import DayProber
from .reporter import Reporter
from .scanner import ResourceScanner

__all__ = [
    "DayProber",
    "Failed",
    "Found",
    "RateLimiter",
    "Reporter",
    "Resource",
    "ResourceScanner",
    "ScanOrchestrator",
    "ScanResult",
    "with_retries",
]

__version__ = "0.1.0"
