from mixnet_parts.runtime.logging import JsonlLogger
from mixnet_parts.runtime.scheduler import Clock, FakeClock, RealClock

__all__ = ["Clock", "FakeClock", "JsonlLogger", "RealClock"]
