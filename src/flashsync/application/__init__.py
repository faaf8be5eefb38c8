# Application Package
from .queue_builder import QueueBuildResult, build_queue
from .reconcile import merge
from .replay import replay
from .scheduler import advance, day_number

__all__ = ["advance", "day_number", "replay", "build_queue", "QueueBuildResult", "merge"]
