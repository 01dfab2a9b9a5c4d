"""
Emitter package producing the periodic tick sequence.
"""

from producer.emitter.interval_emitter import (
    EmitterHandle,
    EmitterState,
    IntervalEmitter,
    start,
)

__all__ = ["EmitterHandle", "EmitterState", "IntervalEmitter", "start"]
