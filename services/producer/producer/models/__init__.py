"""
Models package for data passed between the emitter and its sinks.
"""
