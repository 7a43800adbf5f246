"""
Core infrastructure for tts-batch.

    - config.py: Settings loading, defaults and validation
    - logging/: Structured logging with numeric levels
    - metrics.py: Prometheus collectors
"""
