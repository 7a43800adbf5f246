"""
Utility modules for tts-batch.

    - timeit.py: Performance measurement
"""
