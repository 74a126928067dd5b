"""
Utilities package for Semaphore Contention Simulator.
Contains concurrency helpers, random streams, logging and scenario loading.
"""
