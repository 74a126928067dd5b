"""
Models package for Semaphore Contention Simulator.
Contains the admission gate, shared resources, client workers and configuration.
"""
