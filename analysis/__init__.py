"""
Analysis package for Semaphore Contention Simulator.
Contains access/conflict/timeout events, the metrics sink and comparison reports.
"""
