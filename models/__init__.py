"""
Models package for the Deadlock Avoidance Simulator.
Contains resource vectors, processes, the resource ledger and the queue manager.
"""
