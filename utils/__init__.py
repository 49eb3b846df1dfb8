"""
Utilities package for the Deadlock Avoidance Simulator.
Contains configuration, logging and scenario loading/generation.
"""
