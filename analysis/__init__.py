"""
Analysis package for the Deadlock Avoidance Simulator.
Contains the event log, per-turn trace, run metrics and the multi-run analyzer.
"""
