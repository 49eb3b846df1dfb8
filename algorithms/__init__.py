"""
Algorithms package for the Deadlock Avoidance Simulator.
Contains the Banker's safety check, the request processor, request
policies and the turn-based scheduler.
"""
