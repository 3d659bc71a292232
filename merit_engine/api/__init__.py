"""
HTTP API blueprints for the merit engine.
"""
