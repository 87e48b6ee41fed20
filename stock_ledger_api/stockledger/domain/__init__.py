"""
Domain layer: entities, enumerations, typed errors and quantity effects.

Nothing in this package touches the database or the network; services and
repositories build on it.
"""
