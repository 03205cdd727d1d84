"""
Pokedex Catalog Service

Trainers, pokemon, type tags, captures and account users, with
transactional outbox delivery of domain notifications.
"""

__version__ = "1.0.0"
