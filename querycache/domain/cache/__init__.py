"""
Cache Domain Module

Domain-Driven Design implementation for the read-through query cache.
Contains entities, value objects, repository interfaces, and domain services.
"""
