"""
Cache Domain Module

Read-through caching of paginated list views.
Contains entities, value objects, the store interface, and domain services.
"""
