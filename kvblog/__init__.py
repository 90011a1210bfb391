"""
kvblog: a single-tenant blog content manager backed by a key-value store.
"""
