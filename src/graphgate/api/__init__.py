"""
REST endpoints served next to the GraphQL transports.
"""
