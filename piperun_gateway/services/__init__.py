"""
Business logic services: normalization, matching, routing, pagination,
upserts and the composite workflows.
"""
