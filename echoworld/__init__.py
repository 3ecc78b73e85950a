"""
EchoWorld service package.

This package provides a FastAPI application for sharing geolocated personal
narratives ("echoes") with profiles, reactions, comments, direct messaging
and a realtime notification layer, together with storage, database and
pub/sub abstractions that can run fully in memory for development and tests.
"""
