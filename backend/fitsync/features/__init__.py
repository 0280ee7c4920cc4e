"""
Feature modules.

Each feature owns its models, repositories and services.
"""
