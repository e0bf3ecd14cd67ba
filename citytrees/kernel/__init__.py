"""
Kernel - identity, permissions, persistence models and record services.
"""
