"""
Third-party service integrations (mail transports).
"""
