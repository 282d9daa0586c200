"""
Gmail Integration Module

OAuth authorization, message listing and mailbox watch registration.
"""
