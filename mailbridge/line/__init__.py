"""
LINE Integration Module

Messaging API push client, webhook signature validation and chat command parsing.
"""
