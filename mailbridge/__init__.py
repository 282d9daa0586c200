"""
Gmail to LINE notification bridge.

Links LINE users to their Gmail mailboxes and relays new-mail notifications
and on-demand mail lists to LINE.
"""

__version__ = "1.0.0"
