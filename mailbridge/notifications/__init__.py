"""Notification coordination between Gmail, LINE and the stores."""
