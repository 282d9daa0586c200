"""
Row-level persistence for users and tracked emails.
"""
