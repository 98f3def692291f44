"""notify/ -- Notification dispatch and the SMTP mail transport.

Layer rule: notify/ may import from auth/ and core/, never from api/.
"""
