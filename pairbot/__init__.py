"""
pairbot - WhatsApp pairing code service

Issues short-lived pairing codes for phone numbers and mirrors the state of a
WhatsApp Web session (QR code, online/offline) over HTTP.
"""

__version__ = "2.1.0"
