"""
External Collaborators
"""

from .contacts import ContactResolver, ContactBook
from .messenger import Messenger, ConnectionMessenger, ConsoleMessenger
from .session_store import SessionData, SessionStore
from .connection import ChatConnection, login, render_qr_code, render_qr_to_terminal

__all__ = [
    "ContactResolver",
    "ContactBook",
    "Messenger",
    "ConnectionMessenger",
    "ConsoleMessenger",
    "SessionData",
    "SessionStore",
    "ChatConnection",
    "login",
    "render_qr_code",
    "render_qr_to_terminal",
]
