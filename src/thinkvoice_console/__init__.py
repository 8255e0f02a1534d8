"""ThinkVoice Console: multi-tenant administration backend for voice agents."""

from thinkvoice_console.client import ConsoleClient, SessionHolder
from thinkvoice_console.auth.tokens import Identity, issue_token, verify_token

__all__ = [
    "ConsoleClient",
    "SessionHolder",
    "Identity",
    "issue_token",
    "verify_token",
]
__version__ = "0.1.0"
