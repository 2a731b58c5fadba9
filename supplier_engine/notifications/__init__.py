"""
Supplier notifications.

Notifications are conversation messages with structured metadata; see
ConversationMessenger.
"""

from .messenger import ConversationMessenger, format_project_notification, format_quote_message

__all__ = ['ConversationMessenger', 'format_project_notification', 'format_quote_message']
