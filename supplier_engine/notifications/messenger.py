"""
Conversation messaging for supplier notifications.

Project notifications land in the (customer, supplier, project)
conversation as a message from the customer, with JSON metadata the
transport layer renders without re-parsing the text.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError

from database import Database, Conversation as ConversationModel, Message as MessageModel
from supplier_engine.retry import messaging_retry
from supplier_engine.schemas import ProjectRecord, QuoteRecord

logger = logging.getLogger(__name__)


DEFAULT_DESCRIPTION_LIMIT = 300


def truncate(text: Optional[str], limit: int = DEFAULT_DESCRIPTION_LIMIT) -> str:
    """Cut text to at most `limit` characters, ending in '...' when cut."""
    if not text:
        return ''
    if len(text) <= limit:
        return text
    return text[:max(limit - 3, 0)] + '...'


def format_project_notification(
    project: ProjectRecord,
    description_limit: int = DEFAULT_DESCRIPTION_LIMIT
) -> Tuple[str, Dict[str, Any]]:
    """
    Notification text and metadata for a new project.

    Returns:
        (content, metadata)
    """
    category = project.category_title or ''
    city = project.city_title or ''

    lines = [f"📋 New project: {project.title}"]
    description = truncate(project.description, description_limit)
    if description:
        lines.append("")
        lines.append(description)
    lines.append("")
    lines.append(f"🏷 Category: {category}")
    lines.append(f"📍 City: {city}")

    metadata = {
        'type': 'project_notification',
        'projectId': project.id,
        'projectTitle': project.title,
        'categoryTitle': category,
        'cityTitle': city,
    }
    return "\n".join(lines), metadata


def format_quote_message(project: ProjectRecord, quote: QuoteRecord) -> Tuple[str, Dict[str, Any]]:
    """Text and metadata of the message a supplier sends with a new quote."""
    lines = [
        "💼 New quote for your project",
        "",
        f"Project: {project.title}",
        f"Price: {quote.price:,.2f}",
    ]
    if quote.delivery_time_days:
        lines.append(f"Delivery: {quote.delivery_time_days} days")
    if quote.description:
        lines.append("")
        lines.append(quote.description)

    metadata = {
        'type': 'quote',
        'quoteId': quote.id,
        'projectId': project.id,
        'projectTitle': project.title,
        'price': quote.price,
        'deliveryTimeDays': quote.delivery_time_days,
        'description': quote.description,
    }
    return "\n".join(lines), metadata


class ConversationMessenger:
    """
    Messaging port over the conversations / messages tables.

    Writes are retried on transient OperationalError (locked SQLite file,
    dropped connection).
    """

    def __init__(self, database: Database):
        self.database = database

        self.stats = {
            'conversations_created': 0,
            'messages_sent': 0,
        }

    async def _find_conversation(
        self,
        customer_id: str,
        supplier_id: str,
        project_id: Optional[str]
    ) -> Optional[str]:
        async with self.database.session() as session:
            query = select(ConversationModel.id).where(
                ConversationModel.customer_id == customer_id,
                ConversationModel.supplier_id == supplier_id,
            )
            if project_id is None:
                query = query.where(ConversationModel.project_id.is_(None))
            else:
                query = query.where(ConversationModel.project_id == project_id)

            result = await session.execute(query.limit(1))
            return result.scalar_one_or_none()

    @messaging_retry
    async def get_or_create_conversation(
        self,
        customer_id: str,
        supplier_id: str,
        project_id: Optional[str] = None
    ) -> str:
        """
        Conversation ID for (customer, supplier, project), created if needed.

        A concurrent create for the same triple hits the unique constraint
        and resolves to the row the other caller wrote.
        """
        conversation_id = await self._find_conversation(customer_id, supplier_id, project_id)
        if conversation_id:
            return conversation_id

        conversation = ConversationModel(
            customer_id=customer_id,
            supplier_id=supplier_id,
            project_id=project_id,
        )
        try:
            async with self.database.session() as session:
                session.add(conversation)
                await session.flush()
                conversation_id = conversation.id
        except IntegrityError:
            conversation_id = await self._find_conversation(customer_id, supplier_id, project_id)
            if conversation_id is None:
                raise
            return conversation_id

        self.stats['conversations_created'] += 1
        logger.debug(f"Conversation {conversation_id} created for {customer_id} / {supplier_id}")
        return conversation_id

    @messaging_retry
    async def send_message(
        self,
        sender_id: str,
        conversation_id: str,
        content: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Append a message and bump the conversation's last_message_at."""
        now = datetime.utcnow()
        message = MessageModel(
            conversation_id=conversation_id,
            sender_id=sender_id,
            content=content,
            message_metadata=metadata,
            created_at=now,
        )

        async with self.database.session() as session:
            session.add(message)
            await session.execute(
                update(ConversationModel)
                .where(ConversationModel.id == conversation_id)
                .values(last_message_at=now)
            )
            await session.flush()
            message_id = message.id

        self.stats['messages_sent'] += 1
        return message_id

    def get_stats(self) -> Dict[str, Any]:
        """Messaging statistics."""
        return self.stats.copy()
