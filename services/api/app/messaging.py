"""
Direct renter-owner conversations.

Assistant conversations (`ai_chat`) are written only by the chat endpoint; everything here
works on the two-party `renter_owner` kind, except read receipts and history, which apply to both.
"""

from __future__ import annotations

from uuid import UUID

from services.api.app.store import ConversationRecord, ConversationStore, MessageRecord, PropertyStore


MAX_MESSAGE_LENGTH = 2000


class MessagingRejected(ValueError):
    def __init__(self, reason: str, status_code: int = 400):
        self.reason = reason
        self.status_code = status_code
        super().__init__(reason)


def ensure_participant(conversation: ConversationRecord | None, user_id: str, action: str) -> ConversationRecord:
    if conversation is None:
        raise MessagingRejected("Conversation not found", 404)
    if user_id not in conversation.participants:
        raise MessagingRejected(f"Not authorized to {action}", 403)
    return conversation


async def open_direct_conversation(
    conversations: ConversationStore,
    properties: PropertyStore,
    user_id: str,
    participant_id: str,
    property_id: UUID | None = None,
) -> tuple[ConversationRecord, bool]:
    """
    Find or start the conversation between two users, optionally about one listing.

    Returns (conversation, created). The pair is unordered: whoever writes first, both sides
    land in the same thread.
    """
    participant_id = participant_id.strip()
    if not participant_id:
        raise MessagingRejected("participant_id is required")
    if participant_id == user_id:
        raise MessagingRejected("You cannot start a conversation with yourself")
    if property_id is not None:
        prop = await properties.get_property(property_id)
        if prop is None:
            raise MessagingRejected("Property not found", 404)
        if prop.owner_id not in (user_id, participant_id):
            raise MessagingRejected("One participant must own the property")

    existing = await conversations.find_direct_conversation(user_id, participant_id, property_id)
    if existing is not None:
        return existing, False
    created = await conversations.create_conversation(
        user_id, "", type="renter_owner", participant_id=participant_id, property_id=property_id
    )
    return created, True


async def send_message(
    conversations: ConversationStore, conversation_id: UUID, sender_id: str, content: str
) -> MessageRecord:
    conversation = ensure_participant(
        await conversations.get_conversation(conversation_id), sender_id, "send messages in this conversation"
    )
    if conversation.type != "renter_owner":
        raise MessagingRejected("Assistant conversations are continued through the chat endpoint")
    content = content.strip()
    if not content:
        raise MessagingRejected("Message content is required")
    if len(content) > MAX_MESSAGE_LENGTH:
        raise MessagingRejected(f"Message must be between 1 and {MAX_MESSAGE_LENGTH} characters")

    message = await conversations.append_message(
        conversation_id, sender_id, content, message_type="text", is_ai=False
    )
    await conversations.touch_conversation(conversation_id, content)
    return message


async def list_conversation_messages(
    conversations: ConversationStore, conversation_id: UUID, user_id: str, *, page: int = 1, limit: int = 50
) -> tuple[list[MessageRecord], int]:
    ensure_participant(await conversations.get_conversation(conversation_id), user_id, "view messages")
    offset = (max(page, 1) - 1) * limit
    rows = await conversations.list_messages(conversation_id, limit=limit, offset=offset)
    return rows, await conversations.count_messages(conversation_id)


async def mark_message_read(conversations: ConversationStore, message_id: UUID, user_id: str) -> MessageRecord:
    message = await conversations.get_message(message_id)
    if message is None:
        raise MessagingRejected("Message not found", 404)
    ensure_participant(await conversations.get_conversation(message.conversation_id), user_id, "read this message")
    # A sender's own message is read by the other side, not by them.
    if message.sender_id == user_id and not message.is_ai:
        return message
    return await conversations.mark_read(message_id)
