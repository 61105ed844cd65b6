from datetime import datetime, timedelta, timezone

import pytest

from app.models.enums import MessageType
from app.models.message import Message
from app.services.conversation_service import ConversationService
from app.services.history_service import HistoryService
from app.services.message_service import MessageService


def test_create_message_assigns_id_and_timestamp(db, make_user, make_conversation):
    alice, bob = make_user(), make_user()
    conversation = make_conversation(alice, bob)

    message = MessageService(db).create_message(conversation.id, alice.id, "hello")

    assert message.id is not None
    assert message.created_at is not None
    assert message.message_type == MessageType.TEXT
    assert message.sender.id == alice.id


def test_create_message_rejects_unknown_conversation(db, make_user):
    alice = make_user()

    assert MessageService(db).create_message("no-such-conversation", alice.id, "hello") is None


def test_list_messages_is_newest_first_and_paginated(db, make_user, make_conversation):
    alice, bob = make_user(), make_user()
    conversation = make_conversation(alice, bob)
    service = MessageService(db)
    for i in range(5):
        service.create_message(conversation.id, alice.id if i % 2 else bob.id, f"m{i}")

    first_page = service.list_messages(conversation.id, offset=0, limit=3)
    second_page = service.list_messages(conversation.id, offset=3, limit=3)

    assert [m.content for m in first_page] == ["m4", "m3", "m2"]
    assert [m.content for m in second_page] == ["m1", "m0"]
    assert service.list_messages(conversation.id, offset=10, limit=3) == []
    assert service.count_messages(conversation.id) == 5


def test_equal_timestamps_fall_back_to_insertion_order(db, make_user, make_conversation):
    alice, bob = make_user(), make_user()
    conversation = make_conversation(alice, bob)
    instant = datetime(2024, 9, 1, 8, 0, tzinfo=timezone.utc)
    for content in ("first", "second", "third"):
        db.add(Message(conversation_id=conversation.id, sender_id=alice.id, content=content, created_at=instant))
        db.commit()

    messages = MessageService(db).list_messages(conversation.id)

    assert [m.content for m in messages] == ["third", "second", "first"]


def test_list_messages_rejects_negative_paging(db, make_user, make_conversation):
    conversation = make_conversation(make_user(), make_user())

    with pytest.raises(ValueError):
        MessageService(db).list_messages(conversation.id, offset=-1)


def test_create_conversation_collapses_duplicate_ids(db, make_user):
    alice, bob = make_user(), make_user()

    conversation = ConversationService(db).create_conversation([alice.id, bob.id, alice.id])

    assert conversation.participant_ids == [alice.id, bob.id]
    assert conversation.is_group is False


def test_conversation_needs_two_participants(db, make_user):
    alice = make_user()

    with pytest.raises(ValueError):
        ConversationService(db).create_conversation([alice.id, alice.id])


def test_direct_conversation_needs_exactly_two(db, make_user):
    users = [make_user() for _ in range(3)]

    with pytest.raises(ValueError):
        ConversationService(db).create_conversation([u.id for u in users], is_group=False)

    group = ConversationService(db).create_conversation([u.id for u in users], is_group=True, group_name="Band")
    assert group.group_name == "Band"
    assert len(group.participant_ids) == 3


def test_direct_conversations_are_not_deduplicated(db, make_user):
    alice, bob = make_user(), make_user()
    service = ConversationService(db)

    first = service.create_conversation([alice.id, bob.id])
    second = service.create_conversation([bob.id, alice.id])

    assert first.id != second.id
    assert len(service.list_conversations_for_user(alice.id)) == 2


def test_update_summary_overwrites_and_reports_missing(db, make_user, make_conversation):
    conversation = make_conversation(make_user(), make_user())
    service = ConversationService(db)
    when = datetime(2024, 9, 1, 12, 30)

    assert service.update_conversation_summary(conversation.id, "see you", when) is True
    assert service.update_conversation_summary("missing", "see you", when) is False

    db.expire_all()
    refreshed = service.get_conversation(conversation.id)
    assert refreshed.last_message == "see you"
    assert refreshed.last_message_at.replace(tzinfo=None) == when


def test_conversations_ordered_by_last_message_with_empty_ones_last(db, make_user, make_conversation):
    alice, bob, carol, dave = make_user(), make_user(), make_user(), make_user()
    quiet = make_conversation(alice, bob)
    older = make_conversation(alice, carol)
    newer = make_conversation(alice, dave)
    unrelated = make_conversation(bob, carol)
    service = ConversationService(db)
    now = datetime(2024, 9, 1, 12, 0)
    service.update_conversation_summary(older.id, "old news", now - timedelta(hours=2))
    service.update_conversation_summary(newer.id, "fresh", now)

    ordered = service.list_conversations_for_user(alice.id)

    assert [c.id for c in ordered] == [newer.id, older.id, quiet.id]
    assert unrelated.id not in [c.id for c in ordered]


def test_participant_lookup(db, make_user, make_conversation):
    alice, bob, carol = make_user(), make_user(), make_user()
    conversation = make_conversation(alice, bob)
    service = ConversationService(db)

    assert service.get_participant_ids(conversation.id) == [alice.id, bob.id]
    assert service.get_participant_ids("missing") is None
    assert service.is_participant(conversation.id, alice.id)
    assert not service.is_participant(conversation.id, carol.id)


def test_history_service_views(db, make_user, make_conversation):
    alice, bob = make_user(), make_user()
    conversation = make_conversation(alice, bob)
    MessageService(db).create_message(conversation.id, bob.id, "hey")

    history = HistoryService(db)
    [view] = history.list_conversations(alice.id)
    [message] = history.get_message_history(conversation.id)

    assert view.participants == [alice.id, bob.id]
    assert message.sender.full_name == bob.full_name
    assert message.model_dump(by_alias=True)["conversationId"] == conversation.id
    assert history.get_message_history(conversation.id, offset=5) == []
