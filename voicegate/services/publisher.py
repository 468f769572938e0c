"""Status publisher module for pub/sub event publishing."""

import logging
from pubsub import pub

from ..models.snapshot import VoiceSnapshot
from ..models.transcription import ConversationRecord

logger = logging.getLogger(__name__)


class StatusPublisher:
    """Publishes orchestrator snapshots and conversation records using pubsub.pub."""

    def __init__(self, topic_root: str = "voicegate"):
        """Initialize status publisher.

        Args:
            topic_root: Root topic; each orchestrator instance should use its own
        """
        self.topic_root = topic_root
        self.status_topic = f"{topic_root}.status"
        self.conversation_topic = f"{topic_root}.conversation"
        logger.info(f"StatusPublisher initialized with topics: {self.status_topic}, {self.conversation_topic}")

    def publish_snapshot(self, snapshot: VoiceSnapshot) -> None:
        """Publish the current orchestrator snapshot."""
        pub.sendMessage(self.status_topic, snapshot=snapshot)

    def publish_record(self, record: ConversationRecord) -> None:
        """Publish a newly appended conversation record."""
        pub.sendMessage(self.conversation_topic, record=record)
        logger.debug(f"Published conversation record: '{record.text}'")
