"""Wardrobe assistant bootstrap."""

from __future__ import annotations

import contextlib
import logging
import threading
from pathlib import Path
from typing import Iterator, Optional

from logic.context_assembler import build_context
from logic.safety import system_instruction
from memory import conversation_session
from memory.conversation_session import ConversationSession
from models.conversation import ConversationHistory
from models.wardrobe_entry import WardrobeCollection, WardrobeEntry
from tools.assistant_client import AssistantClient, build_assistant_client
from tools.blob_store import BlobStore, LocalBlobStore
from tools.metadata_store import JSONMetadataStore, MetadataStore
from tools.wardrobe_repository import ConsistencyReport, RepairResult, WardrobeRepository
from wardrobe_app.config import WardrobeConfig
from wardrobe_app.errors import Busy
from wardrobe_app.logging_config import configure_logging, get_logger, log_event, operation_context


LOGGER = get_logger(__name__)


class WardrobeAssistantApp:
    """Wires together the stores, repository, assistant and conversation.

    Mutations and chat requests run one at a time; a call arriving while
    another is still in flight is rejected with :class:`Busy`.
    """

    def __init__(
        self,
        config: WardrobeConfig | None = None,
        *,
        blob_store: BlobStore | None = None,
        metadata_store: MetadataStore | None = None,
        assistant: AssistantClient | None = None,
        configure_logs: bool = True,
    ) -> None:
        self.config = config or WardrobeConfig.from_env()
        if configure_logs:
            configure_logging()

        self.blob_store = blob_store or LocalBlobStore(self.config.images_dir)
        self.metadata_store = metadata_store or JSONMetadataStore(self.config.metadata_path)
        self.repository = WardrobeRepository(self.blob_store, self.metadata_store)
        self.assistant = assistant or build_assistant_client(self.config)
        self.session: ConversationSession = conversation_session.create(
            self.config.system_prompt or system_instruction(),
            model=self.config.model,
        )
        self._lock = threading.Lock()

    @contextlib.contextmanager
    def _exclusive(self, operation: str) -> Iterator[str]:
        if not self._lock.acquire(blocking=False):
            log_event(LOGGER, logging.WARNING, "app_call_rejected_busy", method=operation)
            raise Busy(f"{operation} rejected: another operation is in progress")
        try:
            with operation_context(f"app:{operation}") as correlation_id:
                log_event(
                    LOGGER,
                    logging.INFO,
                    "app_call_started",
                    method=operation,
                    correlation_id=correlation_id,
                )
                yield correlation_id
                log_event(
                    LOGGER,
                    logging.INFO,
                    "app_call_completed",
                    method=operation,
                    correlation_id=correlation_id,
                )
        finally:
            self._lock.release()

    def initialize(self) -> None:
        """Prepare storage and load the saved wardrobe."""

        with self._exclusive("initialize"):
            self.repository.initialize()

    def list_items(self) -> WardrobeCollection:
        return self.repository.list()

    def blob_path(self, entry: WardrobeEntry) -> Path:
        return self.repository.path_for(entry)

    def add_item(self, source_path: str | Path, description: str) -> WardrobeEntry:
        """Copy a garment photo into the wardrobe with its description."""

        with self._exclusive("add_item"):
            return self.repository.add(source_path, description)

    def delete_item(self, entry_id: str) -> WardrobeEntry:
        with self._exclusive("delete_item"):
            return self.repository.delete(entry_id)

    def wardrobe_context(self) -> str:
        return build_context(self.repository.list())

    def ask(self, message: str) -> str:
        """Ask the stylist about the current wardrobe and record both turns."""

        with self._exclusive("ask"):
            context = build_context(self.repository.list())
            self.session, reply = conversation_session.ask(
                self.session, message, context, self.assistant
            )
            return reply

    def history(self) -> ConversationHistory:
        return self.session.history

    def check_consistency(self) -> ConsistencyReport:
        return self.repository.check_consistency()

    def repair(self, drop_dangling: bool = False) -> RepairResult:
        with self._exclusive("repair"):
            return self.repository.repair(drop_dangling=drop_dangling)

    def reset_corrupt_metadata(self) -> Optional[Path]:
        """Set aside an unreadable metadata file and continue with an empty wardrobe."""

        with self._exclusive("reset_corrupt_metadata"):
            return self.repository.reset_corrupt_metadata()


__all__ = ["WardrobeAssistantApp"]
