"""Multi-turn tool-calling conversation that annotates one document."""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Tuple

from pydantic import BaseModel, Field

from llm.cancellation import CancellationToken
from llm.errors import LLMAbortedError
from llm.models import Message, tool_response
from llm.service import LLMService
from memory.models import Conversation
from memory.sqlite_store import SQLiteMemoryStore
from schemas.annotations import AnnotationResult
from .patch import count_content_lines
from .prompts import SYSTEM_PROMPT, first_turn_message, follow_up_message
from .tools import ToolContext, ToolTable

logger = logging.getLogger(__name__)


class AnalyzerState(str, Enum):
    """Lifecycle of the current (or last) analyze() call."""
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    ABORTED = "aborted"
    FAILED = "failed"


class TurnOutcome(BaseModel):
    """Outcome of one analyze() call."""
    state: AnalyzerState
    annotations: List[AnnotationResult] = Field(default_factory=list)
    skipped: bool = False  # patch had no content worth a model call

    @property
    def aborted(self) -> bool:
        return self.state == AnalyzerState.ABORTED


class _ActiveCall:
    """Cancellation handle plus completion signal of one analyze() call."""

    def __init__(self, document_id: str):
        self.token = CancellationToken(label=f"analyze({document_id})")
        self.settled = asyncio.Event()


class Analyzer:
    """
    Drives the annotation conversation for one document.

    Each analyze() call appends a user message, then alternates between the
    model and the tool table until the model stops calling tools or the
    iteration cap is reached. Only one call is active at a time: starting a
    new one cancels the previous one and waits for it to rewind.
    """

    MAX_ITERATIONS = 10

    def __init__(
        self,
        document_id: str,
        llm_service: LLMService,
        tool_table: Optional[ToolTable] = None,
        store: Optional[SQLiteMemoryStore] = None,
        max_iterations: int = MAX_ITERATIONS,
        min_patch_lines: int = 1,
        temperature: float = 0.6,
    ):
        """
        Initialize the analyzer.

        Args:
            document_id: Document whose conversation this analyzer owns
            llm_service: Provider adapter used for every model call
            tool_table: Tools offered to the model (default: annotation tools)
            store: Optional persistent store for the conversation
            max_iterations: Maximum model calls per analyze() (default: 10)
            min_patch_lines: Minimum changed content lines worth a model call
            temperature: Sampling temperature
        """
        self.document_id = document_id
        self.llm_service = llm_service
        self.tool_table = tool_table or ToolTable()
        self.store = store
        self.max_iterations = max_iterations
        self.min_patch_lines = min_patch_lines
        self.temperature = temperature

        self.state = AnalyzerState.IDLE
        self._conversation: Optional[Conversation] = None
        self._active: Optional[_ActiveCall] = None

    @property
    def conversation(self) -> Conversation:
        """Current conversation value, loaded lazily on first access."""
        if self._conversation is None:
            messages: List[Message] = []
            if self.store is not None:
                messages = self.store.load_messages(self.document_id)
                if messages:
                    logger.info(f"Loaded {len(messages)} messages for {self.document_id}")
            self._conversation = Conversation(
                document_id=self.document_id,
                messages=tuple(messages),
            )
        return self._conversation

    @property
    def messages(self) -> Tuple[Message, ...]:
        return self.conversation.messages

    @property
    def last_message_index(self) -> int:
        return len(self.conversation.messages) - 1

    @property
    def is_busy(self) -> bool:
        return self._active is not None

    def cancel(self, reason: str = "cancelled") -> None:
        """Cancel the in-flight analyze() call, if any."""
        if self._active is not None:
            self._active.token.cancel(reason)

    async def settle(self, reason: str = "cancelled") -> None:
        """Cancel any in-flight analyze() call and wait until it has rewound."""
        while self._active is not None:
            active = self._active
            active.token.cancel(reason)
            await active.settled.wait()

    def truncate_messages(self, message_index: int) -> None:
        """
        Drop every message after ``message_index``.

        Raises:
            RuntimeError: An analyze() call is in flight; await settle() first
        """
        if self._active is not None:
            raise RuntimeError(f"Cannot truncate {self.document_id} while an analysis is running")
        self._set_conversation(self.conversation.truncate(message_index + 1))
        self._persist()
        logger.info(f"Truncated {self.document_id} conversation to {len(self.messages)} messages")

    async def analyze(
        self,
        patch: str,
        full_content: str,
        title: str = "",
        on_annotation: Optional[Callable[[AnnotationResult], None]] = None,
    ) -> List[AnnotationResult]:
        """
        Run one analysis turn over a note change.

        Args:
            patch: Diff of the note since the last analysis (or the full text)
            full_content: Current full note text
            title: Note title
            on_annotation: Optional callback fired as each annotation is made

        Returns:
            Annotations produced in this call; empty when skipped or aborted

        Raises:
            LLMError: Provider failures other than abort (conversation is rewound)
        """
        outcome = await self.run_turn(patch, full_content, title, on_annotation)
        return outcome.annotations

    async def run_turn(
        self,
        patch: str,
        full_content: str,
        title: str = "",
        on_annotation: Optional[Callable[[AnnotationResult], None]] = None,
    ) -> TurnOutcome:
        """Same as analyze(), but reports whether the turn ran, aborted or was skipped."""
        if count_content_lines(patch) < self.min_patch_lines:
            logger.info(f"Skipping analysis of {self.document_id}: no content changes in patch")
            return TurnOutcome(state=AnalyzerState.DONE, skipped=True)

        previous = self._active
        call = _ActiveCall(self.document_id)
        self._active = call
        if previous is not None:
            previous.token.cancel("superseded by a newer analyze() call")
            await previous.settled.wait()

        try:
            if call.token.cancelled:
                self.state = AnalyzerState.ABORTED
                return TurnOutcome(state=AnalyzerState.ABORTED)
            return await self._run(call.token, patch, full_content, title, on_annotation)
        finally:
            call.settled.set()
            if self._active is call:
                self._active = None

    async def _run(
        self,
        token: CancellationToken,
        patch: str,
        full_content: str,
        title: str,
        on_annotation: Optional[Callable[[AnnotationResult], None]],
    ) -> TurnOutcome:
        before = self.conversation

        if before.is_empty:
            user_message = Message(role="user", content=first_turn_message(title, full_content))
        else:
            user_message = Message(role="user", content=follow_up_message(patch))
        self._set_conversation(before.append(user_message))

        context = ToolContext(note_content=full_content, on_annotation=on_annotation)

        try:
            await self._loop(token, context)
        except LLMAbortedError:
            self._set_conversation(before)
            self.state = AnalyzerState.ABORTED
            logger.info(f"Analysis of {self.document_id} aborted; pending message rewound")
            return TurnOutcome(state=AnalyzerState.ABORTED)
        except BaseException:
            self._set_conversation(before)
            self.state = AnalyzerState.FAILED
            logger.error(f"Analysis of {self.document_id} failed; pending message rewound")
            raise

        self._persist()
        self.state = AnalyzerState.DONE
        logger.info(f"Analysis of {self.document_id} produced {len(context.results)} annotations")
        return TurnOutcome(state=AnalyzerState.DONE, annotations=context.results)

    async def _loop(self, token: CancellationToken, context: ToolContext) -> None:
        for iteration in range(self.max_iterations):
            logger.info(f"Analyzer iteration {iteration + 1}/{self.max_iterations}")

            self.state = AnalyzerState.AWAITING_MODEL
            response = await self.llm_service.call_llm(
                [Message(role="system", content=SYSTEM_PROMPT), *self.messages],
                temperature=self.temperature,
                tools=self.tool_table.tool_definitions,
                cancellation=token,
            )

            if response.finish_reason == "tool_calls" and response.tool_calls:
                self.state = AnalyzerState.EXECUTING_TOOLS
                assistant = Message(
                    role="assistant",
                    content=response.content,
                    tool_calls=response.tool_calls,
                )

                # Responses must follow in call order; providers match ids positionally
                responses = []
                for tool_call in response.tool_calls:
                    result = self.tool_table.execute(tool_call, context)
                    responses.append(tool_response(tool_call, result.to_content()))

                self._set_conversation(self.conversation.append(assistant, *responses))
                continue

            if response.content:
                self._set_conversation(
                    self.conversation.append(Message(role="assistant", content=response.content))
                )
            logger.info(f"Analyzer finished in {iteration + 1} iterations")
            return

        logger.warning(
            f"Analyzer hit max iterations ({self.max_iterations}) for {self.document_id}; "
            f"returning {len(context.results)} annotations collected so far"
        )

    def _set_conversation(self, conversation: Conversation) -> None:
        self._conversation = conversation

    def _persist(self) -> None:
        if self.store is None:
            return
        try:
            self.store.save_messages(self.document_id, list(self.messages))
        except Exception as e:
            logger.error(f"Error saving conversation for {self.document_id}: {e}")
