"""Chat session state machine: consumes generation events, notifies observers, persists."""
import logging
import time
import uuid
from typing import Callable, Dict, List, Optional, Union
from pydantic import ValidationError

from rajai_builder.config import Settings
from rajai_builder.errors import ConfigurationError, InvalidTransitionError, SessionBusyError, StorageError
from rajai_builder.graph import create_graph
from rajai_builder.io import PROJECTS_KEY, SESSION_KEY, KeyValueStore, MemoryStore, load_json, save_json
from rajai_builder.orchestrator import GenerationOrchestrator
from rajai_builder.state import (
    CodeFragment,
    ConversationMessage,
    GenerationRequest,
    GenerationState,
    Project,
    SessionPhase,
    SessionSnapshot,
    StatusEvent,
    TerminalError,
)

logger = logging.getLogger(__name__)

MAX_PROJECTS = 10

GREETING_ID = "initial-greeting"
GREETING_TEXT = (
    "👋 Hi! I'm RajAI, your AI application builder.\n\n"
    "Describe the app you want to build, and my team of AI agents will create it for you."
)
SUCCESS_TEXT = (
    "✅ **Application Generated Successfully!**\n\n"
    "Check out the live preview and code on the right. What would you like to build next?"
)

Observer = Callable[[str, "ChatSession"], None]


def _new_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def greeting_message() -> ConversationMessage:
    return ConversationMessage(id=GREETING_ID, origin="assistant", content=GREETING_TEXT)


class ChatSession:
    """
    Owns the conversation, the agent progress table and the generated code.

    Phases: idle -> generating -> completed|failed -> idle. Events carry the
    request id they were produced for; anything not matching the current
    request is ignored.
    """

    def __init__(
        self,
        settings: Settings,
        store: Optional[KeyValueStore] = None,
        orchestrator: Optional[GenerationOrchestrator] = None,
    ):
        self.settings = settings
        self.store = store if store is not None else MemoryStore()
        self.orchestrator = orchestrator or GenerationOrchestrator(settings)
        self.graph = create_graph()

        self.phase = SessionPhase.IDLE
        self.messages: List[ConversationMessage] = [greeting_message()]
        self.agent_progress: Dict[str, StatusEvent] = {}
        self.generated_code = ""
        self.current_prompt = ""
        self.projects: List[Project] = []
        self.last_generation: Optional[GenerationState] = None

        self._request_id: Optional[str] = None
        self._observers: List[Observer] = []

    # ----- observers -----

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer; returns a function that unregisters it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def _notify(self, change: str) -> None:
        for observer in list(self._observers):
            try:
                observer(change, self)
            except Exception:
                logger.exception(f"Session observer failed on {change!r}")

    # ----- views -----

    @property
    def configuration_error(self) -> Optional[str]:
        return self.settings.configuration_error

    @property
    def current_request_id(self) -> Optional[str]:
        return self._request_id

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            messages=list(self.messages),
            agent_progress=list(self.agent_progress.values()),
            preview_html=self.generated_code,
            current_prompt=self.current_prompt,
        )

    # ----- persistence -----

    def restore(self) -> None:
        """Read the persisted session and history once, at startup."""
        try:
            data = load_json(self.store, SESSION_KEY)
            if data is not None:
                snapshot = SessionSnapshot.model_validate(data)
                self.messages = snapshot.messages or [greeting_message()]
                self.agent_progress = {event.agent_name: event for event in snapshot.agent_progress}
                self.generated_code = snapshot.preview_html
                self.current_prompt = snapshot.current_prompt
                logger.info(f"✓ Restored session ({len(self.messages)} messages)")
        except (StorageError, ValidationError) as e:
            logger.error(f"Failed to load session from storage: {e}")
            self._clear_transient()

        try:
            data = load_json(self.store, PROJECTS_KEY)
            if data is not None:
                self.projects = [Project.model_validate(item) for item in data][:MAX_PROJECTS]
        except (StorageError, ValidationError, TypeError) as e:
            logger.error(f"Failed to load project history from storage: {e}")
            self.projects = []

        self._notify("restore")

    def _persist(self) -> None:
        # A session holding only the greeting is not worth saving
        if len(self.messages) <= 1 and not self.current_prompt:
            return
        try:
            save_json(self.store, SESSION_KEY, self.snapshot().model_dump(mode="json", by_alias=True))
        except StorageError as e:
            logger.error(f"Failed to persist session: {e}")

    def _persist_projects(self) -> None:
        try:
            save_json(self.store, PROJECTS_KEY, [project.model_dump(mode="json") for project in self.projects])
        except StorageError as e:
            logger.error(f"Failed to persist project history: {e}")

    # ----- transitions -----

    def _transition(self, phase: SessionPhase) -> None:
        logger.debug(f"Session phase {self.phase.value} -> {phase.value}")
        self.phase = phase
        self._notify("phase")

    def _append_message(self, origin: str, content: str, prefix: str) -> None:
        self.messages.append(ConversationMessage(id=_new_id(prefix), origin=origin, content=content))
        self._persist()
        self._notify("message")

    def _clear_transient(self) -> None:
        self.messages = [greeting_message()]
        self.agent_progress = {}
        self.generated_code = ""
        self.current_prompt = ""

    async def submit(self, prompt: str) -> GenerationState:
        """
        Start a generation for prompt and run it to completion.

        Raises:
            SessionBusyError: if a generation is already in flight.
            ValueError: if the prompt is blank.
            ConfigurationError: if no credential is configured.
        """
        return await self.run(self.begin(prompt))

    def begin(self, prompt: str) -> GenerationRequest:
        """
        Claim the session for a new generation without awaiting anything.

        Moves to generating immediately, so a second caller is rejected even
        if run() has not been scheduled yet. Raises like submit().
        """
        if self.phase != SessionPhase.IDLE:
            raise SessionBusyError("A generation is already in progress")
        if not prompt or not prompt.strip():
            raise ValueError("Prompt must not be empty")
        if self.configuration_error:
            raise ConfigurationError(self.configuration_error)

        request_id = uuid.uuid4().hex
        self._request_id = request_id

        self._append_message("user", prompt, "user")
        self.agent_progress = {}
        self.generated_code = ""
        self.current_prompt = prompt
        self._transition(SessionPhase.GENERATING)
        self._notify("agent_progress")
        self._notify("code")
        self._append_message(
            "assistant",
            f'Roger that! Orchestrating my CrewAI team to build: "{prompt}". Stand by...',
            "ai",
        )
        return GenerationRequest(prompt=prompt, request_id=request_id)

    async def run(self, request: GenerationRequest) -> GenerationState:
        """Run a generation claimed by begin() and settle the session."""
        request_id = request.request_id
        prompt = request.prompt

        logger.info(f"Starting generation {request_id} for prompt: {prompt[:100]}")
        initial = GenerationState(request_id=request_id, prompt=prompt)
        config = {
            "configurable": {
                "orchestrator": self.orchestrator,
                "on_event": self.apply_event,
            }
        }
        try:
            final_state_dict = await self.graph.ainvoke(initial, config=config)
            final_state = GenerationState(**final_state_dict) if isinstance(final_state_dict, dict) else final_state_dict
        except Exception as e:
            logger.exception(f"❌ Generation {request_id} crashed")
            final_state = initial.model_copy(update={"status": "error", "error": str(e), "error_kind": "transport"})

        if request_id != self._request_id:
            logger.info(f"Ignoring outcome of abandoned generation {request_id}")
            return final_state

        self.last_generation = final_state
        if final_state.status == "success":
            self._complete(prompt)
        else:
            self.apply_event(TerminalError(
                kind=final_state.error_kind if final_state.error_kind in ("configuration", "credential_rejected") else "transport",
                message=final_state.error or "Generation failed",
                request_id=request_id,
            ))
        return final_state

    def apply_event(self, event: Union[StatusEvent, CodeFragment, TerminalError]) -> bool:
        """
        Apply one generation event. Returns False when the event was ignored
        because it belongs to a request that is no longer current.
        """
        if self._request_id is None or event.request_id != self._request_id:
            logger.debug(f"Ignoring stale {type(event).__name__} for request {event.request_id}")
            return False

        if isinstance(event, StatusEvent):
            # Insertion order is kept, so replacing a record keeps its slot
            self.agent_progress[event.agent_name] = event
            self._persist()
            self._notify("agent_progress")
        elif isinstance(event, CodeFragment):
            self.generated_code += event.text
            self._persist()
            self._notify("code")
        elif isinstance(event, TerminalError):
            self._fail(event)
        return True

    def _fail(self, error: TerminalError) -> None:
        self.agent_progress = {
            name: record.model_copy(update={"status": "error", "message": "Failed"}) if record.status == "working" else record
            for name, record in self.agent_progress.items()
        }
        self._notify("agent_progress")
        self._append_message("assistant", f"❌ **Error**: {error.message}", "ai-error")
        self._request_id = None
        self._transition(SessionPhase.FAILED)
        self._transition(SessionPhase.IDLE)

    def _complete(self, prompt: str) -> None:
        self._append_message("assistant", SUCCESS_TEXT, "ai-complete")
        project = Project(id=_new_id("proj"), prompt=prompt, timestamp=int(time.time() * 1000))
        self.projects = [project, *self.projects][:MAX_PROJECTS]
        self._persist_projects()
        self._notify("history")
        self._request_id = None
        self._transition(SessionPhase.COMPLETED)
        self._transition(SessionPhase.IDLE)

    def reset_conversation(self, abandon: bool = False) -> None:
        """
        Start a new chat: back to the single greeting, history kept.

        Args:
            abandon: allow resetting while generating. The in-flight request
                keeps running but its events are ignored from now on.
        """
        if self.phase != SessionPhase.IDLE:
            if not abandon:
                raise InvalidTransitionError("Cannot start a new chat while generating")
            logger.info(f"Abandoning generation {self._request_id}")

        self._request_id = None
        try:
            self.store.delete(SESSION_KEY)
        except StorageError as e:
            logger.error(f"Failed to delete persisted session: {e}")
        self._clear_transient()
        self.phase = SessionPhase.IDLE
        self._notify("reset")
