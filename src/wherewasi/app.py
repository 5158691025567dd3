"""Application context: owns the tracking, capture and history components."""

import threading
from pathlib import Path

from loguru import logger

from wherewasi.config import ExtensionConfig, load_config
from wherewasi.context.models import CursorPosition, WorkContext
from wherewasi.context.store import HistoryStore, KeyValueStore
from wherewasi.context.synthesizer import ContextExtractor
from wherewasi.errors import NavigationTargetMissing, PersistenceError
from wherewasi.presentation import Location, Presenter, ResumeChoice, resolve_location
from wherewasi.tracking.monitor import ActivityMonitor, Subscription, TimerFactory
from wherewasi.tracking.triggers import TriggerPolicy, TriggerReason, should_track_file


class AppContext:
    """Constructed once at startup and passed to every event handler.

    Call ``start()`` after construction and ``shutdown()`` exactly once when
    the host is going away; shutdown flushes a final snapshot.
    """

    def __init__(
        self,
        presenter: Presenter,
        config: ExtensionConfig | None = None,
        kv: KeyValueStore | None = None,
        workspace_folder: str | None = None,
        extractor: ContextExtractor | None = None,
        timer_factory: TimerFactory | None = None,
        policy: TriggerPolicy | None = None,
        config_path: Path | None = None,
    ):
        self.config = config or load_config(config_path)
        self.config_path = config_path
        self.presenter = presenter
        self.workspace_folder = workspace_folder
        self._owns_kv = kv is None
        self.kv = kv or KeyValueStore()
        self.history = HistoryStore(self.kv, workspace_folder, self.config.max_history_size)
        self.monitor = ActivityMonitor(self.config.idle_timeout_minutes, timer_factory)
        self.extractor = extractor or ContextExtractor(todo_keywords=self.config.todo_keywords)
        self.policy = policy or TriggerPolicy()
        self._subscriptions: list[Subscription] = []
        self._save_lock = threading.RLock()
        self._started = False
        self._shut_down = False

    # ── Lifecycle ────────────────────────────────────────────────

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self._subscriptions.append(self.monitor.on_idle(self._on_idle))
        logger.info("wherewasi started for workspace {}", self.workspace_folder or "(none)")

    def shutdown(self) -> None:
        """Save the current context once, then release every resource."""
        if self._shut_down:
            return
        self._shut_down = True
        try:
            if self.monitor.get_current_context() is not None:
                self.save_current(TriggerReason.SHUTDOWN, notify=False)
        finally:
            self.close()
            logger.info("wherewasi shut down")

    def close(self) -> None:
        """Release timers, subscriptions and storage without saving."""
        for subscription in self._subscriptions:
            subscription.cancel()
        self._subscriptions.clear()
        self.monitor.dispose()
        if self._owns_kv:
            self.kv.close()

    # ── Configuration ────────────────────────────────────────────

    def apply_config(self, config: ExtensionConfig) -> None:
        """Propagate new settings to every component without restarting."""
        self.config = config
        self.monitor.set_idle_timeout(config.idle_timeout_minutes)
        self.history.set_max_history_size(config.max_history_size)
        self.extractor.set_todo_keywords(config.todo_keywords)
        logger.debug("Applied configuration {}", config.model_dump())

    def reload_config(self) -> ExtensionConfig:
        config = load_config(self.config_path)
        self.apply_config(config)
        return config

    # ── Editor events ────────────────────────────────────────────

    def record_activity(self, position: CursorPosition) -> None:
        """Keystroke or cursor movement at ``position``."""
        self.monitor.record_activity(position)

    def focus_changed(self, position: CursorPosition) -> WorkContext | None:
        """A different editor became active. Saves the previous file if warranted."""
        saved = None
        if self.policy.on_focus_changed(position.file_path):
            saved = self.save_current(TriggerReason.FILE_SWITCH)
        self.monitor.record_activity(position)
        return saved

    def document_edited(self, position: CursorPosition) -> None:
        self.policy.on_document_edited(position.file_path)
        self.monitor.record_activity(position)

    def window_focus_changed(self, focused: bool) -> WorkContext | None:
        if focused:
            return None
        return self.save_current(TriggerReason.WINDOW_BLUR)

    def _on_idle(self, position: CursorPosition) -> None:
        self.capture_and_save(position, TriggerReason.IDLE)

    # ── Saving ───────────────────────────────────────────────────

    def save_current(self, reason: TriggerReason = TriggerReason.MANUAL, notify: bool = True) -> WorkContext | None:
        position = self.monitor.get_current_context()
        if position is None:
            if reason is TriggerReason.MANUAL:
                self.presenter.warn("No active context to save")
            return None
        return self.capture_and_save(position, reason, notify)

    def capture_and_save(
        self,
        position: CursorPosition,
        reason: TriggerReason,
        notify: bool = True,
    ) -> WorkContext | None:
        """Snapshot ``position`` and add it to history.

        Returns the snapshot if it was stored, None if it was excluded, a
        duplicate of the newest entry, or could not be persisted.
        """
        if not should_track_file(position.file_path, self.config.exclude_patterns):
            logger.debug("Not tracking {} ({})", position.file_path, reason.value)
            return None

        with self._save_lock:
            work_context = self.extractor.capture(position)
            try:
                saved = self.history.save_context(work_context)
            except PersistenceError as exc:
                logger.error("Failed to save context on {}: {}", reason.value, exc)
                self.presenter.warn("Failed to save work context")
                return None

        if not saved:
            return None
        logger.info("Saved context on {}: {}", reason.value, work_context.note)
        if notify:
            self.presenter.notify_saved(work_context)
        return work_context

    # ── Resuming ─────────────────────────────────────────────────

    def offer_resume(self) -> ResumeChoice | None:
        """Show the resume prompt for the newest snapshot if it is due."""
        if not self.config.auto_show_resume_popup:
            return None
        try:
            last = self.history.get_last_context()
            if last is None or not self.history.should_show_resume_popup():
                return None
            self.history.mark_resume_popup_shown()
        except PersistenceError as exc:
            logger.error("Cannot read history: {}", exc)
            self.presenter.warn("Work context history is unavailable")
            return None

        choice = self.presenter.prompt_resume(last)
        if choice is ResumeChoice.JUMP:
            self.jump(last)
        elif choice is ResumeChoice.VIEW_HISTORY:
            self.browse_history()
        return choice

    def browse_history(self) -> Location | None:
        try:
            history = self.history.get_history()
        except PersistenceError as exc:
            logger.error("Cannot read history: {}", exc)
            self.presenter.warn("Work context history is unavailable")
            return None
        selected = self.presenter.show_history(history)
        return self.jump(selected) if selected else None

    def jump(self, work_context: WorkContext) -> Location | None:
        """Resolve a snapshot to a location; missing files are reported, not removed."""
        try:
            location = resolve_location(work_context)
        except NavigationTargetMissing as exc:
            logger.warning("{}", exc)
            self.presenter.warn(f"File not found: {Path(exc.file_path).name}")
            return None
        self.presenter.info(f"Resume at {location}")
        return location
