from pathlib import Path
from typing import Dict, Optional

from damage_review.core.config.environment_config import EnvironmentConfig
from damage_review.core.utils.logger import get_logger
from damage_review.data.adapters.image_loader import ImageLoader
from damage_review.data.adapters.seed_loader import seed_store
from damage_review.data.repositories.in_memory_damage_store import InMemoryDamageStore
from damage_review.data.repositories.session_registry import ReviewSessionRegistry
from damage_review.domain.entities.bbox_entity import BoundingBox
from damage_review.domain.entities.damage_entity import Damage
from damage_review.domain.repositories.damage_store import DamageStore
from damage_review.domain.usecases.completion_usecase import CompletionAggregator
from damage_review.domain.usecases.damage_status_usecase import DamageStatusMachine
from damage_review.domain.usecases.recap_usecase import RecapProjector
from damage_review.domain.usecases.review_navigator_usecase import ReviewNavigator
from damage_review.domain.usecases.review_workflow_usecase import ReviewWorkflow
from damage_review.presentation.canvas.annotation_canvas import AnnotationCanvas

_logger = get_logger("service_locator")


class ServiceLocator:
    _config: Optional[EnvironmentConfig] = None
    _store: Optional[DamageStore] = None
    _image_loader: Optional[ImageLoader] = None
    _status_machine: Optional[DamageStatusMachine] = None
    _aggregator: Optional[CompletionAggregator] = None
    _navigator: Optional[ReviewNavigator] = None
    _workflow: Optional[ReviewWorkflow] = None
    _recap: Optional[RecapProjector] = None
    _sessions: Optional[ReviewSessionRegistry] = None
    _canvases: Dict[str, AnnotationCanvas] = {}
    # Reports the workflow handed off to recap; cleared when the recap is confirmed
    completed_reports: Dict[str, bool] = {}

    @classmethod
    def config(cls) -> EnvironmentConfig:
        if cls._config is None:
            cls._config = EnvironmentConfig()
            _logger.info(
                "[config] APP_ENV=%s REVIEW_SEED_PATH=%s CANVAS=%dx%d",
                cls._config.app_env,
                cls._config.review_seed_path or "NONE",
                cls._config.canvas_width,
                cls._config.canvas_height,
            )
        return cls._config

    @classmethod
    def store(cls) -> DamageStore:
        if cls._store is None:
            store = InMemoryDamageStore()
            seed_path = cls.config().review_seed_path
            if seed_path:
                seed_store(store, Path(seed_path))
            cls._store = store
        return cls._store

    @classmethod
    def image_loader(cls) -> ImageLoader:
        if cls._image_loader is None:
            cfg = cls.config()
            cls._image_loader = ImageLoader(timeout=cfg.image_fetch_timeout, max_cached=cfg.image_cache_size)
        return cls._image_loader

    @classmethod
    def status_machine(cls) -> DamageStatusMachine:
        if cls._status_machine is None:
            cls._status_machine = DamageStatusMachine(store=cls.store(), min_box_size=cls.config().min_box_size)
        return cls._status_machine

    @classmethod
    def aggregator(cls) -> CompletionAggregator:
        if cls._aggregator is None:
            cls._aggregator = CompletionAggregator(store=cls.store())
        return cls._aggregator

    @classmethod
    def navigator(cls) -> ReviewNavigator:
        if cls._navigator is None:
            cls._navigator = ReviewNavigator(aggregator=cls.aggregator())
        return cls._navigator

    @classmethod
    def _mark_report_complete(cls, report_id: str) -> None:
        cls.completed_reports[report_id] = True

    @classmethod
    def workflow(cls) -> ReviewWorkflow:
        if cls._workflow is None:
            cls._workflow = ReviewWorkflow(
                store=cls.store(),
                status_machine=cls.status_machine(),
                aggregator=cls.aggregator(),
                navigator=cls.navigator(),
                on_report_complete=cls._mark_report_complete,
            )
        return cls._workflow

    @classmethod
    def recap(cls) -> RecapProjector:
        if cls._recap is None:
            cls._recap = RecapProjector(store=cls.store())
        return cls._recap

    @classmethod
    def sessions(cls) -> ReviewSessionRegistry:
        if cls._sessions is None:
            cls._sessions = ReviewSessionRegistry()
        return cls._sessions

    @classmethod
    def canvas(cls, session_id: str) -> AnnotationCanvas:
        """Canvas bound to a review session; its callbacks write back into the registry."""
        canvas = cls._canvases.get(session_id)
        if canvas is not None:
            return canvas

        registry = cls.sessions()

        def on_damage_selected(damage: Damage) -> None:
            registry.save(session_id, ReviewNavigator.select_damage(registry.get(session_id), damage.id))

        def on_draw_complete(box: BoundingBox) -> None:
            registry.save(session_id, ReviewWorkflow.draw_complete(registry.get(session_id), box))

        cfg = cls.config()
        canvas = AnnotationCanvas(
            width=cfg.canvas_width,
            height=cfg.canvas_height,
            on_damage_selected=on_damage_selected,
            on_draw_complete=on_draw_complete,
            min_box_size=cfg.min_box_size,
            zoom_min=cfg.zoom_min,
            zoom_max=cfg.zoom_max,
            wheel_step=cfg.wheel_zoom_step,
            button_step=cfg.button_zoom_step,
        )
        cls._canvases[session_id] = canvas
        return canvas

    @classmethod
    def close_session(cls, session_id: str) -> None:
        cls.sessions().close(session_id)
        cls._canvases.pop(session_id, None)

    @classmethod
    def reset(cls, store: Optional[DamageStore] = None, config: Optional[EnvironmentConfig] = None) -> None:
        """Drop every cached service; the next access rebuilds them."""
        cls._config = config
        cls._store = store
        cls._image_loader = None
        cls._status_machine = None
        cls._aggregator = None
        cls._navigator = None
        cls._workflow = None
        cls._recap = None
        cls._sessions = None
        cls._canvases = {}
        cls.completed_reports = {}
