"""FastAPI dependencies for dependency injection."""

from typing import Annotated

from fastapi import Depends

from zapdesk.core.config import Settings, settings
from zapdesk.services.channels.base import ChannelAdapter
from zapdesk.services.channels.evolution import get_evolution_adapter
from zapdesk.services.conversation import (
    DebounceCoordinator,
    HandoffService,
    InboundPipeline,
    OutboundDispatcher,
    ResponseGenerator,
)
from zapdesk.services.llm.provider import LLMProvider, get_llm_provider
from zapdesk.services.media.extractor import ContentExtractor
from zapdesk.services.schedule.business_hours import BusinessHoursGate
from zapdesk.storage.base import StorageBackend
from zapdesk.storage.memory import InMemoryStorage


# Storage singleton
_storage: StorageBackend | None = None


def get_storage() -> StorageBackend:
    """Get the storage backend singleton.

    Uses in-memory storage for development, Firestore for production.
    """
    global _storage
    if _storage is None:
        if settings.is_production and settings.gcp_project_id:
            from zapdesk.storage.firestore import FirestoreStorage
            _storage = FirestoreStorage(project_id=settings.gcp_project_id)
        else:
            _storage = InMemoryStorage()
    return _storage


def get_gateway() -> ChannelAdapter:
    """Get the messaging gateway adapter."""
    return get_evolution_adapter()


def get_llm() -> LLMProvider:
    """Get the LLM provider."""
    return get_llm_provider()


# Type aliases for cleaner dependency injection
StorageDep = Annotated[StorageBackend, Depends(get_storage)]
SettingsDep = Annotated[Settings, Depends(lambda: settings)]
GatewayDep = Annotated[ChannelAdapter, Depends(get_gateway)]
LLMDep = Annotated[LLMProvider, Depends(get_llm)]


def get_dispatcher(storage: StorageDep, gateway: GatewayDep) -> OutboundDispatcher:
    """Get outbound dispatcher bound to the request's storage and gateway."""
    return OutboundDispatcher(storage, gateway)


DispatcherDep = Annotated[OutboundDispatcher, Depends(get_dispatcher)]


def get_handoff(storage: StorageDep, dispatcher: DispatcherDep) -> HandoffService:
    """Get the human/AI ownership service."""
    return HandoffService(storage, dispatcher)


HandoffDep = Annotated[HandoffService, Depends(get_handoff)]


def get_pipeline(
    storage: StorageDep,
    gateway: GatewayDep,
    llm: LLMDep,
    dispatcher: DispatcherDep,
    handoff: HandoffDep,
) -> InboundPipeline:
    """Assemble the inbound pipeline from its collaborators."""
    return InboundPipeline(
        storage=storage,
        extractor=ContentExtractor(gateway, llm),
        debounce=DebounceCoordinator(storage),
        responder=ResponseGenerator(storage, llm),
        dispatcher=dispatcher,
        handoff=handoff,
        hours_gate=BusinessHoursGate(settings.default_timezone),
    )


PipelineDep = Annotated[InboundPipeline, Depends(get_pipeline)]
