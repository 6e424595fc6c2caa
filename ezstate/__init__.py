"""Client-side state for the EZSubcontractor marketplace.

Optimistic collections and the mutation controller that drives them, the
chat conversation state machine with realtime ingestion, list views, and
the user-feedback effects they emit.

Example:
    Saving a project optimistically::

        from ezstate import EffectBus, ListView, MutationController
        from ezstate.actions import toggle_saved_project

        effects = EffectBus()
        controller = MutationController(effects, session=client.session)
        view = ListView(client.projects.browse, effects, session=client.session)
        await view.load()
        await toggle_saved_project(controller, view.collection, client.projects, 42)
"""

from ezstate.collection import (
    REMOVE,
    ItemSnapshot,
    OptimisticCollection,
    PendingMutation,
    RemoteResult,
    SetFields,
    ToggleFlag,
)
from ezstate.conversation import Conversation, ConversationPhase
from ezstate.effects import Effect, EffectBus, RedirectToLogin, Toast, ToastLevel
from ezstate.errors import ErrorKind, LoadFailed, MutationFailed, OperationFailed, classify
from ezstate.mutation import MutationController, MutationOutcome
from ezstate.realtime import InMemoryChannel, RealtimeChannel, Subscription, chat_channel_name
from ezstate.views import ListView, ViewPhase

__all__ = [
    # Collections
    "OptimisticCollection",
    "PendingMutation",
    "ItemSnapshot",
    "RemoteResult",
    "SetFields",
    "ToggleFlag",
    "REMOVE",
    # Controller
    "MutationController",
    "MutationOutcome",
    # Views
    "ListView",
    "ViewPhase",
    "Conversation",
    "ConversationPhase",
    # Realtime
    "RealtimeChannel",
    "Subscription",
    "InMemoryChannel",
    "chat_channel_name",
    # Feedback
    "EffectBus",
    "Effect",
    "Toast",
    "ToastLevel",
    "RedirectToLogin",
    # Errors
    "ErrorKind",
    "OperationFailed",
    "MutationFailed",
    "LoadFailed",
    "classify",
]
