"""Client runtime: API access, view stores, preferences and signals."""
from dispatch.client.api import DispatchClient
from dispatch.client.autosave import Debouncer, NoteAutoSaver
from dispatch.client.events import EventBus
from dispatch.client.mutations import PendingMutations
from dispatch.client.notify import Notifier
from dispatch.client.settings_store import SettingsStore
from dispatch.client.stores import CalendarStore, DashboardStore, InboxStore, ProjectListStore

__all__ = [
    "CalendarStore",
    "DashboardStore",
    "Debouncer",
    "DispatchClient",
    "EventBus",
    "InboxStore",
    "NoteAutoSaver",
    "Notifier",
    "PendingMutations",
    "ProjectListStore",
    "SettingsStore",
]
