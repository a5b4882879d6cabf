"""Event dispatching and the page action subscribers.

Subscribers declare the events they listen to with a priority; higher
priorities run first.
"""

import logging
from collections import OrderedDict
from typing import Any, Callable, Optional

from kimai.core.models import Activity, Timesheet, User
from kimai.core.security import is_granted

logger = logging.getLogger(__name__)

DOCUMENTATION_URL = "https://www.kimai.org/documentation/"


class Event:
    name = "event"


class EventDispatcher:
    def __init__(self) -> None:
        self._listeners: dict[str, list[tuple[int, Callable[[Any], None]]]] = {}

    def add_listener(self, event_name: str, listener: Callable[[Any], None], priority: int = 0) -> None:
        self._listeners.setdefault(event_name, []).append((priority, listener))
        self._listeners[event_name].sort(key=lambda item: item[0], reverse=True)

    def add_subscriber(self, subscriber: Any) -> None:
        for event_name, (method, priority) in subscriber.get_subscribed_events().items():
            self.add_listener(event_name, getattr(subscriber, method), priority)

    def get_listeners(self, event_name: str) -> list[Callable[[Any], None]]:
        return [listener for _, listener in self._listeners.get(event_name, [])]

    def dispatch(self, event: Event, event_name: Optional[str] = None) -> Event:
        name = event_name or event.name
        for listener in self.get_listeners(name):
            listener(event)
        logger.debug(f"Dispatched {name} to {len(self.get_listeners(name))} listeners")
        return event


class PageActionsEvent(Event):
    """Collects the actions offered on a page for the current user."""

    def __init__(self, user: User, payload: dict[str, Any], action: str, view: str = "index"):
        self.user = user
        self.payload = payload
        self.action = action
        self.view = view
        self._actions: "OrderedDict[str, Optional[dict[str, Any]]]" = OrderedDict()
        self._dividers = 0

    @property
    def name(self) -> str:  # type: ignore[override]
        return f"actions.{self.action}"

    def is_index_view(self) -> bool:
        return self.view == "index"

    def add_action(self, name: str, options: dict[str, Any]) -> None:
        self._actions[name] = options

    def has_action(self, name: str) -> bool:
        return name in self._actions

    def remove_action(self, name: str) -> None:
        self._actions.pop(name, None)

    def add_divider(self) -> None:
        self._dividers += 1
        self._actions[f"divider{self._dividers}"] = None

    def add_back(self, url: str) -> None:
        self.add_action("back", {"url": url, "title": "back", "icon": "back"})

    def add_help(self, url: str) -> None:
        self.add_action("help", {"url": url, "title": "help", "icon": "help", "target": "_blank"})

    def add_delete(self, url: str) -> None:
        self.add_action("trash", {"url": url, "title": "trash", "icon": "delete", "class": "api-link"})

    def get_actions(self) -> dict[str, Optional[dict[str, Any]]]:
        # a trailing divider has nothing to separate
        actions = OrderedDict(self._actions)
        while actions and next(reversed(actions)).startswith("divider"):
            actions.popitem()
        return dict(actions)


class ActionsSubscriber:
    """Base class for subscribers adding page actions."""

    action_name = ""
    priority = 1000

    def get_subscribed_events(self) -> dict[str, tuple[str, int]]:
        return {f"actions.{self.action_name}": ("on_actions", self.priority)}

    def on_actions(self, event: PageActionsEvent) -> None:
        raise NotImplementedError

    @staticmethod
    def documentation_link(page: str) -> str:
        return DOCUMENTATION_URL + page


class UserViewsSubscriber(ActionsSubscriber):
    action_name = "user_profile"

    def on_actions(self, event: PageActionsEvent) -> None:
        user = event.payload["user"]
        if user.id is None:
            return

        base = f"/api/users/{user.id}"
        current = event.user
        if is_granted(current, "view", user):
            event.add_action("profile-stats", {"icon": "avatar", "url": base, "title": "profile-stats"})
            event.add_divider()
        if is_granted(current, "edit", user):
            event.add_action("edit", {"url": base, "title": "edit"})
        if is_granted(current, "preferences", user):
            event.add_action("settings", {"url": f"{base}/preferences", "title": "settings"})
        if is_granted(current, "password", user):
            event.add_action("password", {"url": f"{base}/password", "title": "profile.password"})
        if is_granted(current, "api-token", user):
            event.add_action("api-token", {"url": f"{base}/api-token", "title": "profile.api-token"})
        if is_granted(current, "teams", user):
            event.add_action("teams", {"url": f"{base}/teams", "title": "profile.teams"})
        if is_granted(current, "roles", user):
            event.add_action("roles", {"url": f"{base}/roles", "title": "profile.roles"})


class InvoiceTemplateUploadSubscriber(ActionsSubscriber):
    action_name = "invoice_template_upload"

    def on_actions(self, event: PageActionsEvent) -> None:
        if event.is_index_view() and is_granted(event.user, "manage_invoice_template"):
            event.add_back("/api/invoices/templates")
        event.add_help(self.documentation_link("invoices.html"))


class TimesheetSubscriber(ActionsSubscriber):
    action_name = "timesheet"

    def on_actions(self, event: PageActionsEvent) -> None:
        timesheet: Timesheet = event.payload["timesheet"]
        if timesheet.id is None:
            return

        base = f"/api/timesheets/{timesheet.id}"
        user = event.user
        if is_granted(user, "edit", timesheet):
            event.add_action("edit", {"url": base, "title": "edit", "method": "PATCH"})
        if not timesheet.is_running and is_granted(user, "start", timesheet):
            event.add_action("repeat", {"url": f"{base}/restart", "title": "repeat", "method": "PATCH"})
        if is_granted(user, "duplicate", timesheet):
            event.add_action("copy", {"url": f"{base}/duplicate", "title": "copy", "method": "PATCH"})
        if is_granted(user, "export", timesheet):
            title = "mark_as_open" if timesheet.exported else "mark_as_exported"
            event.add_action("export", {"url": f"{base}/export", "title": title, "method": "PATCH"})
        if is_granted(user, "delete", timesheet):
            event.add_divider()
            event.add_delete(base)


class CalendarConfigurationEvent(Event):
    """Lets listeners change the calendar settings.

    Only keys that already exist can be changed.
    """

    name = "calendar.configuration"

    def __init__(self, configuration: dict[str, Any]):
        self._configuration = dict(configuration)

    def get_configuration(self) -> dict[str, Any]:
        return dict(self._configuration)

    def set_configuration(self, configuration: dict[str, Any]) -> None:
        for key, value in configuration.items():
            if key in self._configuration:
                self._configuration[key] = value


class ActivityDetailControllerEvent(Event):
    """Collects additional detail sections for the activity page."""

    name = "activity.detail_controller"

    def __init__(self, activity: Activity):
        self.activity = activity
        self._controllers: list[str] = []

    def add_controller(self, controller: str) -> None:
        self._controllers.append(controller)

    def get_controllers(self) -> list[str]:
        return list(self._controllers)


def create_dispatcher() -> EventDispatcher:
    """Dispatcher with the built-in subscribers registered."""
    dispatcher = EventDispatcher()
    for subscriber in (UserViewsSubscriber(), InvoiceTemplateUploadSubscriber(), TimesheetSubscriber()):
        dispatcher.add_subscriber(subscriber)
    return dispatcher
