"""
Test doubles for the view registry contract and the slice loader.

FakeRegistry implements what the coordinator and the synced probe tool call
on the registry; ManualLoader hands out futures that tests resolve by hand.
"""

from concurrent.futures import Future
from types import SimpleNamespace

from core.cross_reference_errors import SliceLoadError


class FakeView:
    def __init__(self, name, image_id=None):
        self.name = name
        self.image_id = image_id
        self.listeners = []
        self.displayed = []
        self.render_requests = 0

    def __repr__(self):
        return f"FakeView({self.name})"


class FakeRegistry:
    """Implements the registry contract the coordinator relies on."""

    def __init__(self):
        self.views = []
        self.stacks = {}

    def add(self, view, stack=None):
        self.views.append(view)
        if stack is not None:
            self.stacks[view] = stack

    def enabled_views(self):
        return list(self.views)

    def current_image_id(self, view):
        return view.image_id

    def stack_of(self, view):
        return self.stacks.get(view)

    def display(self, view, loaded_slice):
        view.image_id = loaded_slice.image_id
        view.displayed.append(loaded_slice.image_id)

    def add_render_listener(self, view, listener):
        view.listeners.append(listener)

    def remove_render_listener(self, view, listener):
        if listener in view.listeners:
            view.listeners.remove(listener)

    def image_size(self, view):
        return getattr(view, "size", (64, 64))

    def request_render(self, view):
        view.render_requests += 1

    def render(self, view, context="painter"):
        for listener in list(view.listeners):
            listener(context)


class ManualLoader:
    """Records load requests and hands out unresolved futures."""

    def __init__(self):
        self.requests = []

    def load(self, image_id, cache=True):
        future = Future()
        self.requests.append((image_id, cache, future))
        return future

    def futures_for(self, image_id):
        return [future for requested, _, future in self.requests if requested == image_id]

    def complete(self, image_id):
        for future in self.futures_for(image_id):
            if not future.done():
                future.set_result(SimpleNamespace(image_id=image_id))

    def fail(self, image_id, reason="decode error"):
        for future in self.futures_for(image_id):
            if not future.done():
                future.set_exception(SliceLoadError(image_id, reason))
