"""
Shared fixtures: an in-memory stand-in for the Wish/Mist backend.
"""

import pytest

from mistwrap import ConnectionConfig


class FakeChannel:
    """
    Records requests and answers them from canned responses.

    responses maps command -> (err, data), or a callable taking the args
    and returning (err, data). Commands without a response are left
    pending; their callbacks are kept in ``calls``.
    """

    def __init__(self):
        self.calls = []
        self.responses = {}

    def request(self, cmd, args, cb):
        self.calls.append((cmd, list(args), cb))
        response = self.responses.get(cmd)
        if callable(response):
            response = response(args)
        if response is not None:
            cb(*response)
        return len(self.calls)

    def reply(self, cmd, data=None, err=None):
        if callable(data) and err is None:
            self.responses[cmd] = data
            return
        self.responses[cmd] = (err, data)

    def fail(self, cmd, data, err=True):
        self.responses[cmd] = (err, data)

    def commands(self):
        return [cmd for cmd, _, _ in self.calls]

    def callback_for(self, cmd):
        for call_cmd, _, cb in reversed(self.calls):
            if call_cmd == cmd:
                return cb
        raise KeyError(cmd)


class FakeNode:
    def __init__(self):
        self.endpoints = {}
        self.changes = []

    def addEndpoint(self, name, descriptor):
        self.endpoints[name] = descriptor

    def changed(self, name):
        self.changes.append(name)


class FakeBackend:
    """Backend with a Wish channel, a Mist channel and an endpoint node."""

    def __init__(self, options=None):
        self.options = options
        self.wish = FakeChannel()
        self.mist = FakeChannel()
        self.node = FakeNode()
        self.handlers = {}

    def request(self, cmd, args, cb):
        return self.mist.request(cmd, args, cb)

    def on(self, event, handler):
        self.handlers.setdefault(event, []).append(handler)

    def emit(self, event, *args):
        for handler in self.handlers.get(event, []):
            handler(*args)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def config():
    return ConnectionConfig(name="Thermostat", core_ip="10.0.0.5", core_port="9095")


@pytest.fixture
def make_backend():
    return FakeBackend
