"""Tests for HandlerRegistry."""

import logging
import sys
import types

import pytest

from jobs.echo import EchoJob
from jobs.registry import (
    HandlerRegistry,
    is_async_handler,
    load_handler_modules,
    register_default_handlers,
)
from models.enums import JobType
from models.errors import UnknownJobType


def test_register_and_get():
    registry = HandlerRegistry()
    handler = EchoJob()
    registry.register("echo", handler)

    assert registry.get("echo") is handler
    assert registry.get(JobType.ECHO) is handler
    assert "echo" in registry
    assert JobType.ECHO in registry
    assert len(registry) == 1


def test_unknown_type_lists_available():
    registry = HandlerRegistry()
    registry.register("echo", EchoJob())

    with pytest.raises(UnknownJobType) as exc_info:
        registry.get("payment:verify")

    assert exc_info.value.job_type == "payment:verify"
    assert "['echo']" in str(exc_info.value)


def test_non_callable_rejected():
    with pytest.raises(TypeError):
        HandlerRegistry().register("bad", "not a function")


def test_reregistering_overwrites_with_warning(caplog):
    registry = HandlerRegistry()
    first, second = EchoJob(), EchoJob()
    registry.register("echo", first)

    with caplog.at_level(logging.WARNING):
        registry.register(JobType.ECHO, second)

    assert registry.get("echo") is second
    assert "Overwriting handler" in caplog.text


def test_default_handlers():
    registry = HandlerRegistry()
    register_default_handlers(registry)
    assert registry.types() == ["echo", "sleep"]


def test_is_async_handler():
    async def coro(data, job):
        return data

    def plain(data, job):
        return data

    assert is_async_handler(coro)
    assert is_async_handler(EchoJob())
    assert not is_async_handler(plain)


def _handler_module(name, register=None):
    module = types.ModuleType(name)
    if register is not None:
        module.register_handlers = register
    return module


def test_load_handler_modules(monkeypatch):
    def register(registry):
        registry.register(JobType.SYSTEM_CLEANUP, lambda data, job: None)

    monkeypatch.setitem(sys.modules, "deploy_handlers", _handler_module("deploy_handlers", register))
    registry = HandlerRegistry()

    assert load_handler_modules(registry, " deploy_handlers , ") == ["deploy_handlers"]
    assert JobType.SYSTEM_CLEANUP in registry


def test_load_handler_modules_empty_setting():
    registry = HandlerRegistry()
    assert load_handler_modules(registry, "") == []
    assert len(registry) == 0


def test_load_handler_module_without_register_function(monkeypatch):
    monkeypatch.setitem(sys.modules, "bare_module", _handler_module("bare_module"))

    with pytest.raises(TypeError, match="register_handlers"):
        load_handler_modules(HandlerRegistry(), "bare_module")
