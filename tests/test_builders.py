import ast

import pytest

from lazyloader.analysis.classifier import TargetClassification, classify
from lazyloader.analysis.declaration import load_declaration
from lazyloader.analysis.transformer import MethodKind, MethodSignature, ParameterDescriptor, ParameterKind
from lazyloader.builders import ClassLazyProxyBuilder, FallbackLazyProxyBuilder
from lazyloader.generator import ProxyGenerator
from lazyloader.runtime.lazy_proxy import LazyProxyMixin

MAIL_SERVICE = """
from typing import Protocol, final

DEFAULT_PRIORITY = 5


class Message:
    def __init__(self, body: str) -> None:
        self.body = body


class Mailer:
    built = 0

    def __init__(self, transport: str) -> None:
        Mailer.built += 1
        self.transport = transport
        self.sent = []

    def send(self, message: Message, priority: int = DEFAULT_PRIORITY) -> bool:
        self.sent.append((message.body, priority))
        return True

    async def flush(self, *, force: bool = False) -> int:
        return len(self.sent) if force else 0

    @staticmethod
    def version() -> str:
        return "1.0"

    @classmethod
    def named(cls, name: str) -> str:
        return f"{cls.__name__}:{name}"

    @property
    def transport_name(self) -> str:
        return self.transport


class Notifier(Protocol):
    @property
    def channel(self) -> str: ...

    def notify(self, text: str) -> str: ...


class Pager:
    def __init__(self) -> None:
        self.channel = "pager"

    def notify(self, text: str) -> str:
        return f"{self.channel}:{text}"


@final
class Token:
    def value(self) -> str:
        return "secret"
"""


REPOS = """
from abc import ABC, abstractmethod


class Repo(ABC):
    retries = 3

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    def _connect(self) -> str: ...

    @abstractmethod
    async def _ping(self) -> bool: ...

    @abstractmethod
    def send(self, row: str) -> str: ...


class SqlRepo(Repo):
    def __init__(self) -> None:
        self.retries = 5
        self.rows = []

    @property
    def name(self) -> str:
        return "sql"

    def _connect(self) -> str:
        return "connected"

    async def _ping(self) -> bool:
        return True

    def send(self, row: str) -> str:
        self.rows.append(row)
        return row.upper()
"""


class FakeContainer:
    def __init__(self, factories):
        self.factories = factories
        self.requests = []

    def get(self, identifier):
        self.requests.append(identifier)
        return self.factories[identifier]()


def _load(code: str, module_name: str) -> dict:
    namespace = {"__name__": module_name}
    exec(compile(code, f"<{module_name}>", "exec"), namespace)
    return namespace


@pytest.fixture
def mailsvc(make_module):
    return make_module("mailsvc", MAIL_SERVICE)


def test_class_proxy_extends_target_and_defers_construction(mailsvc):
    import mailsvc as target_module

    code = ProxyGenerator(namespace="test_proxies").generate("MailerService", "mailsvc.Mailer")
    proxy_type = _load(code, "test_proxies.MailerService")["MailerService"]

    assert "class MailerService(LazyProxyMixin, _LazyTarget):" in code
    assert issubclass(proxy_type, target_module.Mailer)
    assert proxy_type.__module__ == "test_proxies.MailerService"
    assert proxy_type.__lazy_relationship__ == "extends"
    assert proxy_type.__lazy_target__ == "mailsvc.Mailer"

    container = FakeContainer({"mailsvc.Mailer": lambda: target_module.Mailer("smtp")})
    proxy = proxy_type(container)
    assert target_module.Mailer.built == 0
    assert "pending" in repr(proxy)

    assert proxy.send(target_module.Message("hi")) is True
    assert proxy.send(target_module.Message("again"), priority=1) is True
    assert target_module.Mailer.built == 1
    assert container.requests == ["mailsvc.Mailer"]
    assert proxy.sent == [("hi", 5), ("again", 1)]
    # Properties are inherited and read through to the real instance's state.
    assert proxy.transport_name == "smtp"


def test_class_proxy_forwards_static_and_class_methods(mailsvc):
    code = ProxyGenerator(namespace="test_proxies").generate("MailerService", "mailsvc.Mailer")
    proxy_type = _load(code, "test_proxies.MailerService")["MailerService"]

    assert proxy_type.version() == "1.0"
    assert proxy_type.named("ops") == "Mailer:ops"


@pytest.mark.asyncio
async def test_class_proxy_awaits_coroutine_methods(mailsvc):
    import mailsvc as target_module

    code = ProxyGenerator(namespace="test_proxies").generate("MailerService", "mailsvc.Mailer")
    proxy_type = _load(code, "test_proxies.MailerService")["MailerService"]
    proxy = proxy_type(FakeContainer({"mailsvc.Mailer": lambda: target_module.Mailer("smtp")}))

    proxy.send(target_module.Message("hi"))
    assert await proxy.flush(force=True) == 1
    assert await proxy.flush() == 0


def test_interface_proxy_implements_protocol_and_forwards_properties(mailsvc):
    import mailsvc as target_module

    code = ProxyGenerator(namespace="test_proxies").generate("alerts.Notifier", "mailsvc.Notifier")
    proxy_type = _load(code, "test_proxies.alerts_Notifier")["Notifier"]

    assert proxy_type.__lazy_relationship__ == "implements"
    # Protocols refuse issubclass() unless runtime checkable.
    assert target_module.Notifier in proxy_type.__mro__

    pager = target_module.Pager()
    proxy = proxy_type(FakeContainer({"mailsvc.Notifier": lambda: pager}))
    assert proxy.channel == "pager"
    proxy.channel = "sms"
    assert pager.channel == "sms"
    assert proxy.notify("down") == "sms:down"


def test_final_target_gets_fallback_proxy(mailsvc):
    import mailsvc as target_module

    code = ProxyGenerator(namespace="test_proxies").generate("Token", "mailsvc.Token")
    proxy_type = _load(code, "test_proxies.Token")["Token"]

    assert proxy_type.__bases__ == (LazyProxyMixin,)
    assert proxy_type.__lazy_relationship__ == "none"
    assert not issubclass(proxy_type, target_module.Token)

    proxy = proxy_type(FakeContainer({"mailsvc.Token": target_module.Token}))
    assert proxy.value() == "secret"


def test_generated_module_declares_its_name_and_imports():
    code = ClassLazyProxyBuilder(namespace="app.proxies").build("services/Mailer", "services.Mailer", [])
    tree = ast.parse(code)

    assert ast.get_docstring(tree).startswith("Lazy proxy module app.proxies.services_Mailer.")
    assert "from __future__ import annotations" in code
    assert "from lazyloader.runtime.lazy_proxy import LazyProxyMixin, resolve_dotted" in code
    assert "_LazyTarget = resolve_dotted('services.Mailer')" in code
    assert "__lazy_identifier__ = 'services/Mailer'" in code
    assert "TYPE_CHECKING" not in code


def test_forwarding_keeps_parameter_shapes():
    signature = MethodSignature(
        name="publish",
        parameters=(
            ParameterDescriptor("topic", ParameterKind.POSITIONAL_ONLY, annotation="str"),
            ParameterDescriptor("payloads", ParameterKind.VAR_POSITIONAL),
            ParameterDescriptor("retain", ParameterKind.KEYWORD_ONLY, default="False"),
            ParameterDescriptor("headers", ParameterKind.VAR_KEYWORD),
        ),
        returns="None",
    )
    code = FallbackLazyProxyBuilder().build("events.Bus", "events.Bus", [signature])

    assert "def publish(self, topic: str, /, *payloads, retain=False, **headers) -> None:" in code
    assert "return self._lazy_proxy_instance().publish(topic, *payloads, retain=retain, **headers)" in code


def test_typing_only_imports_are_guarded():
    signature = MethodSignature(
        name="fetch",
        parameters=(ParameterDescriptor("key", annotation="storage.keys.Key"),),
        returns="datetime.datetime",
        kind=MethodKind.INSTANCE,
        is_async=True,
        typing_imports=("datetime", "storage.keys"),
    )
    code = ClassLazyProxyBuilder().build("Repo", "storage.Repo", [signature])

    assert "if TYPE_CHECKING:\n    import datetime\n    import storage.keys" in code
    assert "return await self._lazy_proxy_instance().fetch(key)" in code
    compile(code, "<proxy>", "exec")


@pytest.fixture
def repo_proxy(make_module):
    make_module("repos", REPOS)
    code = ProxyGenerator(namespace="test_proxies").generate("RepoService", "repos.Repo")
    return _load(code, "test_proxies.RepoService")["RepoService"]


@pytest.mark.asyncio
async def test_abstract_target_yields_an_instantiable_proxy(repo_proxy):
    import repos as target_module

    assert classify(load_declaration("repos.Repo")) is TargetClassification.PLAIN_CLASS
    assert not repo_proxy.__abstractmethods__

    proxy = repo_proxy(FakeContainer({"repos.Repo": target_module.SqlRepo}))

    assert isinstance(proxy, target_module.Repo)
    assert proxy.name == "sql"
    assert proxy._connect() == "connected"
    assert await proxy._ping() is True
    assert proxy.send("row") == "ROW"
    assert proxy.rows == ["row"]


def test_class_level_defaults_come_from_the_proxy_class(repo_proxy):
    import repos as target_module

    real = target_module.SqlRepo()
    proxy = repo_proxy(FakeContainer({"repos.Repo": lambda: real}))

    assert proxy.retries == 3
    assert proxy._lazy_proxy_instance().retries == 5
    proxy.retries = 7
    assert real.retries == 7
    assert "retries" not in proxy.__dict__


def test_runtime_abstract_members_get_pass_through_signatures(make_module):
    make_module("repos", REPOS)

    operations = {item.name: item for item in load_declaration("repos.Repo").proxy_operations()}

    assert list(operations) == ["name", "send", "_connect", "_ping"]
    assert operations["name"].kind is MethodKind.PROPERTY
    assert all(item.is_abstract for item in operations.values())
    assert [param.kind for param in operations["_connect"].parameters] == [
        ParameterKind.VAR_POSITIONAL,
        ParameterKind.VAR_KEYWORD,
    ]
    assert operations["_ping"].is_async is True
