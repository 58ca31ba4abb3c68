from collections import OrderedDict, defaultdict
from dataclasses import dataclass
from typing import Any, NamedTuple

import pytest

from provisio.container import Container
from provisio.domain import Lifecycle, param, ref
from provisio.errors import (
    CircularReferenceDetected,
    ConstructionFailed,
    ContainerFrozen,
    DuplicateServiceId,
    InvalidDefinition,
    MethodCallFailed,
    ParameterNotFound,
    ServiceNotFound,
)


class Mailer:
    def __init__(self, transport="sendmail"):
        self.transport = transport


class NewsletterManager:
    def __init__(self, mailer=None):
        self.mailer = mailer
        self.set_mailer_calls = []

    def setMailer(self, mailer):
        self.set_mailer_calls.append(mailer)
        self.mailer = mailer


@dataclass
class Templating:
    engine: str
    options: dict[str, Any]


class Endpoint(NamedTuple):
    host: str
    port: int


class Broken:
    def __init__(self, reason):
        raise ValueError(reason)


@pytest.fixture
def container() -> Container:
    return Container()


def test_service_without_arguments_is_built(container):
    container.register("mailer", Mailer)

    mailer = container.get("mailer")

    assert mailer is not None
    assert mailer.transport == "sendmail"


def test_shared_service_is_built_once(container):
    container.register("mailer", Mailer)

    assert container.get("mailer") is container.get("mailer")


def test_transient_service_is_built_every_time(container):
    container.register("mailer", Mailer, Lifecycle.TRANSIENT)

    assert container.get("mailer") is not container.get("mailer")
    assert not container.initialized("mailer")


def test_transient_service_shares_its_shared_dependencies(container):
    container.register("mailer", Mailer)
    container.register("manager", NewsletterManager, "transient").add_argument(ref("mailer"))

    first, second = container.get("manager"), container.get("manager")

    assert first is not second
    assert first.mailer is second.mailer


def test_parameter_placeholder_in_constructor_argument(container):
    container.set_parameter("mailer.transport", "sendmail")
    container.register("mailer", Mailer).add_argument("%mailer.transport%")

    assert container.get("mailer").transport == "sendmail"


def test_parameter_argument_keeps_its_type(container):
    container.set_parameter("templating.options", {"cache": True, "dir": "%app.dir%/views"})
    container.set_parameter("app.dir", "/srv/app")
    container.register("templating", Templating).add_arguments(
        "twig", param("templating.options")
    )

    assert container.get("templating") == Templating(
        "twig", {"cache": True, "dir": "/srv/app/views"}
    )


def test_literal_arguments_are_passed_verbatim(container):
    options = {"retries": 3}
    container.register("templating", Templating).add_arguments("plain", options)

    templating = container.get("templating")

    assert templating.engine == "plain"
    assert templating.options is options


def test_literal_containers_keep_identity_and_type(container):
    endpoint = Endpoint("localhost", 25)
    ordered = OrderedDict(b=2, a=1)
    counts = defaultdict(int, sent=3)
    container.register("endpoint", Templating).add_arguments("namedtuple", endpoint)
    container.register("ordered", Templating).add_arguments("ordered", ordered)
    container.register("counts", Templating).add_arguments("defaultdict", counts)

    assert container.get("endpoint").options is endpoint
    assert container.get("ordered").options is ordered
    assert container.get("counts").options is counts


def test_substituted_literal_containers_keep_their_type(container):
    container.set_parameter("host", "mail.example.com")
    container.register("endpoint", Templating).add_arguments(
        "namedtuple", Endpoint("%host%", 25)
    )
    container.register("ordered", Templating).add_arguments(
        "ordered", OrderedDict(b="%host%", a=1)
    )
    container.register("counts", Templating).add_arguments(
        "defaultdict", defaultdict(int, host="%host%")
    )

    endpoint = container.get("endpoint").options
    ordered = container.get("ordered").options
    counts = container.get("counts").options

    assert type(endpoint) is Endpoint
    assert endpoint.host == "mail.example.com"
    assert type(ordered) is OrderedDict
    assert list(ordered.items()) == [("b", "mail.example.com"), ("a", 1)]
    assert type(counts) is defaultdict
    assert counts["missing"] == 0


def test_parameters_keep_their_type():
    endpoint = Endpoint("h", 1)
    container = Container({"endpoint": endpoint})
    container.register("holder", Templating).add_arguments("parameter", param("endpoint"))

    assert container.get_parameter("endpoint") is endpoint
    assert container.get("holder").options is endpoint


def test_factory_looking_itself_up_is_a_cycle(container):
    def make_mailer():
        return container.get("mailer")

    container.register("mailer", make_mailer)

    with pytest.raises(CircularReferenceDetected, match="mailer -> mailer") as error:
        container.get("mailer")

    assert error.value.path == ("mailer", "mailer")
    assert not container.initialized("mailer")


def test_constructor_injection(container):
    container.register("manager", NewsletterManager).add_argument(ref("mailer"))
    container.register("mailer", Mailer)

    manager = container.get("manager")

    assert manager.mailer is container.get("mailer")


def test_setter_injection_calls_setter_once(container):
    container.register("mailer", Mailer)
    container.register("newsletter_manager", NewsletterManager).add_method_call(
        "setMailer", ref("mailer")
    )

    manager = container.get("newsletter_manager")

    assert manager.set_mailer_calls == [container.get("mailer")]


def test_missing_service_raises(container):
    with pytest.raises(ServiceNotFound, match="Service 'missing_id' is not registered"):
        container.get("missing_id")


def test_missing_reference_raises(container):
    container.register("manager", NewsletterManager).add_argument(ref("missing_id"))

    with pytest.raises(ServiceNotFound, match="referenced by 'manager'") as error:
        container.get("manager")

    assert error.value.service_id == "missing_id"
    assert error.value.requested_id == "manager"


def test_nullable_reference_to_missing_service_is_none(container):
    container.register("manager", NewsletterManager).add_argument(
        ref("missing_id", nullable=True)
    )

    assert container.get("manager").mailer is None


def test_nullable_reference_to_registered_service_is_resolved(container):
    container.register("mailer", Mailer)
    container.register("manager", NewsletterManager).add_argument(ref("mailer", nullable=True))

    assert isinstance(container.get("manager").mailer, Mailer)


def test_self_reference_is_a_cycle(container):
    container.register("mailer", Mailer).add_argument(ref("mailer"))

    with pytest.raises(CircularReferenceDetected, match="mailer -> mailer"):
        container.get("mailer")


def test_two_service_cycle_lists_both_ids(container):
    container.register("a", NewsletterManager).add_argument(ref("b"))
    container.register("b", NewsletterManager).add_argument(ref("a"))

    with pytest.raises(CircularReferenceDetected) as error:
        container.get("a")

    assert error.value.path == ("a", "b", "a")


def test_cycle_through_setter_is_detected(container):
    container.register("a", NewsletterManager).add_method_call("setMailer", ref("b"))
    container.register("b", NewsletterManager).add_method_call("setMailer", ref("a"))

    with pytest.raises(CircularReferenceDetected, match="b -> a -> b"):
        container.get("b")


def test_cycle_does_not_affect_unrelated_services(container):
    container.register("a", NewsletterManager).add_argument(ref("a"))
    container.register("mailer", Mailer)

    with pytest.raises(CircularReferenceDetected):
        container.get("a")
    assert isinstance(container.get("mailer"), Mailer)


def test_factory_failure_is_wrapped(container):
    container.set_parameter("reason", "no disk")
    container.register("broken", Broken).add_argument("%reason%")

    with pytest.raises(ConstructionFailed, match="Failed to construct service 'broken'") as error:
        container.get("broken")

    assert isinstance(error.value.__cause__, ValueError)
    assert error.value.arguments == ("no disk",)
    assert error.value.service_id == "broken"
    assert not error.value.from_dependency


def test_dependency_failure_names_requested_service(container):
    container.register("broken", Broken).add_argument("oops")
    container.register("manager", NewsletterManager).add_argument(ref("broken"))

    with pytest.raises(ConstructionFailed, match=r"while resolving 'manager'") as error:
        container.get("manager")

    assert error.value.service_id == "broken"
    assert error.value.requested_id == "manager"
    assert error.value.resolution_path == ("manager", "broken")
    assert error.value.from_dependency


def test_method_call_failure_keeps_earlier_calls(container):
    calls = []

    class Service:
        def first(self):
            calls.append("first")

        def second(self):
            raise RuntimeError("second failed")

    container.register("service", Service).add_method_call("first").add_method_call("second")

    with pytest.raises(MethodCallFailed, match=r"second\(\) on service 'service'") as error:
        container.get("service")

    assert error.value.method == "second"
    assert calls == ["first"]
    assert not container.initialized("service")


def test_missing_method_is_a_method_call_failure(container):
    container.register("mailer", Mailer).add_method_call("setTransport", "smtp")

    with pytest.raises(MethodCallFailed) as error:
        container.get("mailer")

    assert isinstance(error.value.__cause__, AttributeError)


def test_missing_parameter_fails_get(container):
    container.register("mailer", Mailer).add_argument("%mailer.transport%")

    with pytest.raises(ParameterNotFound) as error:
        container.get("mailer")

    assert error.value.requested_id == "mailer"


def test_failure_leaves_cached_instances_usable(container):
    container.register("mailer", Mailer)
    container.register("broken", Broken).add_argument(ref("mailer"))
    mailer = container.get("mailer")

    with pytest.raises(ConstructionFailed):
        container.get("broken")

    assert container.get("mailer") is mailer


def test_get_freezes_container(container):
    container.register("mailer", Mailer)
    definition = container.register("manager", NewsletterManager)
    container.get("mailer")

    assert container.frozen
    with pytest.raises(ContainerFrozen):
        container.register("other", Mailer)
    with pytest.raises(ContainerFrozen):
        definition.add_argument(ref("mailer"))
    with pytest.raises(ContainerFrozen):
        container.set_parameter("mailer.transport", "smtp")


def test_reset_rebuilds_shared_services(container):
    container.set_parameter("mailer.transport", "smtp")
    container.register("mailer", Mailer).add_argument("%mailer.transport%")
    before = container.get("mailer")

    container.reset()
    after = container.get("mailer")

    assert after is not before
    assert after.transport == "smtp"
    assert container.get_parameter("mailer.transport") == "smtp"
    assert container.has("mailer")


def test_register_duplicate_raises(container):
    container.register("mailer", Mailer)

    with pytest.raises(DuplicateServiceId):
        container.register("mailer", Mailer)


def test_register_override(container):
    container.register("mailer", Mailer)
    container.register("mailer", Mailer, override=True).add_argument("smtp")

    assert container.get("mailer").transport == "smtp"


def test_factory_function(container):
    def make_mailer(transport):
        return Mailer(transport.upper())

    container.register("mailer", make_mailer).add_argument("smtp")

    assert container.get("mailer").transport == "SMTP"


def test_provides_decorator(container):
    @container.provides(arguments=["smtp"])
    def make_mailer(transport):
        return Mailer(transport)

    @container.provides(
        "newsletter_manager", calls=[("setMailer", [ref("mailer")])], tags=["newsletter"]
    )
    class Manager(NewsletterManager):
        pass

    manager = container.get("newsletter_manager")

    assert isinstance(manager, Manager)
    assert manager.mailer.transport == "smtp"
    assert container.tagged("newsletter") == {"newsletter_manager": [{}]}


def test_provides_rejects_other_objects(container):
    with pytest.raises(InvalidDefinition):
        container.provides("mailer")(Mailer())


def test_get_tagged(container):
    container.register("a", Mailer).add_argument("a").add_tag("transport")
    container.register("b", Mailer).add_argument("b")
    container.register("c", Mailer).add_argument("c").add_tag("transport")

    assert [mailer.transport for mailer in container.get_tagged("transport")] == ["a", "c"]


def test_initial_parameters(container):
    container = Container({"mailer.transport": "smtp"})

    assert container.has_parameter("mailer.transport")
    assert container.get_parameter("MAILER.TRANSPORT") == "smtp"
    assert not container.has_parameter("mailer.port")


def test_custom_constructor_and_invoker():
    built = []
    invoked = []

    def constructor(factory, arguments):
        built.append(factory)
        return factory(*arguments)

    def invoker(instance, method, arguments):
        invoked.append(method)
        getattr(instance, method)(*arguments)

    container = Container(constructor=constructor, invoker=invoker)
    container.register("mailer", Mailer)
    container.register("manager", NewsletterManager).add_method_call("setMailer", ref("mailer"))

    container.get("manager")

    assert built == [NewsletterManager, Mailer]
    assert invoked == ["setMailer"]
