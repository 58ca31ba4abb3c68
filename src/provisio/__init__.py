"""Provisio dependency injection container.

Provisio builds services from declarative definitions: a factory, the
positional arguments to call it with, methods to call on the new instance,
and whether the instance is shared or built afresh on every request.
Arguments may be literal values, ``%placeholder%`` strings substituted from
named parameters, or references to other services by id, so definitions can
be registered in any order.

Key Features:
    - Constructor and setter (method call) injection
    - Parameters with typed ``%name%`` substitution
    - Shared and transient lifecycles, with thread-safe shared instances
    - Lazy construction with cycle detection
    - Loading of definitions from already-parsed configuration data

Basic Usage:
    >>> from provisio.container import Container
    >>> from provisio.domain import ref
    >>>
    >>> container = Container({"mailer.transport": "sendmail"})
    >>> container.register("mailer", Mailer).add_argument("%mailer.transport%")
    >>> container.register("newsletter_manager", NewsletterManager).add_method_call(
    ...     "setMailer", ref("mailer")
    ... )
    >>> manager = container.get("newsletter_manager")

The container consists of several modules:
    - container: The Container facade
    - parameters: Parameter store and placeholder substitution
    - definition: Service definitions and their fluent builder
    - registry: Definition registration and lookup
    - resolver: Resolution of argument specs into values
    - instantiator: Construction, method calls and instance caching
    - loaders: Definitions and parameters from plain data
    - domain: Argument specs, method calls and lifecycles
    - errors: Container exceptions
"""
