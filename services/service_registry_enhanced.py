"""
Service Registry with lazy loading
Services are registered as factories and built on first use, with their
dependencies resolved by name and passed in as keyword arguments.
"""
from typing import Dict, Any, Callable, Optional, List
from enum import Enum
import threading
import logging

logger = logging.getLogger(__name__)


class ServiceLifecycle(Enum):
    """Service lifecycle management options"""
    SINGLETON = "singleton"  # Single instance per application
    TRANSIENT = "transient"  # New instance on every get()
    SCOPED = "scoped"        # Single instance per scope


class ServiceDescriptor:
    """Describes a service registration"""

    def __init__(
        self,
        name: str,
        factory: Optional[Callable] = None,
        instance: Optional[Any] = None,
        lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
        dependencies: Optional[List[str]] = None
    ):
        self.name = name
        self.factory = factory
        self.instance = instance
        self.lifecycle = lifecycle
        self.dependencies = dependencies or []
        self.lock = threading.RLock()


class ServiceRegistryEnhanced:
    """
    Lazily-wiring service registry attached to the Flask app as app.services.

    - factories run on first get(), never at registration time
    - dependencies are other registered names, resolved recursively
    - circular dependencies are detected per thread
    """

    def __init__(self):
        self._descriptors: Dict[str, ServiceDescriptor] = {}
        self._scoped_instances: Dict[str, Dict[str, Any]] = {}
        self._thread_local = threading.local()
        self._lock = threading.RLock()

    def register(
        self,
        name: str,
        service: Any = None,
        factory: Optional[Callable] = None,
        lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
        dependencies: Optional[List[str]] = None
    ) -> None:
        """
        Register a pre-built service or a factory.

        Args:
            name: Service identifier
            service: Pre-instantiated service (always treated as a singleton)
            factory: Callable returning the service, called with its dependencies
            lifecycle: Service lifecycle type
            dependencies: Names of services passed to the factory as kwargs
        """
        if service is None and factory is None:
            raise ValueError(f"Either service instance or factory must be provided for '{name}'")

        descriptor = ServiceDescriptor(
            name=name,
            factory=factory,
            instance=service,
            lifecycle=ServiceLifecycle.SINGLETON if service is not None else lifecycle,
            dependencies=dependencies
        )

        with self._lock:
            self._descriptors[name] = descriptor

    def register_factory(
        self,
        name: str,
        factory: Callable,
        lifecycle: ServiceLifecycle = ServiceLifecycle.SINGLETON,
        dependencies: Optional[List[str]] = None
    ) -> None:
        self.register(name=name, factory=factory, lifecycle=lifecycle, dependencies=dependencies)

    def register_singleton(self, name: str, factory: Callable, **kwargs) -> None:
        """Register a singleton service factory"""
        self.register_factory(name, factory, ServiceLifecycle.SINGLETON, **kwargs)

    def get(self, name: str, scope_id: Optional[str] = None) -> Any:
        """
        Get a service by name, building it (and its dependencies) if needed.

        Raises:
            ValueError: If the service is not registered
            RuntimeError: If a circular dependency is detected
        """
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            raise ValueError(f"Service '{name}' is not registered")

        stack = self._initialization_stack()
        if name in stack:
            cycle = " -> ".join(stack + [name])
            raise RuntimeError(f"Circular dependency detected: {cycle}")

        if descriptor.lifecycle == ServiceLifecycle.SINGLETON:
            return self._get_singleton(descriptor, scope_id)
        if descriptor.lifecycle == ServiceLifecycle.TRANSIENT:
            return self._create_instance(descriptor, scope_id)
        return self._get_scoped(descriptor, scope_id)

    def _initialization_stack(self) -> List[str]:
        if not hasattr(self._thread_local, 'initialization_stack'):
            self._thread_local.initialization_stack = []
        return self._thread_local.initialization_stack

    def _get_singleton(self, descriptor: ServiceDescriptor, scope_id: Optional[str]) -> Any:
        if descriptor.instance is not None:
            return descriptor.instance

        with descriptor.lock:
            # Double-check after acquiring the lock
            if descriptor.instance is None:
                descriptor.instance = self._create_instance(descriptor, scope_id)
            return descriptor.instance

    def _get_scoped(self, descriptor: ServiceDescriptor, scope_id: Optional[str]) -> Any:
        scope_id = scope_id or "default"

        with self._lock:
            scope = self._scoped_instances.setdefault(scope_id, {})
            if descriptor.name not in scope:
                scope[descriptor.name] = self._create_instance(descriptor, scope_id)
            return scope[descriptor.name]

    def _create_instance(self, descriptor: ServiceDescriptor, scope_id: Optional[str] = None) -> Any:
        if descriptor.factory is None:
            raise ValueError(f"No factory registered for '{descriptor.name}'")

        stack = self._initialization_stack()
        stack.append(descriptor.name)
        try:
            deps = {dep: self.get(dep, scope_id) for dep in descriptor.dependencies}
            instance = descriptor.factory(**deps)
            logger.debug(f"Created service instance: {descriptor.name}")
            return instance
        finally:
            stack.pop()

    def has(self, name: str) -> bool:
        return name in self._descriptors

    def list_services(self) -> List[str]:
        return sorted(self._descriptors.keys())

    def reset_service(self, name: str) -> None:
        """Drop a built instance so the next get() rebuilds it"""
        descriptor = self._descriptors.get(name)
        if descriptor is None:
            return

        if descriptor.factory is not None:
            with descriptor.lock:
                descriptor.instance = None

        with self._lock:
            for scope in self._scoped_instances.values():
                scope.pop(name, None)

    def clear_dependency_chain(self, name: str) -> List[str]:
        """
        Reset a service and every service that depends on it, directly or not.

        Used when a low-level dependency (the db session in tests) is swapped.

        Returns:
            Names of the services that were reset
        """
        to_reset = [name]
        seen = set()
        while to_reset:
            current = to_reset.pop()
            if current in seen:
                continue
            seen.add(current)
            self.reset_service(current)
            to_reset.extend(
                other for other, desc in self._descriptors.items()
                if current in desc.dependencies
            )
        return sorted(seen)

    def clear_all_instances(self) -> None:
        """Forget every factory-built instance; registrations are kept"""
        with self._lock:
            for descriptor in self._descriptors.values():
                if descriptor.factory is not None:
                    descriptor.instance = None
            self._scoped_instances.clear()

    def clear_scope(self, scope_id: str) -> None:
        with self._lock:
            self._scoped_instances.pop(scope_id, None)

    def validate_dependencies(self) -> List[str]:
        """
        Check every declared dependency is registered.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []
        for name, descriptor in self._descriptors.items():
            for dep in descriptor.dependencies:
                if dep not in self._descriptors:
                    errors.append(f"Service '{name}' depends on unregistered service '{dep}'")
        return errors

    def get_initialization_order(self) -> List[str]:
        """
        Topological order of the registered services.

        Raises:
            RuntimeError: If a circular dependency exists
        """
        visited = set()
        order = []

        def visit(node: str, path: List[str]):
            if node in path:
                cycle = " -> ".join(path + [node])
                raise RuntimeError(f"Circular dependency detected: {cycle}")
            if node in visited:
                return
            descriptor = self._descriptors.get(node)
            for dep in (descriptor.dependencies if descriptor else []):
                visit(dep, path + [node])
            visited.add(node)
            order.append(node)

        for name in self._descriptors:
            visit(name, [])

        return order

    def warmup(self, services: Optional[List[str]] = None) -> None:
        """Build singletons up front (all of them when services is None)"""
        if services is None:
            services = [
                name for name, desc in self._descriptors.items()
                if desc.lifecycle == ServiceLifecycle.SINGLETON
            ]

        for name in self.get_initialization_order():
            if name in services:
                logger.info(f"Warming up service: {name}")
                self.get(name)
