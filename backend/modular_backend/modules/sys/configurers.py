"""Service configurers of the Sys module, run once the provider is built."""

from modular_backend.bootstrap import ServiceConfigurer

from .services import EnvironmentService, ServerDeviceService


class ServerDeviceConfigurer(ServiceConfigurer):
    """Records the host the application started on in the startup log."""
    service_name = "ServerDevice"

    def configure_service(self, provider, configuration, log) -> None:
        server = provider.resolve(ServerDeviceService)
        log.info(
            f"Host {server.host_name} ({server.platform} {server.architecture}, "
            f"{server.processor_count} CPUs, containerized={server.is_containerized})",
            tag="server",
        )


class EnvironmentConfigurer(ServiceConfigurer):
    service_name = "Environment"

    def configure_service(self, provider, configuration, log) -> None:
        environment = provider.resolve(EnvironmentService)
        log.info(
            f"Environment {environment.environment_name}: detailed errors="
            f"{environment.should_expose_detailed_errors()}, docs={environment.should_enable_docs()}",
            tag="environment",
        )
